"""
Expressions - {{ path.to.key }} templates and comparison conditions.

Shared by the if, switch, filter and setData nodes.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, Optional


logger = logging.getLogger(__name__)

_EXPRESSION = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_MISSING = object()

OPERATORS = (
    "is_equal_to",
    "is_not_equal_to",
    "contains",
    "greater_than",
    "less_than",
)


def lookup_path(data: Any, path: str, default: Any = None) -> Any:
    """Follow a dotted path through nested dicts (and list indexes)."""
    current = data
    for key in path.strip().split("."):
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return default
    return current


def field_key(value1: str) -> str:
    """'{{ name }}' -> 'name'; a bare field name is returned unchanged."""
    key = (value1 or "").strip()
    if key.startswith("{{") and key.endswith("}}"):
        key = key[2:-2].strip()
    return key


def resolve_expression(expression: Any, data: Any) -> Any:
    """
    Replace every {{ path }} in a string with the value found in `data`.

    Unresolvable paths are left as written. Objects are JSON-encoded.
    Non-string expressions are returned unchanged.
    """
    if not expression or not isinstance(expression, str):
        return expression

    def _substitute(match: "re.Match[str]") -> str:
        value = lookup_path(data, match.group(1), _MISSING)
        if value is _MISSING:
            return match.group(0)
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return str(value)

    return _EXPRESSION.sub(_substitute, expression)


def first_item(input_data: Any) -> Any:
    """The item conditions are evaluated against: first element of a list."""
    if isinstance(input_data, list):
        return input_data[0] if input_data else None
    return input_data


def _to_number(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def compare(left: Any, operator: str, right: Any, ignore_case: bool = False) -> bool:
    """Apply a comparison operator to two values rendered as strings."""
    val1 = str(left)
    val2 = str(right)
    if ignore_case:
        val1 = val1.lower()
        val2 = val2.lower()

    if operator == "is_equal_to":
        return val1 == val2
    if operator == "is_not_equal_to":
        return val1 != val2
    if operator == "contains":
        return val2 in val1
    if operator in ("greater_than", "less_than"):
        num1, num2 = _to_number(val1), _to_number(val2)
        if num1 is None or num2 is None:
            return False
        return num1 > num2 if operator == "greater_than" else num1 < num2

    logger.warning(f"Unknown operator: {operator}")
    return False


def evaluate_condition(
    condition: Dict[str, Any],
    item: Any,
    ignore_case: bool = False,
) -> bool:
    """
    Evaluate {value1, operator, value2} against an item.

    value1 names a field (optionally as {{ field }}); value2 may itself
    contain expressions. A missing field never matches.
    """
    key = field_key(condition.get("value1", ""))
    item_value = lookup_path(item, key, _MISSING) if key else _MISSING
    if item_value is _MISSING or item_value is None:
        return False

    value2 = resolve_expression(condition.get("value2", ""), item)
    return compare(item_value, condition.get("operator", "is_equal_to"), value2, ignore_case)


def evaluate_all(
    conditions: Iterable[Dict[str, Any]],
    item: Any,
    combinator: str = "AND",
    ignore_case: bool = False,
) -> bool:
    """Combine conditions with AND (all) or OR (any)."""
    results = (evaluate_condition(c, item, ignore_case) for c in conditions)
    if str(combinator).upper() == "OR":
        return any(results)
    return all(results)


__all__ = [
    "OPERATORS",
    "lookup_path",
    "field_key",
    "resolve_expression",
    "first_item",
    "compare",
    "evaluate_condition",
    "evaluate_all",
]
