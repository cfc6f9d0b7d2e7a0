"""Shared helpers."""
from .expressions import (
    evaluate_all,
    evaluate_condition,
    first_item,
    lookup_path,
    resolve_expression,
)

__all__ = [
    "evaluate_all",
    "evaluate_condition",
    "first_item",
    "lookup_path",
    "resolve_expression",
]
