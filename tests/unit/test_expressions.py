"""Tests for expression and condition helpers."""
import pytest

from flowrunner.utils.expressions import (
    compare,
    evaluate_all,
    evaluate_condition,
    field_key,
    first_item,
    lookup_path,
    resolve_expression,
)


ITEM = {"json": {"name": "Ada", "age": 36, "tags": ["x", "y"], "meta": {"a": 1}}}


class TestLookup:
    """Test dotted-path lookups."""

    def test_nested_dict_path(self):
        assert lookup_path(ITEM, "json.name") == "Ada"

    def test_list_index(self):
        assert lookup_path(ITEM, "json.tags.1") == "y"

    def test_missing_returns_default(self):
        assert lookup_path(ITEM, "json.missing", "fallback") == "fallback"
        assert lookup_path(ITEM, "json.tags.9") is None

    def test_field_key_strips_braces(self):
        assert field_key("{{ json.name }}") == "json.name"
        assert field_key("json.name") == "json.name"
        assert field_key(None) == ""


class TestResolveExpression:
    """Test {{ }} template resolution."""

    def test_substitutes_values(self):
        assert resolve_expression("Hello {{json.name}} ({{ json.age }})", ITEM) == "Hello Ada (36)"

    def test_unresolved_left_as_written(self):
        assert resolve_expression("{{json.nope}}!", ITEM) == "{{json.nope}}!"

    def test_objects_are_json_encoded(self):
        assert resolve_expression("{{json.meta}}", ITEM) == '{"a": 1}'

    def test_non_strings_pass_through(self):
        assert resolve_expression(42, ITEM) == 42

    def test_first_item(self):
        assert first_item([1, 2]) == 1
        assert first_item([]) is None
        assert first_item({"a": 1}) == {"a": 1}


class TestConditions:
    """Test comparison operators and combinators."""

    @pytest.mark.parametrize("left,operator,right,expected", [
        ("a", "is_equal_to", "a", True),
        ("a", "is_not_equal_to", "b", True),
        ("hello world", "contains", "world", True),
        (10, "greater_than", "9", True),
        ("10", "less_than", "9", False),
        ("abc", "greater_than", "1", False),
        ("a", "unknown_operator", "a", False),
    ])
    def test_compare(self, left, operator, right, expected):
        assert compare(left, operator, right) is expected

    def test_ignore_case(self):
        assert compare("ADA", "is_equal_to", "ada", ignore_case=True)
        assert not compare("ADA", "is_equal_to", "ada")

    def test_missing_field_is_false(self):
        condition = {"value1": "json.missing", "operator": "is_not_equal_to", "value2": "x"}
        assert evaluate_condition(condition, ITEM) is False

    def test_value2_may_use_expressions(self):
        condition = {"value1": "{{json.name}}", "operator": "is_equal_to", "value2": "{{json.name}}"}
        assert evaluate_condition(condition, ITEM) is True

    def test_and_or_combinators(self):
        conditions = [
            {"value1": "json.name", "operator": "is_equal_to", "value2": "Ada"},
            {"value1": "json.age", "operator": "greater_than", "value2": "50"},
        ]
        assert evaluate_all(conditions, ITEM, "AND") is False
        assert evaluate_all(conditions, ITEM, "or") is True
