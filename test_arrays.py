"""Tests for array strategy analysis and key paths."""

import pytest

from jsondelta import ArrayStrategy, DiffOptions, MISSING, suggest_array_strategy, analyze_document
from jsondelta.arrays import (
    detect_keyable_array,
    get_array_strategy_info,
    validate_array_strategy,
)
from jsondelta.keypath import resolve_key, validate_key_path


class TestSuggestArrayStrategy:
    """Test strategy suggestions and their confidence."""

    def test_not_an_array(self):
        suggestion = suggest_array_strategy({"a": 1})
        assert suggestion.suggested == ArrayStrategy.INDEX
        assert suggestion.confidence == 1.0

    def test_empty_array(self):
        suggestion = suggest_array_strategy([])
        assert suggestion.confidence == 1.0
        assert suggestion.reason == "Empty array"

    def test_primitives(self):
        suggestion = suggest_array_strategy([1, "a", None, True])
        assert suggestion.suggested == ArrayStrategy.INDEX
        assert suggestion.confidence == 0.9

    def test_objects_with_unique_id(self):
        suggestion = suggest_array_strategy([{"id": 1}, {"id": 2}])
        assert suggestion.suggested == ArrayStrategy.KEYED
        assert suggestion.confidence == 0.8
        assert suggestion.key_path == "id"

    def test_objects_without_identity(self):
        suggestion = suggest_array_strategy([{"v": 1}, {"v": 1}])
        assert suggestion.suggested == ArrayStrategy.INDEX
        assert suggestion.confidence == 0.7

    def test_mixed(self):
        suggestion = suggest_array_strategy([{"id": 1}, 2])
        assert suggestion.suggested == ArrayStrategy.INDEX
        assert suggestion.confidence == 0.6

    def test_to_dict(self):
        data = suggest_array_strategy([{"id": 1}]).to_dict()
        assert data["suggested"] == "keyed"
        assert data["keyPath"] == "id"


class TestDetectKeyableArray:
    """Test identity field detection."""

    def test_prefers_id(self):
        result = detect_keyable_array([{"id": 1, "name": "a"}, {"id": 2, "name": "b"}])
        assert result.keyable
        assert result.key_path == "id"

    def test_falls_through_to_unique_field(self):
        result = detect_keyable_array([{"id": 1, "uuid": "x"}, {"id": 1, "uuid": "y"}])
        assert result.key_path == "uuid"

    def test_field_must_be_on_every_element(self):
        assert not detect_keyable_array([{"id": 1}, {"name": "b"}]).keyable

    def test_structured_key_values(self):
        result = detect_keyable_array([{"key": [1, 2]}, {"key": [1, 3]}])
        assert result.key_path == "key"

    def test_integral_floats_are_not_unique_keys(self):
        assert not detect_keyable_array([{"id": 1}, {"id": 1.0}]).keyable


class TestAnalyzeDocument:
    """Test per-array suggestions over a whole document."""

    def test_collects_every_array(self):
        doc = {
            "users": [{"id": 1}, {"id": 2}],
            "tags": ["a"],
            "nested": {"list": [[1], [2]]},
        }
        suggestions = analyze_document(doc)

        assert list(suggestions) == ["users", "tags", "nested.list", "nested.list[0]", "nested.list[1]"]
        assert suggestions["users"].suggested == ArrayStrategy.KEYED
        assert suggestions["nested.list"].confidence == 0.6

    def test_root_array(self):
        assert list(analyze_document([1, 2])) == [""]

    def test_no_arrays(self):
        assert analyze_document({"a": 1}) == {}


class TestValidateArrayStrategy:
    """Test strategy/key path consistency checks."""

    def test_keyed_requires_key_path(self):
        result = validate_array_strategy(DiffOptions(array_strategy=ArrayStrategy.KEYED))
        assert not result.valid
        assert result.errors == ["Keyed array strategy requires arrayKeyPath to be specified"]

    def test_key_path_without_keyed(self):
        result = validate_array_strategy(DiffOptions(array_key_path="id"))
        assert result.valid
        assert len(result.suggestions) == 1

    def test_invalid_key_path(self):
        options = DiffOptions(array_strategy=ArrayStrategy.KEYED, array_key_path="a[")
        result = validate_array_strategy(options)
        assert not result.valid

    def test_info(self):
        keyed = DiffOptions(array_strategy=ArrayStrategy.KEYED, array_key_path="sku")
        assert get_array_strategy_info(keyed).strategy == "Keyed"
        assert get_array_strategy_info(keyed).key_path == "sku"
        assert get_array_strategy_info(DiffOptions()).strategy == "Index"


class TestKeyPath:
    """Test key resolution on array elements."""

    def test_direct_member(self):
        assert resolve_key({"id": 7}, "id") == 7

    def test_direct_member_with_dot_in_name(self):
        assert resolve_key({"a.b": 1, "a": {"b": 2}}, "a.b") == 1

    def test_nested_path(self):
        assert resolve_key({"meta": {"id": "x"}}, "meta.id") == "x"

    def test_missing_key(self):
        assert resolve_key({"other": 1}, "id") is MISSING
        assert resolve_key(5, "id") is MISSING

    def test_null_is_a_key(self):
        assert resolve_key({"id": None}, "id") is None

    @pytest.mark.parametrize("key_path", ["id", "meta.id", "$.ref.uuid"])
    def test_valid_key_paths(self, key_path):
        assert validate_key_path(key_path) is None

    def test_invalid_key_paths(self):
        assert validate_key_path("") == "Key path cannot be empty"
        assert validate_key_path("a[") is not None
