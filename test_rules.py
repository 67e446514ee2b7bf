"""Tests for rule matching, transforms, validation and preprocessing."""

from jsondelta import (
    ArrayStrategy,
    DiffOptions,
    IgnoreRule,
    IgnoreRuleType,
    Severity,
    TransformRule,
    TransformType,
    validate_options,
)
from jsondelta.models import ErrorType
import jsondelta.preprocess as preprocess_module
from jsondelta.preprocess import Preprocessor, preprocess
from jsondelta.rules import (
    active_ignore_rules,
    matches_glob,
    matches_regex,
    rule_matches,
    should_ignore,
    validate_ignore_rule,
)
from jsondelta.transforms import (
    TransformApplicator,
    apply_transform,
    round_half_up,
    target_matches,
    validate_transform_rule,
)


def ignore(pattern, rule_type=IgnoreRuleType.KEY_PATH, **kwargs):
    return IgnoreRule(id=pattern, type=rule_type, pattern=pattern, **kwargs)


def transform(rule_type, target=None, **options):
    return TransformRule(id="t", type=rule_type, target_path=target, options=options)


def explode(value):
    raise RuntimeError("boom")


class TestRuleMatcher:
    """Test ignore rule matching."""

    def test_key_path_is_exact(self):
        rule = ignore("user.name")
        assert rule_matches(rule, "user.name")
        assert not rule_matches(rule, "user.name.first")
        assert not rule_matches(rule, "xuser.name")

    def test_glob_star_crosses_dots(self):
        assert matches_glob("a.b.c", "a.*")
        assert matches_glob("items[3].meta.id", "*.id")
        assert not matches_glob("a", "a.*")

    def test_glob_question_mark(self):
        assert matches_glob("abc", "a?c")
        assert not matches_glob("abbc", "a?c")

    def test_glob_other_characters_are_literal(self):
        assert matches_glob("a.b", "a.b")
        assert not matches_glob("axb", "a.b")
        assert matches_glob("items[0].name", "items[*].name")
        assert matches_glob("a+b", "a+b")

    def test_regex_is_unanchored(self):
        assert matches_regex("user.password", "password")
        assert not matches_regex("user.password", "^password")

    def test_invalid_regex_fails_open(self):
        assert matches_regex("anything", "([") is False

    def test_should_ignore_skips_disabled(self):
        rules = [ignore("a", enabled=False), ignore("b")]
        assert not should_ignore("a", rules)
        assert should_ignore("b", rules)

    def test_active_rules_exclude_invalid(self):
        rules = [ignore("([", IgnoreRuleType.REGEX), ignore(""), ignore("ok")]
        assert [r.pattern for r in active_ignore_rules(rules)] == ["ok"]


class TestIgnoreValidation:
    """Test ignore rule validation."""

    def test_valid_rule(self):
        assert validate_ignore_rule(ignore("*.x", IgnoreRuleType.GLOB)) is None

    def test_empty_pattern(self):
        error = validate_ignore_rule(ignore("   "))
        assert error.type == ErrorType.TRANSFORM
        assert error.recoverable is True
        assert error.severity == Severity.ERROR

    def test_bad_regex(self):
        error = validate_ignore_rule(ignore("([", IgnoreRuleType.REGEX))
        assert error is not None
        assert error.rule_id == "(["
        assert "error" in error.details


class TestTransforms:
    """Test individual transform behaviour."""

    def test_round_half_up(self):
        assert round_half_up(2.5, 0) == 3.0
        assert round_half_up(-2.5, 0) == -2.0
        assert round_half_up(1.23456, 2) == 1.23

    def test_round_leaves_non_floats(self):
        rule = transform(TransformType.ROUND, decimals=1)
        assert apply_transform(rule, 3) == 3
        assert apply_transform(rule, True) is True
        assert apply_transform(rule, "1.25") == "1.25"

    def test_round_without_decimals_does_nothing(self):
        assert apply_transform(transform(TransformType.ROUND), 2.6) == 2.6

    def test_round_to_zero_decimals(self):
        assert apply_transform(transform(TransformType.ROUND, decimals=0), 2.6) == 3.0

    def test_round_clamps_decimals(self):
        rule = transform(TransformType.ROUND, decimals=-3)
        assert apply_transform(rule, 2.4) == 2.0

    def test_case_transforms(self):
        assert apply_transform(transform(TransformType.LOWERCASE), "AbC") == "abc"
        assert apply_transform(transform(TransformType.UPPERCASE), "AbC") == "ABC"
        assert apply_transform(transform(TransformType.LOWERCASE), 5) == 5

    def test_sort_array(self):
        assert apply_transform(transform(TransformType.SORT_ARRAY), ["b", "a", "c"]) == ["a", "b", "c"]
        assert apply_transform(
            transform(TransformType.SORT_ARRAY, descending=True), ["b", "a", "c"]
        ) == ["c", "b", "a"]

    def test_sort_array_uses_json_text(self):
        result = apply_transform(transform(TransformType.SORT_ARRAY), [3, 1, "2", {"k": 0}])
        assert result == [1, "2", 3, {"k": 0}]

    def test_sort_array_comparator_wins(self):
        rule = transform(TransformType.SORT_ARRAY, compare=lambda a, b: b - a, descending=False)
        assert apply_transform(rule, [1, 3, 2]) == [3, 2, 1]

    def test_sort_array_ignores_non_arrays(self):
        assert apply_transform(transform(TransformType.SORT_ARRAY), "cba") == "cba"

    def test_custom(self):
        rule = transform(TransformType.CUSTOM, transform=lambda v: v * 2 if isinstance(v, int) else v)
        assert apply_transform(rule, 4) == 8

    def test_target_matching(self):
        assert target_matches(transform(TransformType.LOWERCASE), "anything")
        assert target_matches(transform(TransformType.LOWERCASE, "a.b"), "a.b")
        assert not target_matches(transform(TransformType.LOWERCASE, "a.b"), "a.b.c")
        assert target_matches(transform(TransformType.LOWERCASE, "items[*].name"), "items[7].name")

    def test_rules_apply_in_order(self):
        applicator = TransformApplicator([
            transform(TransformType.CUSTOM, transform=lambda v: v + "!"),
            transform(TransformType.UPPERCASE),
        ])
        assert applicator.apply("hi", "") == "HI!"


class TestTransformValidation:
    """Test transform rule validation."""

    def test_decimals_out_of_range(self):
        errors = validate_transform_rule(transform(TransformType.ROUND, decimals=25))
        assert len(errors) == 1
        assert errors[0].severity == Severity.ERROR

    def test_decimals_not_numeric(self):
        assert validate_transform_rule(transform(TransformType.ROUND, decimals="2"))
        assert validate_transform_rule(transform(TransformType.ROUND, decimals=True))

    def test_valid_round(self):
        assert validate_transform_rule(transform(TransformType.ROUND, decimals=20)) == []

    def test_custom_requires_callable(self):
        errors = validate_transform_rule(transform(TransformType.CUSTOM, transform="nope"))
        assert errors[0].message == "Custom transform rule must provide a transform function"

    def test_comparator_must_be_callable(self):
        errors = validate_transform_rule(transform(TransformType.SORT_ARRAY, compare=3))
        assert errors[0].severity == Severity.ERROR

    def test_comparator_with_descending_warns(self):
        rule = transform(TransformType.SORT_ARRAY, compare=lambda a, b: 0, descending=True)
        errors = validate_transform_rule(rule)
        assert [e.severity for e in errors] == [Severity.WARNING]
        assert len(TransformApplicator([rule]).rules) == 1

    def test_applicator_skips_invalid_rules(self):
        applicator = TransformApplicator([transform(TransformType.ROUND, decimals=99)])
        assert applicator.rules == []
        assert not applicator


class TestValidateOptions:
    """Test the combined validation pass."""

    def test_clean_options(self):
        assert validate_options(DiffOptions()) == []

    def test_collects_all_problems(self):
        options = DiffOptions(
            array_strategy=ArrayStrategy.KEYED,
            ignore_rules=[ignore("([", IgnoreRuleType.REGEX)],
            transform_rules=[transform(TransformType.CUSTOM)],
        )
        errors = validate_options(options)
        assert len(errors) == 3
        assert all(e.type == ErrorType.TRANSFORM for e in errors)
        assert any("arrayKeyPath" in e.message for e in errors)

    def test_key_path_with_index_strategy_is_a_suggestion(self):
        errors = validate_options(DiffOptions(array_key_path="id"))
        assert len(errors) == 1
        assert errors[0].severity == Severity.INFO


class TestPreprocessor:
    """Test document preprocessing."""

    def test_no_rules_returns_same_object(self):
        data = {"a": 1}
        assert preprocess(data, DiffOptions()) is data

    def test_drops_ignored_members(self):
        options = DiffOptions(ignore_rules=[ignore("*.secret", IgnoreRuleType.GLOB)])
        data = {"user": {"name": "x", "secret": "y"}, "list": [{"secret": 1, "k": 2}]}
        processor = Preprocessor(options)

        assert processor.process(data) == {"user": {"name": "x"}, "list": [{"k": 2}]}
        assert processor.ignored_count == 2
        assert data["user"]["secret"] == "y"

    def test_array_elements_are_never_dropped(self):
        options = DiffOptions(ignore_rules=[ignore("items[0]")])
        assert preprocess({"items": [1, 2]}, options) == {"items": [1, 2]}

    def test_arrays_transform_before_their_elements(self):
        options = DiffOptions(transform_rules=[
            transform(TransformType.SORT_ARRAY, "v"),
            transform(TransformType.UPPERCASE, "v[0]"),
        ])
        assert preprocess({"v": ["b", "a"]}, options) == {"v": ["A", "b"]}

    def test_element_rules_see_sorted_positions(self):
        options = DiffOptions(transform_rules=[
            transform(TransformType.SORT_ARRAY, "tags"),
            transform(TransformType.LOWERCASE, "tags[*]"),
        ])
        assert preprocess({"tags": ["b", "C", "a"]}, options) == {"tags": ["c", "a", "b"]}

    def test_ignored_count_is_logged(self, monkeypatch):
        events = []

        class Recorder:
            def debug(self, name, **kwargs):
                events.append((name, kwargs))

        monkeypatch.setattr(preprocess_module, "logger", Recorder())
        options = DiffOptions(ignore_rules=[ignore("a"), ignore("b")])
        Preprocessor(options).process({"a": 1, "b": 2, "c": 3})

        assert events == [("document_preprocessed", {"ignored_fields": 2})]

    def test_failure_returns_original(self):
        options = DiffOptions(transform_rules=[transform(TransformType.CUSTOM, "a", transform=explode)])
        data = {"a": 1, "b": 2}
        assert preprocess(data, options) is data
