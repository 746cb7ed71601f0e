"""
Unit tests for single-value rule evaluation.
"""

from datetime import date, datetime, time
from decimal import Decimal

import pytest

from fieldrules.errors import ErrorCode
from fieldrules.validation import (
    RuleKind,
    ValidationErrorKind,
    Validator,
    rules,
    validate_value,
)


def failure_of(raw, rule_set, validator=None):
    result = (validator or Validator()).validate_value(raw, rule_set)
    assert result.is_err(), f"expected {raw!r} to fail"
    return result.unwrap_err()


def passes(raw, rule_set, validator=None):
    return (validator or Validator()).validate_value(raw, rule_set).is_ok()


class TestNotNull:
    """Tests for NOT_NULL semantics."""

    @pytest.mark.parametrize("raw", [None, "", "   ", "null", "NULL", "undefined", " Undefined "])
    def test_rejects_absent_blank_and_null_literals(self, raw):
        """None, blank strings and the null literals all count as missing."""
        failure = failure_of(raw, rules("Username").not_null())

        assert failure.error is ValidationErrorKind.NOT_NULL
        assert failure.message == "Username must not be empty"
        assert failure.code is ErrorCode.E2001_REQUIRED_FIELD_MISSING

    @pytest.mark.parametrize("raw", ["x", 0, False, [], {}])
    def test_accepts_present_values(self, raw):
        """Zero, False and empty collections are present values."""
        assert passes(raw, rules("Value").not_null())

    def test_configurable_null_literals(self):
        """Validator(null_literals=...) replaces the configured literals."""
        validator = Validator(null_literals=["none"])

        assert failure_of("None", rules("X").not_null(), validator).error is ValidationErrorKind.NOT_NULL
        assert passes("null", rules("X").not_null(), validator)

    def test_absent_value_skips_other_rules(self):
        """Without not_null, None is vacuously valid."""
        assert passes(None, rules("Nickname").length_range(3, 20).min(5).date_format("TIME"))

    def test_first_failing_rule_wins(self):
        """Evaluation stops at the first failing rule in declaration order."""
        failure = failure_of("", rules("Username").not_null().length_range(3, 20))
        assert failure.rule_kind is RuleKind.NOT_NULL


class TestLength:
    """Tests for length and exist-length rules."""

    def test_length_range_message(self):
        failure = failure_of("ab", rules("Username").length_range(3, 20))

        assert failure.error is ValidationErrorKind.LENGTH
        assert failure.rule_kind is RuleKind.LENGTH_RANGE
        assert failure.params == {"min": 3, "max": 20, "actual": 2}
        assert failure.message == "Username length must be between 3~20 characters"

    def test_exact_length(self):
        assert passes("12345", rules("Zip").length(5))
        assert failure_of("1234", rules("Zip").length(5)).params["expected"] == 5

    def test_multibyte_text_counts_characters(self):
        """Length counts code points, not bytes."""
        assert passes("日本語", rules("Name").length_range(1, 3))
        assert passes("é€", rules("Code").length(2))
        assert failure_of("日本語です", rules("Name").length_range(1, 3)).params["actual"] == 5

    def test_collection_length_counts_elements(self):
        assert passes(["a", "b"], rules("Tags").length_range(1, 2))
        failure = failure_of(["a", "b", "c"], rules("Tags").length_range(1, 2))
        assert "items" in failure.message

    def test_exist_rules_skip_empty_string(self):
        """The empty string is treated as absent by EXIST_* rules."""
        assert passes("", rules("Remark").exist_length_range(2, 4))
        assert passes("", rules("Code").exist_length(6))
        assert failure_of("a", rules("Remark").exist_length_range(2, 4)).error is ValidationErrorKind.LENGTH
        assert passes("abc", rules("Remark").exist_length_range(2, 4))

    def test_empty_string_is_invalid_for_not_null_before_exist(self):
        """not_null still rejects "" even when an exist rule follows."""
        failure = failure_of("", rules("Remark").not_null().exist_length_range(2, 4))
        assert failure.error is ValidationErrorKind.NOT_NULL

    def test_length_on_number_is_unsupported(self):
        failure = failure_of(12, rules("Count").length_range(1, 3))

        assert failure.error is ValidationErrorKind.UNSUPPORTED_TYPE
        assert failure.params == {"type": "int"}


class TestDateFormat:
    """Tests for strict date/time parsing."""

    def test_invalid_calendar_date_fails(self):
        failure = failure_of("2023-13-40", rules("Birthday").date_format("YEAR_MONTH_DAY"))

        assert failure.error is ValidationErrorKind.FORMAT
        assert failure.params == {"format": "YEAR_MONTH_DAY"}

    def test_valid_date_passes(self):
        assert passes("2023-01-15", rules("Birthday").date_format("YEAR_MONTH_DAY"))

    def test_unpadded_input_fails(self):
        """Round-trip formatting rejects "2023-1-15"."""
        assert not passes("2023-1-15", rules("Birthday").date_format("YEAR_MONTH_DAY"))

    @pytest.mark.parametrize("tag,raw", [
        ("TIME", "09:30"),
        ("DATE_TIME", "2023-01-15 09:30:00"),
        ("DATE_COMPACT", "20230115"),
        ("DATE_TIME_COMPACT", "20230115093000"),
        ("TIME_COMPACT", "093000"),
        ("YEAR_MONTH", "2023-01"),
    ])
    def test_each_tag_accepts_its_layout(self, tag, raw):
        assert passes(raw, rules("When").date_format(tag))

    def test_temporal_instances_pass(self):
        assert passes(date(2023, 1, 15), rules("Day").date_format("YEAR_MONTH_DAY"))
        assert passes(datetime(2023, 1, 15, 9, 30), rules("At").date_format("DATE_TIME"))
        assert passes(time(9, 30), rules("At").date_format("TIME"))

    def test_non_string_is_unsupported(self):
        failure = failure_of(20230115, rules("Day").date_format("DATE_COMPACT"))
        assert failure.error is ValidationErrorKind.UNSUPPORTED_TYPE


class TestNumeric:
    """Tests for numeric rules and coercion."""

    def test_max_failure_carries_bound(self):
        failure = failure_of(200, rules("Age").min(0).max(150))

        assert failure.error is ValidationErrorKind.NUMBER_MAX
        assert failure.rule_kind is RuleKind.MAX
        assert failure.params == {"max": 150}
        assert failure.message == "Age must not be greater than 150"

    def test_min_failure(self):
        failure = failure_of("-1", rules("Age").min(0))
        assert failure.error is ValidationErrorKind.NUMBER_MIN

    def test_bounds_are_inclusive(self):
        assert passes(0, rules("Age").min(0).max(150))
        assert passes("150", rules("Age").min(0).max(150))

    def test_unparsable_number_stops_field(self):
        """A value that is not a number yields NUMBER_FORMAT."""
        failure = failure_of("abc", rules("Age").min(0).max(150))

        assert failure.error is ValidationErrorKind.NUMBER_FORMAT
        assert failure.rule_kind is RuleKind.MIN

    @pytest.mark.parametrize("raw", [" 5", "1,000", "NaN", "inf", ""])
    def test_strict_string_parsing(self, raw):
        assert failure_of(raw, rules("N").number_min(0)).error is ValidationErrorKind.NUMBER_FORMAT

    def test_boolean_is_not_a_number(self):
        assert failure_of(True, rules("N").min(0)).error is ValidationErrorKind.UNSUPPORTED_TYPE

    def test_min_max_on_collection_compare_count(self):
        """MIN/MAX on a collection compare the element count."""
        failure = failure_of(["a", "b", "c"], rules("Tags").max(2))

        assert failure.error is ValidationErrorKind.LENGTH
        assert failure.params == {"max": 2, "actual": 3}
        assert passes(["a"], rules("Tags").min(1))

    def test_number_rules_on_collection_are_unsupported(self):
        """NUMBER_MIN/NUMBER_MAX compare numbers only."""
        assert failure_of([1, 2], rules("Ids").number_max(5)).error is ValidationErrorKind.UNSUPPORTED_TYPE

    def test_positive_and_non_negative(self):
        assert failure_of(0, rules("Qty").positive()).error is ValidationErrorKind.POSITIVE_NUMBER
        assert passes(0, rules("Qty").non_negative())
        assert failure_of("-0.01", rules("Qty").non_negative()).error is ValidationErrorKind.NON_NEGATIVE_NUMBER

    def test_integer(self):
        assert failure_of("1.5", rules("Count").integer()).error is ValidationErrorKind.INTEGER
        assert passes("2.0", rules("Count").integer())
        assert passes(7, rules("Count").integer())

    def test_decimal_scale_ignores_trailing_zeros(self):
        assert failure_of("1.234", rules("Price").decimal_scale(2)).params == {"scale": 2}
        assert passes("1.50", rules("Price").decimal_scale(2))
        assert passes("1.230", rules("Price").decimal_scale(2))
        assert passes(Decimal("10"), rules("Price").decimal_scale(0))

    def test_odd_and_even(self):
        assert passes(3, rules("N").odd())
        assert failure_of(4, rules("N").odd()).error is ValidationErrorKind.ODD_NUMBER
        assert failure_of(3.5, rules("N").odd()).error is ValidationErrorKind.ODD_NUMBER
        assert passes(-4, rules("N").even())
        assert failure_of("5", rules("N").even()).error is ValidationErrorKind.EVEN_NUMBER

    def test_multiple_of_is_exact_for_decimal_fractions(self):
        """0.3 is a multiple of 0.1 (no binary float drift)."""
        assert passes(0.3, rules("Amount").multiple_of(0.1))
        assert passes("0.15", rules("Amount").multiple_of(Decimal("0.05")))
        failure = failure_of("0.12", rules("Amount").multiple_of(Decimal("0.05")))
        assert failure.error is ValidationErrorKind.MULTIPLE_OF
        assert passes(9, rules("N").multiple_of(3))

    def test_multiple_of_with_large_exponents(self):
        assert passes("1e400", rules("N").multiple_of(10))
        assert passes("-3e500", rules("N").multiple_of(Decimal("0.3")))
        assert failure_of("1e400", rules("N").multiple_of(3)).error is ValidationErrorKind.MULTIPLE_OF
        assert failure_of("1e-400", rules("N").multiple_of(Decimal("0.1"))).error is ValidationErrorKind.MULTIPLE_OF
        assert failure_of("5", rules("N").multiple_of(10)).error is ValidationErrorKind.MULTIPLE_OF


class TestCustom:
    """Tests for custom checks."""

    def test_false_fails_with_generic_message(self):
        failure = failure_of("abc", rules("Code").custom(str.isupper, "upper"))

        assert failure.error is ValidationErrorKind.CUSTOM
        assert failure.params == {"check": "upper"}
        assert failure.message == "Code failed check upper"

    def test_string_verdict_is_the_message(self):
        check = lambda v: None if v.startswith("A") else "Code must start with A"
        failure = failure_of("Bob", rules("Code").custom(check))

        assert failure.message == "Code must start with A"
        assert passes("Alice", rules("Code").custom(check))

    def test_exception_becomes_failure(self):
        """A raising check is reported, not propagated."""
        def explode(value):
            raise RuntimeError("boom")

        failure = failure_of("x", rules("Code").custom(explode))
        assert failure.error is ValidationErrorKind.CUSTOM
        assert "boom" in failure.message


class TestFailureShape:
    """Tests for failure naming and redaction."""

    def test_unbound_rule_set_uses_desc_as_field(self):
        failure = validate_value("ab", rules("Username").length_range(3, 20)).unwrap_err()
        assert failure.field == "Username"

    def test_sensitive_value_is_redacted(self):
        failure = failure_of("abc", rules("Password", sensitive=True).length_range(8, 64))

        assert failure.actual_value == "abc"
        assert failure.to_dict()["value"] == "[REDACTED]"

    def test_to_dict(self):
        failure = failure_of("ab", rules("Username").length_range(3, 20))

        assert failure.to_dict() == {
            "field": "Username",
            "desc": "Username",
            "rule": "length_range",
            "constraint": "length",
            "message": "Username length must be between 3~20 characters",
            "params": {"min": 3, "max": 20, "actual": 2},
            "value": "ab",
        }
