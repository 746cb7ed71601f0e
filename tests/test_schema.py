"""
Unit tests for record validation: aggregation, modes, groups and nesting.
"""

from types import SimpleNamespace

import pytest

from fieldrules.errors import ErrorCode, Ok
from fieldrules.validation import (
    RuleKind,
    SchemaBuilder,
    StandardGroup,
    UnknownFieldError,
    UnknownGroupError,
    ValidationContext,
    ValidationError,
    ValidationErrorKind,
    ValidationMode,
    classify,
    rules,
)


class TestAggregation:
    """Tests for fail-fast per field, aggregate across fields."""

    def test_username_and_age_both_reported(self, user_schema):
        """Each failing field contributes its first failure, in declaration order."""
        result = user_schema.validate({"username": "ab", "age": 200})

        assert result.is_err()
        outcome = result.unwrap_err()
        assert outcome.fields == ["username", "age"]
        assert outcome[0].rule_kind is RuleKind.LENGTH_RANGE
        assert outcome[1].error is ValidationErrorKind.NUMBER_MAX
        assert outcome.record == "User"

    def test_valid_record_is_ok_none(self, user_schema):
        result = user_schema.validate({"username": "alice", "age": 30})
        assert result == Ok(None)

    def test_objects_are_read_by_attribute(self, user_schema):
        result = user_schema.validate(SimpleNamespace(username="ab", age=30))
        assert result.unwrap_err().fields == ["username"]

    def test_missing_required_field(self, user_schema):
        outcome = user_schema.validate({"age": 30}).unwrap_err()

        assert outcome.first_failure.error is ValidationErrorKind.NOT_NULL
        assert outcome.first_failure.field == "username"

    def test_integer_field_rejects_fraction(self):
        """A field declared as int parses numbers as int."""
        schema = SchemaBuilder("Page").field("size", rules("Size").min(1), value_type=int).build()

        failure = schema.validate({"size": "1.5"}).unwrap_err().first_failure
        assert failure.error is ValidationErrorKind.NUMBER_FORMAT


class TestModes:
    """Tests for fail-fast and collect-all accumulation."""

    def test_fail_fast_returns_one_failure(self, user_schema):
        outcome = user_schema.validate({"username": "ab", "age": 200}, mode=ValidationMode.FAIL_FAST).unwrap_err()

        assert len(outcome) == 1
        assert outcome.mode is ValidationMode.FAIL_FAST
        assert outcome.fields == ["username"]

    def test_mode_accepts_string(self, user_schema):
        outcome = user_schema.validate({"username": "ab", "age": 200}, mode="fail_fast").unwrap_err()
        assert len(outcome) == 1

    def test_max_errors_caps_outcome(self):
        builder = SchemaBuilder("Wide")
        for i in range(5):
            builder.field(f"f{i}", rules(f"Field {i}").not_null())
        schema = builder.build()

        outcome = schema.validate({}, max_errors=3).unwrap_err()
        assert outcome.fields == ["f0", "f1", "f2"]
        assert outcome.truncated
        assert outcome.to_dict()["error"]["truncated"] is True

    def test_cap_reached_exactly_is_not_truncated(self):
        builder = SchemaBuilder("Pair")
        for i in range(2):
            builder.field(f"f{i}", rules(f"Field {i}").not_null())

        outcome = builder.build().validate({}, max_errors=2).unwrap_err()
        assert outcome.fields == ["f0", "f1"]
        assert not outcome.truncated

    def test_no_cap_by_default(self):
        """Every failing field is reported, however many there are."""
        builder = SchemaBuilder("Wide")
        for i in range(60):
            builder.field(f"f{i}", rules(f"Field {i}").not_null())

        outcome = builder.build().validate({}).unwrap_err()
        assert len(outcome) == 60
        assert not outcome.truncated
        assert outcome.to_dict()["error"]["error_count"] == 60


class TestGroups:
    """Tests for group-restricted validation."""

    def test_group_restricts_fields(self, user_schema):
        """Only the group's fields are validated."""
        assert user_schema.validate({"username": "ab", "age": 30}, "update").is_ok()

        outcome = user_schema.validate_with_group({"username": "alice", "age": 200}, "update").unwrap_err()
        assert outcome.fields == ["age"]

    def test_standard_group_names(self, user_schema):
        outcome = user_schema.validate({"username": "ab", "age": 30}, StandardGroup.CREATE).unwrap_err()
        assert outcome.fields == ["username"]

    def test_unknown_group_raises(self, user_schema):
        with pytest.raises(UnknownGroupError) as exc_info:
            user_schema.validate({"username": "alice"}, "delete")
        assert exc_info.value.code is ErrorCode.E8010_UNKNOWN_GROUP

    def test_classify_keeps_declaration_order(self, user_schema):
        assert [f.name for f in classify(user_schema, "create")] == ["username", "age", "address"]
        assert [f.name for f in classify(user_schema, None)] == ["username", "age", "address", "phones"]

    def test_group_with_undeclared_field_fails_build(self):
        with pytest.raises(UnknownFieldError):
            SchemaBuilder("User").field("username", rules().not_null()).group("create", "username", "email").build()

    def test_duplicate_field_fails_build(self):
        with pytest.raises(UnknownFieldError):
            SchemaBuilder("User").field("username").field("username").build()


class TestNesting:
    """Tests for nested records and collections."""

    def test_nested_failure_is_qualified(self, user_schema):
        data = {"username": "alice", "address": {"zipcode": "123", "street": "Main St"}}

        outcome = user_schema.validate(data).unwrap_err()
        assert outcome.fields == ["address.zipcode"]
        assert outcome.get("address.zipcode").params == {"min": 5, "max": 10, "actual": 3}

    def test_collection_element_is_indexed(self, user_schema):
        data = {"username": "alice", "phones": [{"number": "5551234"}, {"number": "12"}, None]}

        outcome = user_schema.validate(data).unwrap_err()
        assert outcome.fields == ["phones[1].number"]

    def test_absent_optional_nested_is_skipped(self, user_schema):
        assert user_schema.validate({"username": "alice", "address": None, "phones": None}).is_ok()

    def test_collection_rule_runs_before_elements(self, user_schema):
        """A failing count stops the field before elements are visited."""
        phones = [{"number": "1"}] * 4

        outcome = user_schema.validate({"username": "alice", "phones": phones}).unwrap_err()
        assert outcome.fields == ["phones"]
        assert outcome[0].error is ValidationErrorKind.LENGTH

    def test_nested_uses_group_it_declares(self, user_schema):
        """Address declares "create", so only its zipcode is checked under create."""
        data = {"username": "alice", "address": {"zipcode": "12345", "street": ""}}

        assert user_schema.validate(data, "create").is_ok()
        assert user_schema.validate(data).unwrap_err().fields == ["address.street"]

    def test_nested_validated_in_full_without_matching_group(self, phone_schema):
        schema = (SchemaBuilder("Contact")
            .nested("phone", phone_schema)
            .group("update", "phone")
            .build())

        outcome = schema.validate({"phone": {"number": ""}}, "update").unwrap_err()
        assert outcome.fields == ["phone.number"]

    def test_nested_objects(self, user_schema):
        data = SimpleNamespace(username="alice", age=None, address=SimpleNamespace(zipcode="1", street="x"), phones=[])
        assert user_schema.validate(data).unwrap_err().fields == ["address.zipcode"]

    def test_scalar_in_nested_field_is_unsupported(self, user_schema):
        """A non-record value fails on the field itself, not on its children."""
        outcome = user_schema.validate({"username": "alice", "address": 5}).unwrap_err()

        assert outcome.fields == ["address"]
        assert outcome[0].error is ValidationErrorKind.UNSUPPORTED_TYPE
        assert outcome[0].rule_kind is RuleKind.NESTED
        assert outcome[0].params == {"type": "int"}

    def test_list_in_nested_record_field_is_unsupported(self, user_schema):
        outcome = user_schema.validate({"username": "alice", "address": [{"zipcode": "12345"}]}).unwrap_err()
        assert outcome.fields == ["address"]
        assert outcome[0].error is ValidationErrorKind.UNSUPPORTED_TYPE

    def test_string_in_nested_collection_is_unsupported(self, user_schema):
        """The shape check runs before the element-count rule."""
        for value in ("ab", "2"):
            outcome = user_schema.validate({"username": "alice", "phones": value}).unwrap_err()

            assert outcome.fields == ["phones"]
            assert outcome[0].error is ValidationErrorKind.UNSUPPORTED_TYPE

    def test_scalar_element_is_indexed(self, user_schema):
        data = {"username": "alice", "phones": [{"number": "5551234"}, 7, {"number": "1"}]}

        outcome = user_schema.validate(data).unwrap_err()
        assert outcome.fields == ["phones[1]", "phones[2].number"]
        assert outcome[0].error is ValidationErrorKind.UNSUPPORTED_TYPE

    def test_builtin_methods_are_not_fields(self):
        """Attribute reads skip builtins, so a list's count() is not a field value."""
        schema = SchemaBuilder("Tally").field("count", rules("Count").not_null()).build()

        outcome = schema.validate([1, 2, 3]).unwrap_err()
        assert outcome.fields == ["count"]
        assert outcome[0].error is ValidationErrorKind.NOT_NULL


class TestOutcome:
    """Tests for outcome serialization and the raising variant."""

    def test_validate_or_raise(self, user_schema):
        with pytest.raises(ValidationError) as exc_info:
            user_schema.validate_or_raise({"username": "ab", "age": 200})

        assert len(exc_info.value.failures) == 2
        assert "2 errors" in str(exc_info.value)

    def test_validate_or_raise_passes_silently(self, user_schema):
        assert user_schema.validate_or_raise({"username": "alice"}) is None

    def test_to_dict(self, user_schema):
        payload = user_schema.validate({"username": "ab", "age": 200}).unwrap_err().to_dict()

        assert payload["error"]["type"] == "validation_error"
        assert payload["error"]["error_count"] == 2
        assert [e["field"] for e in payload["error"]["errors"]] == ["username", "age"]

    def test_to_app_error_single(self, user_schema):
        app_error = user_schema.validate({"username": "ab"}).unwrap_err().to_app_error()

        assert app_error.code is ErrorCode.E2006_INVALID_LENGTH
        assert app_error.code.category == "validation"
        assert app_error.metadata["field"] == "username"

    def test_to_app_error_many(self, user_schema):
        app_error = user_schema.validate({"username": "ab", "age": 200}).unwrap_err().to_app_error()

        assert app_error.code is ErrorCode.E2000_VALIDATION_GENERIC
        assert app_error.metadata["error_count"] == 2

    def test_describe(self, user_schema):
        described = user_schema.describe()

        assert described["record"] == "User"
        assert described["fields"][0]["rules"] == ["not_null", "length_range[3, 20]"]
        assert described["fields"][3]["nested"] == "Phone"
        assert described["groups"]["update"] == ["age"]


class TestValidationContext:
    """Tests for validating loose parameters one by one."""

    def test_context_raises_on_exit(self):
        with pytest.raises(ValidationError) as exc_info:
            with ValidationContext() as ctx:
                ctx.validate("page", "0", rules("Page").min(1))
                ctx.validate("size", "500", rules("Size").max(100))

        assert exc_info.value.outcome.fields == ["page", "size"]

    def test_context_fail_fast_stops(self):
        with pytest.raises(ValidationError) as exc_info:
            with ValidationContext(mode=ValidationMode.FAIL_FAST) as ctx:
                assert not ctx.validate("page", "0", rules("Page").min(1))
                assert not ctx.validate("size", "500", rules("Size").max(100))

        assert exc_info.value.outcome.fields == ["page"]

    def test_context_passes(self):
        with ValidationContext() as ctx:
            assert ctx.validate("page", "1", rules("Page").min(1))
        assert not ctx.has_errors
