"""Validation Error System

Two disjoint error classes live here:

- Validation failures: expected, data-dependent outcomes. A ValidationFailure
  records one field's first failing rule; a ValidationOutcome is the ordered,
  non-empty list of them. They are returned through Err(...), never raised by
  the engine.
- Configuration errors: broken rule declarations (min > max, missing date
  format, unknown group...). They subclass ConfigurationError and are raised
  while schemas are being built.

Outcome Format (to_dict):
{
    "error": {
        "type": "validation_error",
        "message": "Validation failed",
        "mode": "collect_all",
        "error_count": 1,
        "truncated": false,
        "errors": [
            {
                "field": "address.zipcode",
                "desc": "Zip code",
                "rule": "length_range",
                "constraint": "length",
                "message": "Zip code length must be between 5~10 characters",
                "params": {"min": 5, "max": 10},
                "value": "123"
            }
        ]
    }
}
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterator

from fieldrules.errors import AppError, ErrorCode

if TYPE_CHECKING:
    from .rules import RuleKind, RuleSet


class ValidationMode(str, Enum):
    """Validation accumulation strategy across fields."""
    FAIL_FAST = "fail_fast"
    COLLECT_ALL = "collect_all"


class ValidationErrorKind(str, Enum):
    """What went wrong with a value. Each kind maps to an E2xxx error code."""
    NOT_NULL = "not_null"
    LENGTH = "length"
    FORMAT = "format"
    NUMBER_MIN = "number_min"
    NUMBER_MAX = "number_max"
    NUMBER_FORMAT = "number_format"
    UNSUPPORTED_TYPE = "unsupported_type"
    POSITIVE_NUMBER = "positive_number"
    NON_NEGATIVE_NUMBER = "non_negative_number"
    INTEGER = "integer"
    DECIMAL_SCALE = "decimal_scale"
    ODD_NUMBER = "odd_number"
    EVEN_NUMBER = "even_number"
    MULTIPLE_OF = "multiple_of"
    CUSTOM = "custom"

    @property
    def error_code(self) -> ErrorCode:
        return _KIND_CODES.get(self, ErrorCode.E2005_CONSTRAINT_VIOLATION)


_KIND_CODES: dict[ValidationErrorKind, ErrorCode] = {
    ValidationErrorKind.NOT_NULL: ErrorCode.E2001_REQUIRED_FIELD_MISSING,
    ValidationErrorKind.LENGTH: ErrorCode.E2006_INVALID_LENGTH,
    ValidationErrorKind.FORMAT: ErrorCode.E2012_INVALID_DATE,
    ValidationErrorKind.NUMBER_MIN: ErrorCode.E2003_OUT_OF_RANGE,
    ValidationErrorKind.NUMBER_MAX: ErrorCode.E2003_OUT_OF_RANGE,
    ValidationErrorKind.NUMBER_FORMAT: ErrorCode.E2007_INVALID_NUMBER,
    ValidationErrorKind.UNSUPPORTED_TYPE: ErrorCode.E2004_INVALID_TYPE,
    ValidationErrorKind.POSITIVE_NUMBER: ErrorCode.E2003_OUT_OF_RANGE,
    ValidationErrorKind.NON_NEGATIVE_NUMBER: ErrorCode.E2003_OUT_OF_RANGE,
    ValidationErrorKind.CUSTOM: ErrorCode.E2000_VALIDATION_GENERIC,
}


# ============================================================================
# Validation failures
# ============================================================================

@dataclass(frozen=True, slots=True)
class ValidationFailure:
    """A field's first failing rule.

    - field: qualified path of the offending field (e.g. "phones[1].number")
    - desc: human-readable field description used in messages
    - rule_kind: the declared rule that failed
    - error: what went wrong (a rule kind can yield several, e.g. NUMBER_FORMAT)
    - params: rule parameters relevant to the message ({"min": 3, "max": 20})
    """
    field: str
    desc: str
    rule_kind: RuleKind
    error: ValidationErrorKind
    message: str
    params: dict[str, Any] = field(default_factory=dict)
    actual_value: Any = None
    sensitive: bool = False

    @property
    def code(self) -> ErrorCode:
        return self.error.error_code

    def qualified(self, prefix: str) -> ValidationFailure:
        """Re-root this failure under a parent field ("address" + "zipcode")."""
        path = f"{prefix}{self.field}" if self.field.startswith("[") else f"{prefix}.{self.field}"
        return replace(self, field=path)

    def redacted(self) -> ValidationFailure:
        return replace(self, actual_value="[REDACTED]") if self.sensitive and self.actual_value is not None else self

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for API responses."""
        shown = self.redacted()
        result = {"field": shown.field, "desc": shown.desc, "rule": shown.rule_kind.value,
            "constraint": shown.error.value, "message": shown.message}
        if shown.params: result["params"] = dict(shown.params)
        if shown.actual_value is not None: result["value"] = shown.actual_value
        return result

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True, slots=True)
class ValidationOutcome:
    """Ordered, non-empty account of every field that failed its first rule."""
    failures: tuple[ValidationFailure, ...]
    mode: ValidationMode = ValidationMode.COLLECT_ALL
    record: str | None = None
    message: str = "Validation failed"
    truncated: bool = False  # more failures existed past max_errors

    def __post_init__(self):
        if not self.failures:
            raise ValueError("ValidationOutcome requires at least one failure")

    def __len__(self) -> int: return len(self.failures)

    def __iter__(self) -> Iterator[ValidationFailure]: return iter(self.failures)

    def __getitem__(self, index: int) -> ValidationFailure: return self.failures[index]

    def __str__(self) -> str:
        if len(self.failures) == 1: return str(self.failures[0])
        return f"{self.message} ({len(self.failures)} errors)"

    @property
    def first_failure(self) -> ValidationFailure: return self.failures[0]

    @property
    def fields(self) -> list[str]: return [f.field for f in self.failures]

    @property
    def field_errors(self) -> dict[str, ValidationFailure]:
        """Failures keyed by field path (one per field under fail-fast-per-field)."""
        return {f.field: f for f in self.failures}

    def get(self, field_path: str) -> ValidationFailure | None:
        return next((f for f in self.failures if f.field == field_path), None)

    def to_dict(self) -> dict[str, Any]:
        """Envelope-neutral structure for external serializers."""
        return {"error": {"type": "validation_error", "message": self.message, "mode": self.mode.value,
            "error_count": len(self.failures), "truncated": self.truncated,
            "errors": [f.to_dict() for f in self.failures]}}

    def to_app_error(self) -> AppError:
        """Convert to AppError for collaborators using the error taxonomy."""
        if len(self.failures) == 1 and not self.truncated:
            f = self.failures[0].redacted()
            return AppError(code=f.code, message=f"{f.field}: {f.message}",
                metadata={"field": f.field, "rule": f.rule_kind.value, "constraint": f.error.value,
                    "params": dict(f.params), "value": f.actual_value})

        return AppError(code=ErrorCode.E2000_VALIDATION_GENERIC,
            message=f"Validation failed: {len(self.failures)} errors",
            metadata={"validation_mode": self.mode.value, "error_count": len(self.failures), "truncated": self.truncated,
                "errors": [f.to_dict() for f in self.failures]})


@dataclass(eq=False)
class ValidationError(Exception):
    """Exception wrapper for callers that prefer raising over Result values."""
    outcome: ValidationOutcome

    def __post_init__(self):
        super().__init__(str(self.outcome))

    def __str__(self) -> str: return str(self.outcome)

    @property
    def failures(self) -> tuple[ValidationFailure, ...]: return self.outcome.failures


# ============================================================================
# Accumulators
# ============================================================================

class ValidationErrorAccumulator(ABC):
    """Abstract base for error accumulation strategies."""

    @abstractmethod
    def add_error(self, failure: ValidationFailure) -> bool:
        """Add a failure. Returns True if validation should continue with the next field."""

    @abstractmethod
    def get_errors(self) -> list[ValidationFailure]:
        """Get accumulated failures."""

    @property
    @abstractmethod
    def mode(self) -> ValidationMode:
        """Get the accumulation mode."""

    @property
    def truncated(self) -> bool: return False

    def has_errors(self) -> bool: return bool(self.get_errors())

    def to_outcome(self, record: str | None = None) -> ValidationOutcome | None:
        """Convert to ValidationOutcome if failures exist."""
        if not self.has_errors(): return None
        return ValidationOutcome(failures=tuple(self.get_errors()), mode=self.mode, record=record,
            truncated=self.truncated)


@dataclass
class FailFastAccumulator(ValidationErrorAccumulator):
    """Fail-fast accumulator: stops at the first failing field."""
    _error: ValidationFailure | None = None

    @property
    def mode(self) -> ValidationMode: return ValidationMode.FAIL_FAST

    def add_error(self, failure: ValidationFailure) -> bool:
        if self._error is None: self._error = failure
        return False

    def get_errors(self) -> list[ValidationFailure]: return [self._error] if self._error else []


@dataclass
class CollectAllAccumulator(ValidationErrorAccumulator):
    """Collect-all accumulator: gathers each field's first failure.

    With max_errors set, the first failure past the cap is dropped, marks the
    accumulator truncated and stops the pass.
    """
    _errors: list[ValidationFailure] = field(default_factory=list)
    max_errors: int | None = None
    _truncated: bool = False

    @property
    def mode(self) -> ValidationMode: return ValidationMode.COLLECT_ALL

    @property
    def truncated(self) -> bool: return self._truncated

    def add_error(self, failure: ValidationFailure) -> bool:
        if self.max_errors is not None and len(self._errors) >= self.max_errors:
            self._truncated = True
            return False
        self._errors.append(failure)
        return True

    def get_errors(self) -> list[ValidationFailure]: return self._errors.copy()


def create_accumulator(mode: ValidationMode, max_errors: int | None = None) -> ValidationErrorAccumulator:
    """Factory for creating accumulators based on mode."""
    return FailFastAccumulator() if mode == ValidationMode.FAIL_FAST else CollectAllAccumulator(max_errors=max_errors)


class ValidationContext:
    """Context manager for validating loose parameters one by one.

    Usage:
        with ValidationContext(mode=ValidationMode.COLLECT_ALL) as ctx:
            ctx.validate("username", params.get("username"), USERNAME_RULES)
            ctx.validate("age", params.get("age"), AGE_RULES)
        # Raises ValidationError if any field failed
    """

    def __init__(self, mode: ValidationMode = ValidationMode.COLLECT_ALL, max_errors: int | None = None):
        self.accumulator = create_accumulator(mode, max_errors)
        self._stopped = False

    def __enter__(self) -> ValidationContext: return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None and (outcome := self.accumulator.to_outcome()) is not None:
            raise ValidationError(outcome)
        return False

    def validate(self, field_name: str, value: Any, rule_set: RuleSet) -> bool:
        """Validate one raw value. Returns True if it passed."""
        from .validators import validate_value

        if self._stopped: return False
        result = validate_value(value, rule_set)
        if result.is_ok(): return True
        failure = replace(result.unwrap_err(), field=field_name)
        self._stopped = not self.accumulator.add_error(failure)
        return False

    @property
    def has_errors(self) -> bool: return self.accumulator.has_errors()

    @property
    def outcome(self) -> ValidationOutcome | None: return self.accumulator.to_outcome()


# ============================================================================
# Configuration errors (raised at schema-build time)
# ============================================================================

class ConfigurationError(Exception):
    """A rule or schema declaration is broken. Never shown to end users."""
    code: ErrorCode = ErrorCode.E8000_CONFIGURATION_GENERIC

    def __init__(self, message: str, **metadata: Any):
        super().__init__(message)
        self.message = message
        self.metadata = metadata

    def to_app_error(self) -> AppError:
        return AppError(code=self.code, message=self.message, metadata=dict(self.metadata), cause=self)


class LengthRangeError(ConfigurationError):
    """A length range was declared with min > max (or a negative bound)."""
    code = ErrorCode.E8001_LENGTH_RANGE


class DateTimeFormatNotSet(ConfigurationError):
    """A date_format rule was declared without a format tag."""
    code = ErrorCode.E8002_DATE_FORMAT_NOT_SET


class UnknownDateFormatError(ConfigurationError):
    code = ErrorCode.E8003_UNKNOWN_DATE_FORMAT


class InvalidRuleParameter(ConfigurationError):
    code = ErrorCode.E8004_INVALID_RULE_PARAMETER


class UnknownGroupError(ConfigurationError):
    """Validation was requested for a group the schema does not declare."""
    code = ErrorCode.E8010_UNKNOWN_GROUP


class UnknownFieldError(ConfigurationError):
    """A group (or lookup) names a field the schema does not declare."""
    code = ErrorCode.E8011_UNKNOWN_FIELD


class UnresolvedAnnotationError(ConfigurationError):
    """A record class annotation names something that is not defined."""
    code = ErrorCode.E8012_UNRESOLVED_ANNOTATION


class RuleTypeMismatchError(ConfigurationError):
    """A rule was attached to a field whose declared type cannot satisfy it."""
    code = ErrorCode.E8020_RULE_TYPE_MISMATCH


class SchemaDocumentError(ConfigurationError):
    """A declarative (YAML) schema document is malformed."""
    code = ErrorCode.E8030_SCHEMA_DOCUMENT
