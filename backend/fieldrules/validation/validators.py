"""Rule Executor

Evaluates one raw value against one RuleSet, in rule order, and stops at the
first failing rule (fail-fast per field). Record-level aggregation across
fields lives in schema.py.

Evaluation:
- NOT_NULL rejects None, blank strings and configured null literals.
- An absent (None) value that NOT_NULL does not reject skips every other rule.
- EXIST_* rules skip the empty string.
- Length rules count characters (code points) or collection elements.
- Numeric rules coerce the value once to the field's numeric type; a value
  that cannot be coerced stops the field with NUMBER_FORMAT.
- Rules that cannot apply to the value's type fail with UNSUPPORTED_TYPE.
- A nested field must hold a record (a collection of records for collection
  fields); anything else fails with UNSUPPORTED_TYPE before its rules run.
"""
from __future__ import annotations

from collections.abc import Mapping, Set
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from fieldrules.config import settings
from fieldrules.errors import Err, ErrorCode, Ok, Result

from .coercion import coerce_number, is_number
from .errors import ValidationErrorKind, ValidationFailure
from .formats import DateTimeFormat
from .rules import Rule, RuleKind, RuleSet

if TYPE_CHECKING:
    from .schema import FieldDescriptor

_UNPARSED = object()
_SCALARS = (str, bytes, bytearray, int, float, complex, Decimal, date, time)


def is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, Set))


def is_text(value: Any) -> bool:
    return isinstance(value, str)


def is_record(value: Any) -> bool:
    """A mapping, or an object whose fields can be read as attributes."""
    if isinstance(value, Mapping): return True
    return not (is_collection(value) or isinstance(value, _SCALARS))


@dataclass(frozen=True, slots=True)
class _Target:
    """Naming and typing facts about the field being checked."""
    name: str
    desc: str
    numeric_type: type | None = None
    sensitive: bool = False


class Validator:
    """Stateless executor for RuleSets.

    Holds only configuration (the null literals); safe to share between
    threads and tasks.
    """

    def __init__(self, null_literals: frozenset[str] | set[str] | list[str] | None = None):
        literals = settings.NULL_LITERALS if null_literals is None else null_literals
        self.null_literals = frozenset(s.lower() for s in literals)
        self._checks: dict[RuleKind, Callable[..., ValidationFailure | None]] = {
            RuleKind.LENGTH: self._check_length,
            RuleKind.LENGTH_RANGE: self._check_length,
            RuleKind.EXIST_LENGTH: self._check_length,
            RuleKind.EXIST_LENGTH_RANGE: self._check_length,
            RuleKind.DATE_FORMAT: self._check_date_format,
            RuleKind.CUSTOM: self._check_custom,
        }

    def is_null(self, value: Any) -> bool:
        if value is None: return True
        if isinstance(value, str):
            return not value.strip() or value.strip().lower() in self.null_literals
        return False

    def validate_value(self, raw: Any, rule_set: RuleSet, field: FieldDescriptor | None = None) -> Result[None, ValidationFailure]:
        """Check one raw value. Returns Ok(None) or Err(first failure)."""
        target = self._target(rule_set, field)

        if raw is None:
            if rule_set.has_not_null:
                return Err(self._fail(target, Rule.not_null(), ValidationErrorKind.NOT_NULL,
                    f"{target.desc} must not be empty", raw))
            return Ok(None)

        # a null-ish string on a not_null field is reported as NOT_NULL below
        if field is not None and field.is_nested and not (rule_set.has_not_null and self.is_null(raw)):
            shape = self.validate_nested_shape(raw, field)
            if shape.is_err(): return shape

        number: Any = _UNPARSED
        for rule in rule_set.rules:
            if rule.kind is RuleKind.NOT_NULL:
                if self.is_null(raw):
                    return Err(self._fail(target, rule, ValidationErrorKind.NOT_NULL,
                        f"{target.desc} must not be empty", raw))
                continue

            if rule.kind.is_exist and raw == "":
                continue

            if rule.kind.is_numeric:
                if rule.kind in (RuleKind.MIN, RuleKind.MAX) and is_collection(raw):
                    failure = self._check_count(target, rule, raw)
                else:
                    if number is _UNPARSED:
                        parsed = self._parse_number(target, rule, raw)
                        if parsed.is_err(): return parsed
                        number = parsed.unwrap()
                    failure = self._check_number(target, rule, raw, number)
            else:
                failure = self._checks[rule.kind](target, rule, raw)

            if failure is not None:
                return Err(failure)

        return Ok(None)

    def validate_nested_shape(self, raw: Any, field: FieldDescriptor, *, element: bool = False) -> Result[None, ValidationFailure]:
        """Check that a nested field holds a record, or a collection of records.

        With element=True, `raw` is one element of a nested collection and
        must itself be a record.
        """
        if field.is_collection and not element:
            if is_collection(raw): return Ok(None)
            expected = "a collection of records"
        else:
            if is_record(raw): return Ok(None)
            expected = "a record"

        target = self._target(field.rule_set, field)
        type_name = type(raw).__name__
        return Err(self._fail(target, Rule(RuleKind.NESTED), ValidationErrorKind.UNSUPPORTED_TYPE,
            f"{target.desc} must be {expected}, got {type_name}", raw, type=type_name))

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def _check_length(self, target: _Target, rule: Rule, raw: Any) -> ValidationFailure | None:
        if is_text(raw):
            unit = "characters"
        elif is_collection(raw):
            unit = "items"
        else:
            return self._unsupported(target, rule, raw)

        size = len(raw)
        if rule.kind in (RuleKind.LENGTH, RuleKind.EXIST_LENGTH):
            expected = rule.param("expected")
            if size != expected:
                return self._fail(target, rule, ValidationErrorKind.LENGTH,
                    f"{target.desc} length must be exactly {expected} {unit}", raw, expected=expected, actual=size)
            return None

        lo, hi = rule.param("min"), rule.param("max")
        if not lo <= size <= hi:
            return self._fail(target, rule, ValidationErrorKind.LENGTH,
                f"{target.desc} length must be between {lo}~{hi} {unit}", raw, min=lo, max=hi, actual=size)
        return None

    def _check_count(self, target: _Target, rule: Rule, raw: Any) -> ValidationFailure | None:
        size = len(raw)
        if rule.kind is RuleKind.MIN and size < (bound := rule.param("min")):
            return self._fail(target, rule, ValidationErrorKind.LENGTH,
                f"{target.desc} must contain at least {bound} items", raw, min=bound, actual=size)
        if rule.kind is RuleKind.MAX and size > (bound := rule.param("max")):
            return self._fail(target, rule, ValidationErrorKind.LENGTH,
                f"{target.desc} must contain at most {bound} items", raw, max=bound, actual=size)
        return None

    def _check_date_format(self, target: _Target, rule: Rule, raw: Any) -> ValidationFailure | None:
        fmt: DateTimeFormat = rule.param("format")
        if isinstance(raw, (date, time)):
            valid = fmt.accepts_instance(raw)
        elif is_text(raw):
            valid = fmt.matches(raw)
        else:
            return self._unsupported(target, rule, raw)

        if not valid:
            return self._fail(target, rule, ValidationErrorKind.FORMAT,
                f"{target.desc} has an invalid format, expected {fmt.value} (e.g. {fmt.example})", raw,
                format=fmt.value)
        return None

    def _check_custom(self, target: _Target, rule: Rule, raw: Any) -> ValidationFailure | None:
        name = rule.param("name")
        try:
            verdict = rule.check(raw)
        except Exception as e:
            return self._fail(target, rule, ValidationErrorKind.CUSTOM,
                f"{target.desc} failed check {name}: {e}", raw, check=name)

        if verdict is None or verdict is True: return None
        message = verdict if isinstance(verdict, str) else f"{target.desc} failed check {name}"
        return self._fail(target, rule, ValidationErrorKind.CUSTOM, message, raw, check=name)

    def _parse_number(self, target: _Target, rule: Rule, raw: Any) -> Result[Any, ValidationFailure]:
        if is_collection(raw) or isinstance(raw, Mapping) or not (is_text(raw) or is_number(raw)):
            return Err(self._unsupported(target, rule, raw))

        coerced = coerce_number(raw, target.numeric_type)
        if coerced.is_ok(): return coerced
        if coerced.unwrap_err().code is ErrorCode.E2004_INVALID_TYPE:
            return Err(self._unsupported(target, rule, raw))
        return Err(self._fail(target, rule, ValidationErrorKind.NUMBER_FORMAT,
            f"{target.desc} is not a valid number", raw))

    def _check_number(self, target: _Target, rule: Rule, raw: Any, number: Any) -> ValidationFailure | None:
        kind, desc = rule.kind, target.desc
        value = _as_decimal(number)

        if kind in (RuleKind.MIN, RuleKind.NUMBER_MIN):
            if value < _as_decimal(bound := rule.param("min")):
                return self._fail(target, rule, ValidationErrorKind.NUMBER_MIN,
                    f"{desc} must not be less than {bound}", raw, min=bound)
        elif kind in (RuleKind.MAX, RuleKind.NUMBER_MAX):
            if value > _as_decimal(bound := rule.param("max")):
                return self._fail(target, rule, ValidationErrorKind.NUMBER_MAX,
                    f"{desc} must not be greater than {bound}", raw, max=bound)
        elif kind is RuleKind.POSITIVE_NUMBER:
            if value <= 0:
                return self._fail(target, rule, ValidationErrorKind.POSITIVE_NUMBER,
                    f"{desc} must be a positive number", raw)
        elif kind is RuleKind.NON_NEGATIVE_NUMBER:
            if value < 0:
                return self._fail(target, rule, ValidationErrorKind.NON_NEGATIVE_NUMBER,
                    f"{desc} must be a non-negative number", raw)
        elif kind is RuleKind.INTEGER:
            if not _is_integral(value):
                return self._fail(target, rule, ValidationErrorKind.INTEGER, f"{desc} must be an integer", raw)
        elif kind is RuleKind.DECIMAL_SCALE:
            if _scale(value) > (scale := rule.param("scale")):
                return self._fail(target, rule, ValidationErrorKind.DECIMAL_SCALE,
                    f"{desc} must not have more than {scale} decimal places", raw, scale=scale)
        elif kind is RuleKind.ODD_NUMBER:
            if not _is_integral(value) or int(value) % 2 != 1:
                return self._fail(target, rule, ValidationErrorKind.ODD_NUMBER, f"{desc} must be an odd number", raw)
        elif kind is RuleKind.EVEN_NUMBER:
            if not _is_integral(value) or int(value) % 2 != 0:
                return self._fail(target, rule, ValidationErrorKind.EVEN_NUMBER, f"{desc} must be an even number", raw)
        elif kind is RuleKind.MULTIPLE_OF:
            factor = rule.param("factor")
            if not _is_multiple(value, _as_decimal(factor)):
                return self._fail(target, rule, ValidationErrorKind.MULTIPLE_OF,
                    f"{desc} must be a multiple of {factor}", raw, factor=factor)
        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _target(rule_set: RuleSet, field: FieldDescriptor | None) -> _Target:
        if field is not None:
            return _Target(name=field.name, desc=field.desc, numeric_type=field.numeric_type, sensitive=field.sensitive)
        name = rule_set.name or rule_set.desc or "value"
        return _Target(name=name, desc=rule_set.desc or name, sensitive=rule_set.sensitive)

    def _unsupported(self, target: _Target, rule: Rule, raw: Any) -> ValidationFailure:
        type_name = type(raw).__name__
        return self._fail(target, rule, ValidationErrorKind.UNSUPPORTED_TYPE,
            f"{target.desc}: type {type_name} does not support rule {rule.kind.value}", raw, type=type_name)

    @staticmethod
    def _fail(target: _Target, rule: Rule, error: ValidationErrorKind, message: str, raw: Any, **params) -> ValidationFailure:
        shown = raw if raw is None or is_text(raw) or is_number(raw) else None
        return ValidationFailure(field=target.name, desc=target.desc, rule_kind=rule.kind, error=error,
            message=message, params=params, actual_value=shown, sensitive=target.sensitive)


def _as_decimal(number: int | float | Decimal) -> Decimal:
    return number if isinstance(number, Decimal) else Decimal(str(number))


def _is_integral(value: Decimal) -> bool:
    return value == value.to_integral_value()


def _scale(value: Decimal) -> int:
    """Significant decimal places; trailing zeros do not count (1.50 has scale 1)."""
    sign, digits, exponent = value.as_tuple()
    if exponent >= 0: return 0
    fraction = digits[exponent:] if len(digits) >= -exponent else (0,) * (-exponent - len(digits)) + digits
    trimmed = len(fraction)
    while trimmed and fraction[trimmed - 1] == 0: trimmed -= 1
    return trimmed


def _coefficient(value: Decimal) -> tuple[int, int]:
    """Unsigned integer coefficient and exponent: Decimal("1.50") -> (150, -2)."""
    _, digits, exponent = value.as_tuple()
    return int("".join(map(str, digits)) or "0"), exponent


def _is_multiple(value: Decimal, factor: Decimal) -> bool:
    """Exact divisibility on the integer coefficients, whatever the exponents."""
    if not (value.is_finite() and factor.is_finite()) or factor == 0: return False
    a, a_exp = _coefficient(value)
    b, b_exp = _coefficient(factor)
    if a == 0: return True
    if a_exp >= b_exp:
        return a * pow(10, a_exp - b_exp, b) % b == 0
    shift = b_exp - a_exp
    # b * 10**shift already exceeds a
    if shift > len(str(a)): return False
    return a % (b * 10 ** shift) == 0


DEFAULT_VALIDATOR = Validator()


def validate_value(raw: Any, rule_set: RuleSet, field: FieldDescriptor | None = None) -> Result[None, ValidationFailure]:
    """Check one raw value with the default validator."""
    return DEFAULT_VALIDATOR.validate_value(raw, rule_set, field)
