"""Rule Model

A Rule is one immutable constraint kind plus its parameters. A RuleSet is the
ordered list of rules for one field, built by chaining:

    USERNAME = rules("Username").not_null().length_range(3, 20)

Broken declarations (min > max, a date format without a tag, a zero
multiple_of factor) raise ConfigurationError subclasses here, at declaration
time, so they can never surface as request-level failures.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Callable

from .errors import (
    DateTimeFormatNotSet,
    InvalidRuleParameter,
    LengthRangeError,
    UnknownDateFormatError,
)
from .formats import DateTimeFormat

Number = int | float | Decimal
CustomCheck = Callable[[Any], "bool | str | None"]


class RuleKind(str, Enum):
    """Closed set of constraint kinds."""
    NOT_NULL = "not_null"
    LENGTH = "length"
    LENGTH_RANGE = "length_range"
    EXIST_LENGTH = "exist_length"
    EXIST_LENGTH_RANGE = "exist_length_range"
    DATE_FORMAT = "date_format"
    MIN = "min"
    MAX = "max"
    NUMBER_MIN = "number_min"
    NUMBER_MAX = "number_max"
    POSITIVE_NUMBER = "positive_number"
    NON_NEGATIVE_NUMBER = "non_negative_number"
    INTEGER = "integer"
    DECIMAL_SCALE = "decimal_scale"
    ODD_NUMBER = "odd_number"
    EVEN_NUMBER = "even_number"
    MULTIPLE_OF = "multiple_of"
    CUSTOM = "custom"
    # implicit on nested fields, never declared
    NESTED = "nested"

    @property
    def is_length(self) -> bool:
        return self in _LENGTH_KINDS

    @property
    def is_exist(self) -> bool:
        return self in (RuleKind.EXIST_LENGTH, RuleKind.EXIST_LENGTH_RANGE)

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_KINDS


_LENGTH_KINDS = frozenset({RuleKind.LENGTH, RuleKind.LENGTH_RANGE, RuleKind.EXIST_LENGTH, RuleKind.EXIST_LENGTH_RANGE})
_NUMERIC_KINDS = frozenset({
    RuleKind.MIN, RuleKind.MAX, RuleKind.NUMBER_MIN, RuleKind.NUMBER_MAX, RuleKind.POSITIVE_NUMBER,
    RuleKind.NON_NEGATIVE_NUMBER, RuleKind.INTEGER, RuleKind.DECIMAL_SCALE, RuleKind.ODD_NUMBER,
    RuleKind.EVEN_NUMBER, RuleKind.MULTIPLE_OF,
})


@dataclass(frozen=True, slots=True)
class Rule:
    """One declared constraint. Build through the classmethods, which check parameters."""
    kind: RuleKind
    params: tuple[tuple[str, Any], ...] = ()
    check: CustomCheck | None = field(default=None, compare=False)

    def param(self, name: str, default: Any = None) -> Any:
        return dict(self.params).get(name, default)

    @property
    def constraint_name(self) -> str:
        """Human-readable constraint name for logs and schema dumps."""
        if not self.params: return self.kind.value
        if self.kind is RuleKind.CUSTOM: return f"custom[{self.param('name')}]"
        return f"{self.kind.value}[{', '.join(str(v) for _, v in self.params)}]"

    def __repr__(self) -> str: return f"Rule({self.constraint_name})"

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def not_null(cls) -> Rule: return cls(RuleKind.NOT_NULL)

    @classmethod
    def length(cls, expected: int) -> Rule:
        _check_length_bound(expected, "length")
        return cls(RuleKind.LENGTH, (("expected", expected),))

    @classmethod
    def length_range(cls, min_length: int, max_length: int) -> Rule:
        _check_length_range(min_length, max_length)
        return cls(RuleKind.LENGTH_RANGE, (("min", min_length), ("max", max_length)))

    @classmethod
    def exist_length(cls, expected: int) -> Rule:
        _check_length_bound(expected, "exist_length")
        return cls(RuleKind.EXIST_LENGTH, (("expected", expected),))

    @classmethod
    def exist_length_range(cls, min_length: int, max_length: int) -> Rule:
        _check_length_range(min_length, max_length)
        return cls(RuleKind.EXIST_LENGTH_RANGE, (("min", min_length), ("max", max_length)))

    @classmethod
    def date_format(cls, fmt: DateTimeFormat | str | None) -> Rule:
        if fmt is None or fmt == "":
            raise DateTimeFormatNotSet("date_format rule declared without a format tag")
        if not isinstance(fmt, DateTimeFormat):
            resolved = DateTimeFormat.lookup(fmt)
            if resolved is None:
                raise UnknownDateFormatError(f"Unknown date format tag: {fmt!r}", tag=fmt,
                    expected=[f.value for f in DateTimeFormat])
            fmt = resolved
        return cls(RuleKind.DATE_FORMAT, (("format", fmt),))

    @classmethod
    def min(cls, value: Number) -> Rule: return cls(RuleKind.MIN, (("min", _number(value, "min")),))

    @classmethod
    def max(cls, value: Number) -> Rule: return cls(RuleKind.MAX, (("max", _number(value, "max")),))

    @classmethod
    def number_min(cls, value: Number) -> Rule:
        return cls(RuleKind.NUMBER_MIN, (("min", _number(value, "number_min")),))

    @classmethod
    def number_max(cls, value: Number) -> Rule:
        return cls(RuleKind.NUMBER_MAX, (("max", _number(value, "number_max")),))

    @classmethod
    def positive(cls) -> Rule: return cls(RuleKind.POSITIVE_NUMBER)

    @classmethod
    def non_negative(cls) -> Rule: return cls(RuleKind.NON_NEGATIVE_NUMBER)

    @classmethod
    def integer(cls) -> Rule: return cls(RuleKind.INTEGER)

    @classmethod
    def decimal_scale(cls, scale: int) -> Rule:
        if isinstance(scale, bool) or not isinstance(scale, int) or scale < 0:
            raise InvalidRuleParameter(f"decimal_scale must be a non-negative integer, got {scale!r}", scale=scale)
        return cls(RuleKind.DECIMAL_SCALE, (("scale", scale),))

    @classmethod
    def odd(cls) -> Rule: return cls(RuleKind.ODD_NUMBER)

    @classmethod
    def even(cls) -> Rule: return cls(RuleKind.EVEN_NUMBER)

    @classmethod
    def multiple_of(cls, factor: Number) -> Rule:
        if _number(factor, "multiple_of") == 0:
            raise InvalidRuleParameter("multiple_of factor cannot be zero", factor=factor)
        return cls(RuleKind.MULTIPLE_OF, (("factor", factor),))

    @classmethod
    def custom(cls, check: CustomCheck, name: str | None = None) -> Rule:
        if not callable(check):
            raise InvalidRuleParameter(f"custom rule requires a callable, got {type(check).__name__}")
        return cls(RuleKind.CUSTOM, (("name", name or getattr(check, "__name__", "custom")),), check)


def _check_length_bound(value: int, rule: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise LengthRangeError(f"{rule} must be a non-negative integer, got {value!r}", value=value)


def _check_length_range(min_length: int, max_length: int) -> None:
    _check_length_bound(min_length, "length_range min")
    _check_length_bound(max_length, "length_range max")
    if min_length > max_length:
        raise LengthRangeError(f"Invalid length range {min_length}~{max_length}: min is greater than max",
            min=min_length, max=max_length)


def _number(value: Any, rule: str) -> Number:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidRuleParameter(f"{rule} requires a numeric bound, got {value!r}", value=value)
    return value


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Ordered rules for one field. Insertion order is evaluation order.

    `name` is filled in by the compiler when a RuleSet is declared inline on
    a record field; `groups` and `sensitive` travel with the declaration.
    """
    desc: str = ""
    rules: tuple[Rule, ...] = ()
    name: str | None = None
    groups: frozenset[str] = frozenset()
    sensitive: bool = False

    def __iter__(self): return iter(self.rules)

    def __len__(self) -> int: return len(self.rules)

    @property
    def kinds(self) -> tuple[RuleKind, ...]: return tuple(r.kind for r in self.rules)

    @property
    def has_not_null(self) -> bool: return RuleKind.NOT_NULL in self.kinds

    def add(self, rule: Rule) -> RuleSet:
        return replace(self, rules=(*self.rules, rule))

    def bind(self, name: str, desc: str | None = None) -> RuleSet:
        """Attach this rule set to a field name, defaulting desc to the name."""
        return replace(self, name=name, desc=desc or self.desc or name)

    def in_groups(self, *groups: str) -> RuleSet:
        return replace(self, groups=self.groups | frozenset(groups))

    # Chainable shortcuts
    def not_null(self) -> RuleSet: return self.add(Rule.not_null())

    def length(self, expected: int) -> RuleSet: return self.add(Rule.length(expected))

    def length_range(self, min_length: int, max_length: int) -> RuleSet:
        return self.add(Rule.length_range(min_length, max_length))

    def exist_length(self, expected: int) -> RuleSet: return self.add(Rule.exist_length(expected))

    def exist_length_range(self, min_length: int, max_length: int) -> RuleSet:
        return self.add(Rule.exist_length_range(min_length, max_length))

    def date_format(self, fmt: DateTimeFormat | str | None) -> RuleSet: return self.add(Rule.date_format(fmt))

    def min(self, value: Number) -> RuleSet: return self.add(Rule.min(value))

    def max(self, value: Number) -> RuleSet: return self.add(Rule.max(value))

    def number_min(self, value: Number) -> RuleSet: return self.add(Rule.number_min(value))

    def number_max(self, value: Number) -> RuleSet: return self.add(Rule.number_max(value))

    def number_range(self, min_value: Number, max_value: Number) -> RuleSet:
        if _number(min_value, "number_range") > _number(max_value, "number_range"):
            raise InvalidRuleParameter(f"Invalid number range {min_value}~{max_value}", min=min_value, max=max_value)
        return self.number_min(min_value).number_max(max_value)

    def positive(self) -> RuleSet: return self.add(Rule.positive())

    def non_negative(self) -> RuleSet: return self.add(Rule.non_negative())

    def integer(self) -> RuleSet: return self.add(Rule.integer())

    def decimal_scale(self, scale: int) -> RuleSet: return self.add(Rule.decimal_scale(scale))

    def odd(self) -> RuleSet: return self.add(Rule.odd())

    def even(self) -> RuleSet: return self.add(Rule.even())

    def multiple_of(self, factor: Number) -> RuleSet: return self.add(Rule.multiple_of(factor))

    def custom(self, check: CustomCheck, name: str | None = None) -> RuleSet:
        return self.add(Rule.custom(check, name))


def rules(desc: str = "", *, groups: tuple[str, ...] | list[str] = (), sensitive: bool = False) -> RuleSet:
    """Start an (unbound) rule declaration for a field."""
    return RuleSet(desc=desc, groups=frozenset(groups), sensitive=sensitive)
