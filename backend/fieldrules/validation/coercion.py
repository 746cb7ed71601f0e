"""Explicit Numeric Coercion

Numeric rules receive raw values that are often strings lifted straight out
of a query string or form. Coercion to the field's declared numeric type is
explicit and strict:

- no surrounding whitespace, no digit separators, no NaN/Infinity
- booleans are never numbers
- a float with a fractional part never becomes an int silently
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
import math
import re
from typing import Any, Generic, TypeVar

from fieldrules.errors import AppError, Err, ErrorCode, Ok, Result

T = TypeVar("T")

_INT_PATTERN = re.compile(r"^[+-]?\d+$")
_DECIMAL_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")


@dataclass(frozen=True, slots=True)
class CoercionRule(ABC, Generic[T]):
    """Coerces a raw scalar to one numeric type."""

    @property
    @abstractmethod
    def target_type(self) -> type[T]:
        """Type this rule coerces to."""

    @abstractmethod
    def coerce(self, value: Any) -> Result[T, AppError]:
        """Coerce value to target type. Returns Result."""

    def __call__(self, value: Any) -> Result[T, AppError]:
        return self.coerce(value)

    def _reject(self, value: Any, reason: str, code: ErrorCode = ErrorCode.E2007_INVALID_NUMBER) -> Err[AppError]:
        return Err(AppError(code=code, message=f"Cannot coerce {value!r} to {self.target_type.__name__}: {reason}",
            metadata={"value": value, "target": self.target_type.__name__}))


@dataclass(frozen=True, slots=True)
class StringToInt(CoercionRule[int]):
    """Coerce strings and integral numbers to int."""

    @property
    def target_type(self) -> type[int]:
        return int

    def coerce(self, value: Any) -> Result[int, AppError]:
        if isinstance(value, bool):
            return self._reject(value, "booleans are not numbers", ErrorCode.E2004_INVALID_TYPE)
        if isinstance(value, int):
            return Ok(value)
        if isinstance(value, str):
            if not _INT_PATTERN.match(value):
                return self._reject(value, "not an integer literal")
            return Ok(int(value))
        if isinstance(value, (float, Decimal)):
            if not _is_finite(value):
                return self._reject(value, "not a finite number")
            if value != int(value):
                return self._reject(value, "has a fractional part")
            return Ok(int(value))
        return self._reject(value, f"unsupported type {type(value).__name__}", ErrorCode.E2004_INVALID_TYPE)


@dataclass(frozen=True, slots=True)
class StringToFloat(CoercionRule[float]):
    """Coerce strings and numbers to float."""

    @property
    def target_type(self) -> type[float]:
        return float

    def coerce(self, value: Any) -> Result[float, AppError]:
        if isinstance(value, bool):
            return self._reject(value, "booleans are not numbers", ErrorCode.E2004_INVALID_TYPE)
        if isinstance(value, str):
            if not _DECIMAL_PATTERN.match(value):
                return self._reject(value, "not a decimal literal")
            value = float(value)
        if isinstance(value, (int, float, Decimal)):
            if not _is_finite(value):
                return self._reject(value, "not a finite number")
            return Ok(float(value))
        return self._reject(value, f"unsupported type {type(value).__name__}", ErrorCode.E2004_INVALID_TYPE)


@dataclass(frozen=True, slots=True)
class StringToDecimal(CoercionRule[Decimal]):
    """Coerce strings and numbers to Decimal, keeping the written digits."""

    @property
    def target_type(self) -> type[Decimal]:
        return Decimal

    def coerce(self, value: Any) -> Result[Decimal, AppError]:
        if isinstance(value, bool):
            return self._reject(value, "booleans are not numbers", ErrorCode.E2004_INVALID_TYPE)
        if isinstance(value, str):
            if not _DECIMAL_PATTERN.match(value):
                return self._reject(value, "not a decimal literal")
            try:
                return Ok(Decimal(value))
            except InvalidOperation:
                return self._reject(value, "not a decimal literal")
        if isinstance(value, (int, float, Decimal)):
            if not _is_finite(value):
                return self._reject(value, "not a finite number")
            # str() keeps the shortest repr of a float, so 0.1 stays 0.1
            return Ok(value if isinstance(value, Decimal) else Decimal(str(value)))
        return self._reject(value, f"unsupported type {type(value).__name__}", ErrorCode.E2004_INVALID_TYPE)


def _is_finite(value: int | float | Decimal) -> bool:
    if isinstance(value, Decimal): return value.is_finite()
    if isinstance(value, float): return math.isfinite(value)
    return True


NUMERIC_COERCERS: dict[type, CoercionRule] = {
    int: StringToInt(),
    float: StringToFloat(),
    Decimal: StringToDecimal(),
}


def coerce_number(value: Any, numeric_type: type | None = None) -> Result[int | float | Decimal, AppError]:
    """Coerce a raw value to the declared numeric type (Decimal when undeclared)."""
    return NUMERIC_COERCERS.get(numeric_type or Decimal, NUMERIC_COERCERS[Decimal]).coerce(value)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)
