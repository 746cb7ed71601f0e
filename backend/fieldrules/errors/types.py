"""Result Types and Error Codes

Ok/Err carry the outcome of a validation pass or a numeric coercion without
raising. AppError is the single-value error shape handed to collaborators
that render errors themselves (HTTP layers, job runners).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, NoReturn, TypeVar, Union, final
from uuid import uuid4

T = TypeVar("T")
E = TypeVar("E")


class ErrorCode(Enum):
    """Error code taxonomy.

    E2xxx: validation failures (data-dependent, returned to the caller)
    E8xxx: schema configuration errors (raised while building schemas)
    """
    # Validation (E2xxx)
    E2000_VALIDATION_GENERIC = 2000
    E2001_REQUIRED_FIELD_MISSING = 2001
    E2003_OUT_OF_RANGE = 2003
    E2004_INVALID_TYPE = 2004
    E2005_CONSTRAINT_VIOLATION = 2005
    E2006_INVALID_LENGTH = 2006
    E2007_INVALID_NUMBER = 2007
    E2012_INVALID_DATE = 2012

    # Schema configuration (E8xxx)
    E8000_CONFIGURATION_GENERIC = 8000
    E8001_LENGTH_RANGE = 8001
    E8002_DATE_FORMAT_NOT_SET = 8002
    E8003_UNKNOWN_DATE_FORMAT = 8003
    E8004_INVALID_RULE_PARAMETER = 8004
    E8010_UNKNOWN_GROUP = 8010
    E8011_UNKNOWN_FIELD = 8011
    E8012_UNRESOLVED_ANNOTATION = 8012
    E8020_RULE_TYPE_MISMATCH = 8020
    E8030_SCHEMA_DOCUMENT = 8030

    @property
    def category(self) -> str:
        return "validation" if self.value < 8000 else "configuration"


@dataclass(frozen=True, slots=True)
class ErrorContext:
    """When an error was produced, plus a short id to find it in the logs."""
    correlation_id: str = field(default_factory=lambda: str(uuid4())[:8])
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True, slots=True)
class AppError:
    """Error code, message and metadata as one value."""
    code: ErrorCode
    message: str
    context: ErrorContext = field(default_factory=ErrorContext)
    metadata: dict = field(default_factory=dict)
    cause: Exception | None = None

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code.name,
                "code_num": self.code.value,
                "message": self.message,
                "category": self.code.category,
                "correlation_id": self.context.correlation_id,
                "timestamp": self.context.timestamp.isoformat(),
                "metadata": self.metadata,
            }
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (correlation_id={self.context.correlation_id})"


@final
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Success variant of Result."""
    value: T

    def is_ok(self) -> bool: return True

    def is_err(self) -> bool: return False

    def unwrap(self) -> T: return self.value

    def unwrap_or(self, default: T) -> T: return self.value

    def unwrap_err(self) -> NoReturn:
        raise ValueError(f"Called unwrap_err on Ok: {self.value!r}")


@final
@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failure variant of Result."""
    error: E

    def is_ok(self) -> bool: return False

    def is_err(self) -> bool: return True

    def unwrap(self) -> NoReturn:
        raise ValueError(f"Called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T: return default

    def unwrap_err(self) -> E: return self.error


Result = Union[Ok[T], Err[E]]
