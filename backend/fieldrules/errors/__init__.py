"""Result containers and the error code taxonomy used across fieldrules.

Usage:
    from fieldrules.errors import Ok, Err

    match schema.validate(payload):
        case Ok(_):
            proceed()
        case Err(outcome):
            reject(outcome.to_dict())
"""
from .types import (
    Result,
    Ok,
    Err,
    AppError,
    ErrorCode,
    ErrorContext,
)

__all__ = [
    "Result",
    "Ok",
    "Err",
    "AppError",
    "ErrorCode",
    "ErrorContext",
]
