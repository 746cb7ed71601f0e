# Core module exports
from fieldrules.config import settings, get_settings
from fieldrules.logging import (
    configure_logging,
    get_logger,
    bind_context,
    clear_context,
    compiler_logger,
    validator_logger,
)
from fieldrules.errors import Result, Ok, Err, AppError, ErrorCode
from fieldrules.validation import (
    DateTimeFormat,
    Nested,
    RecordSchema,
    SchemaBuilder,
    StandardGroup,
    Validatable,
    ValidationError,
    ValidationMode,
    ValidationOutcome,
    compile_schema,
    load_schemas,
    rules,
    validate_value,
)

__version__ = "0.1.0"
