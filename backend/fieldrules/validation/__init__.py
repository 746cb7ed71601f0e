"""Declarative Parameter Validation

Rules are declared once per field, compiled into immutable RecordSchemas,
and evaluated at request time. Each field stops at its first failing rule;
failures are aggregated across fields into a ValidationOutcome returned via
Err(...). Broken declarations raise ConfigurationError at build time.

Key Features:
- Chainable RuleSets: rules("Username").not_null().length_range(3, 20)
- Reflection over typing.Annotated on dataclasses, pydantic models and plain classes
- Explicit SchemaBuilder and YAML schema documents
- Validation groups (create, update, query, ...) as plain data
- Nested records and collections with qualified failure paths
- Fail-fast or collect-all accumulation

Usage:
    from fieldrules.validation import Validatable, rules, StandardGroup

    @dataclass
    class UserForm(Validatable):
        username: Annotated[str, rules("Username", groups=["create"]).not_null().length_range(3, 20)]
        age: Annotated[int | None, rules("Age").min(0).max(150)] = None

    result = UserForm(username="ab", age=200).validate()
    if result.is_err():
        return error_response(result.unwrap_err().to_dict())
"""

from .formats import DateTimeFormat

from .rules import (
    Rule,
    RuleKind,
    RuleSet,
    rules,
)

from .errors import (
    ValidationMode,
    ValidationErrorKind,
    ValidationFailure,
    ValidationOutcome,
    ValidationError,
    ValidationErrorAccumulator,
    FailFastAccumulator,
    CollectAllAccumulator,
    create_accumulator,
    ValidationContext,
    ConfigurationError,
    LengthRangeError,
    DateTimeFormatNotSet,
    UnknownDateFormatError,
    InvalidRuleParameter,
    UnknownGroupError,
    UnknownFieldError,
    UnresolvedAnnotationError,
    RuleTypeMismatchError,
    SchemaDocumentError,
)

from .coercion import (
    CoercionRule,
    StringToInt,
    StringToFloat,
    StringToDecimal,
    coerce_number,
)

from .validators import (
    Validator,
    DEFAULT_VALIDATOR,
    validate_value,
)

from .groups import (
    StandardGroup,
    GroupMap,
    classify,
)

from .schema import (
    FieldDescriptor,
    RecordSchema,
    Validatable,
)

from .compiler import (
    Nested,
    SchemaBuilder,
    compile_schema,
    schema_of,
)

from .loader import load_schemas

__all__ = [
    # Rules
    "DateTimeFormat",
    "Rule",
    "RuleKind",
    "RuleSet",
    "rules",
    # Errors
    "ValidationMode",
    "ValidationErrorKind",
    "ValidationFailure",
    "ValidationOutcome",
    "ValidationError",
    "ValidationErrorAccumulator",
    "FailFastAccumulator",
    "CollectAllAccumulator",
    "create_accumulator",
    "ValidationContext",
    "ConfigurationError",
    "LengthRangeError",
    "DateTimeFormatNotSet",
    "UnknownDateFormatError",
    "InvalidRuleParameter",
    "UnknownGroupError",
    "UnknownFieldError",
    "UnresolvedAnnotationError",
    "RuleTypeMismatchError",
    "SchemaDocumentError",
    # Coercion
    "CoercionRule",
    "StringToInt",
    "StringToFloat",
    "StringToDecimal",
    "coerce_number",
    # Execution
    "Validator",
    "DEFAULT_VALIDATOR",
    "validate_value",
    # Groups
    "StandardGroup",
    "GroupMap",
    "classify",
    # Schemas
    "FieldDescriptor",
    "RecordSchema",
    "Validatable",
    "Nested",
    "SchemaBuilder",
    "compile_schema",
    "schema_of",
    "load_schemas",
]
