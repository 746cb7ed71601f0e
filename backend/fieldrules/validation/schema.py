"""Record Schemas and the Validatable Contract

A RecordSchema is the compiled, immutable description of one record type:
its fields in declaration order, each with a RuleSet, plus the record's
GroupMap. Compile it once (see compiler.py or loader.py) and share it.

Validation aggregates across fields while each field stops at its first
failing rule:

    schema.validate({"username": "ab", "age": 200})
    -> Err(ValidationOutcome(username: length..., age: must not be greater than 150))

Nested records are validated recursively and their failures are re-rooted
under the parent path ("address.zipcode", "phones[1].number").
"""
from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Union

from fieldrules.config import settings
from fieldrules.errors import Err, Ok, Result
from fieldrules.logging import validator_logger

from .errors import (
    ConfigurationError,
    UnknownFieldError,
    ValidationError,
    ValidationErrorAccumulator,
    ValidationMode,
    ValidationOutcome,
    create_accumulator,
)
from .groups import GroupMap, classify
from .rules import RuleSet
from .validators import DEFAULT_VALIDATOR, Validator, is_collection, is_record

logger = validator_logger()

# A nested target: a compiled schema, a record class, or a zero-arg resolver.
NestedTarget = Union["RecordSchema", type, Callable[[], "RecordSchema"]]


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """One declared field of a record."""
    name: str
    desc: str
    rule_set: RuleSet = field(default_factory=RuleSet)
    is_optional: bool = False
    is_collection: bool = False
    nested_type: NestedTarget | None = None
    value_type: type | None = None
    numeric_type: type | None = None
    groups: frozenset[str] = frozenset()
    sensitive: bool = False

    @property
    def is_nested(self) -> bool: return self.nested_type is not None

    @property
    def nested_schema(self) -> RecordSchema | None:
        """Resolve the nested target lazily, so records may reference themselves."""
        target = self.nested_type
        if target is None or isinstance(target, RecordSchema): return target
        if isinstance(target, type):
            from .compiler import schema_of  # Avoid circular import
            return schema_of(target)
        return target()


def _read(data: Any, name: str) -> Any:
    if isinstance(data, Mapping): return data.get(name)
    # builtins such as lists expose methods, not fields
    return getattr(data, name, None) if is_record(data) else None


def _join(prefix: str, name: str) -> str:
    return f"{prefix}.{name}" if prefix else name


@dataclass(frozen=True, slots=True)
class RecordSchema:
    """Compiled rule description of one record type."""
    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    groups: GroupMap = field(default_factory=GroupMap)

    def __post_init__(self):
        seen: set[str] = set()
        for f in self.fields:
            if f.name in seen:
                raise UnknownFieldError(f"Field {f.name!r} is declared twice on {self.name}", record=self.name, field=f.name)
            seen.add(f.name)
        self.groups.check_fields(seen, record=self.name)

    @property
    def field_names(self) -> tuple[str, ...]: return tuple(f.name for f in self.fields)

    def get_field(self, name: str) -> FieldDescriptor:
        for f in self.fields:
            if f.name == name: return f
        raise UnknownFieldError(f"{self.name} has no field {name!r}", record=self.name, field=name)

    def validate(
        self,
        data: Any,
        group: str | None = None,
        *,
        mode: ValidationMode | str | None = None,
        max_errors: int | None = None,
        validator: Validator | None = None,
    ) -> Result[None, ValidationOutcome]:
        """Validate a record (mapping or object) against this schema.

        Returns Ok(None) when every selected field passes, otherwise
        Err(ValidationOutcome) listing each failing field's first failure in
        declaration order. An undeclared group raises UnknownGroupError.
        """
        mode = ValidationMode(mode or settings.VALIDATION_MODE)
        accumulator = create_accumulator(mode, settings.MAX_ERRORS if max_errors is None else max_errors)

        try:
            self.collect(data, group, accumulator, validator=validator)
        except ConfigurationError as e:
            logger.error("configuration_error", record=self.name, group=group, error=str(e), code=e.code.value)
            raise

        outcome = accumulator.to_outcome(record=self.name)
        if outcome is None: return Ok(None)

        logger.debug("validation_failed", record=self.name, group=group, mode=mode.value,
            error_count=len(outcome), fields=outcome.fields)
        return Err(outcome)

    def validate_with_group(self, data: Any, group: str, **kwargs) -> Result[None, ValidationOutcome]:
        return self.validate(data, group, **kwargs)

    def validate_or_raise(self, data: Any, group: str | None = None, **kwargs) -> None:
        """Like validate(), but raises ValidationError on failure."""
        result = self.validate(data, group, **kwargs)
        if result.is_err(): raise ValidationError(result.unwrap_err())

    def collect(
        self,
        data: Any,
        group: str | None,
        accumulator: ValidationErrorAccumulator,
        *,
        prefix: str = "",
        validator: Validator | None = None,
    ) -> bool:
        """Feed failures for `data` into an accumulator.

        Returns False once the accumulator asks to stop (fail-fast or the
        max_errors cap).
        """
        validator = validator or DEFAULT_VALIDATOR

        for fd in classify(self, group):
            raw = _read(data, fd.name)
            result = validator.validate_value(raw, fd.rule_set, fd)
            if result.is_err():
                failure = result.unwrap_err()
                if not accumulator.add_error(failure.qualified(prefix) if prefix else failure): return False
                continue

            if fd.is_nested and raw is not None:
                if not self._collect_nested(fd, raw, group, accumulator, _join(prefix, fd.name), validator):
                    return False
        return True

    @staticmethod
    def _collect_nested(fd: FieldDescriptor, raw: Any, group: str | None,
                        accumulator: ValidationErrorAccumulator, path: str, validator: Validator) -> bool:
        nested = fd.nested_schema
        # a group the child does not declare means the child is validated in full
        nested_group = group if group is not None and group in nested.groups else None

        if fd.is_collection and is_collection(raw):
            items = [(f"{path}[{i}]", item) for i, item in enumerate(raw)]
        else:
            items = [(path, raw)]

        for item_path, item in items:
            if item is None: continue
            shape = validator.validate_nested_shape(item, fd, element=True)
            if shape.is_err():
                if not accumulator.add_error(replace(shape.unwrap_err(), field=item_path)): return False
                continue
            if not nested.collect(item, nested_group, accumulator, prefix=item_path, validator=validator):
                return False
        return True

    def describe(self) -> dict[str, Any]:
        """Plain-data dump of the schema for logs and debugging."""
        return {
            "record": self.name,
            "fields": [{
                "name": f.name, "desc": f.desc, "optional": f.is_optional, "collection": f.is_collection,
                "nested": f.nested_schema.name if f.is_nested else None,
                "rules": [r.constraint_name for r in f.rule_set.rules],
            } for f in self.fields],
            "groups": {name: sorted(members) for name, members in self.groups.groups.items()},
        }


class Validatable:
    """Mixin giving a record class the validate/validate_with_group contract.

    The class schema is compiled from its annotations when the class is
    defined; classes whose annotations reference names that do not exist yet
    (self-references, later classes) compile on first use instead.

        @dataclass
        class User(Validatable):
            username: Annotated[str, rules("Username").not_null().length_range(3, 20)]

    With pydantic models put the mixin first: class User(Validatable, BaseModel).
    """
    __record_schema__: ClassVar[RecordSchema | None] = None
    __groups__: ClassVar[Mapping[str, Any]] = {}
    __definition_locals__: ClassVar[dict[str, Any] | None] = None

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        cls.__record_schema__ = None
        frame = sys._getframe(1)
        # names local to the defining function, for annotations that refer to them
        cls.__definition_locals__ = dict(frame.f_locals) if frame.f_locals is not frame.f_globals else None
        from .compiler import compile_on_definition  # Avoid circular import
        compile_on_definition(cls)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs):
        # pydantic fills model_fields only after __init_subclass__ has run
        super().__pydantic_init_subclass__(**kwargs)
        from .compiler import compile_on_definition  # Avoid circular import
        compile_on_definition(cls, pydantic_ready=True)

    @classmethod
    def record_schema(cls) -> RecordSchema:
        from .compiler import schema_of  # Avoid circular import
        return schema_of(cls)

    def validate(self, *, mode: ValidationMode | str | None = None, max_errors: int | None = None) -> Result[None, ValidationOutcome]:
        """Validate every declared field."""
        return self.record_schema().validate(self, mode=mode, max_errors=max_errors)

    def validate_with_group(self, group: str, *, mode: ValidationMode | str | None = None,
                            max_errors: int | None = None) -> Result[None, ValidationOutcome]:
        """Validate only the fields the group names."""
        return self.record_schema().validate(self, group, mode=mode, max_errors=max_errors)

    def validate_or_raise(self, group: str | None = None, **kwargs) -> None:
        self.record_schema().validate_or_raise(self, group, **kwargs)
