"""Rule Compiler

Turns rule declarations into immutable RecordSchemas. Two routes produce
identical schemas:

Builder:
    ADDRESS = (SchemaBuilder("Address")
        .field("zipcode", rules("Zip code").not_null().length_range(5, 10), value_type=str)
        .build())

Reflection over typing.Annotated metadata (dataclasses, pydantic models,
plain annotated classes):
    @dataclass
    class User(Validatable):
        username: Annotated[str, rules("Username").not_null().length_range(3, 20)]
        address: Annotated[Address | None, Nested()] = None

Every broken declaration raises a ConfigurationError here, before any
request is validated.
"""
from __future__ import annotations

import dataclasses
import types
import typing
import weakref
from collections.abc import Iterable, Mapping, Sequence, Set
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin

from pydantic import BaseModel

from fieldrules.logging import compiler_logger

from .errors import ConfigurationError, InvalidRuleParameter, RuleTypeMismatchError, UnresolvedAnnotationError
from .groups import GroupMap, group_key
from .rules import RuleKind, RuleSet
from .schema import FieldDescriptor, NestedTarget, RecordSchema, Validatable

logger = compiler_logger()

_NUMERIC_TYPES = (int, float, Decimal)
_CONTAINER_TYPES = (list, tuple, set, frozenset, Sequence, Set)
_TEXT_TYPES = (str, bytes, bytearray)

_schemas: weakref.WeakKeyDictionary[type, RecordSchema] = weakref.WeakKeyDictionary()


@dataclass(frozen=True, slots=True)
class Nested:
    """Annotated marker: validate the value (or each element) as a record.

    `target` overrides the annotated type, e.g. to point at a RecordSchema.
    """
    target: NestedTarget | None = None


# ============================================================================
# Type analysis
# ============================================================================

@dataclass(frozen=True, slots=True)
class _Shape:
    base: Any
    optional: bool = False
    collection: bool = False
    container: type | None = None
    metadata: tuple[Any, ...] = ()


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is types.UnionType


def _strip(tp: Any) -> tuple[Any, bool, list[Any]]:
    """Remove Annotated and Optional wrappers. Returns (type, optional, metadata)."""
    metadata: list[Any] = []
    optional = False
    while True:
        origin = get_origin(tp)
        if origin is Annotated:
            tp, *extra = get_args(tp)
            metadata.extend(extra)
        elif _is_union(origin):
            args = get_args(tp)
            members = [a for a in args if a is not type(None)]
            optional = optional or len(members) < len(args)
            if len(members) != 1: return Any, optional, metadata
            tp = members[0]
        else:
            return tp, optional, metadata


def _is_class(tp: Any) -> bool:
    return isinstance(tp, type) and tp not in (Any, object)


def _shape(annotation: Any) -> _Shape:
    tp, optional, metadata = _strip(annotation)
    origin = get_origin(tp)
    container = origin if isinstance(origin, type) else (tp if _is_class(tp) else None)

    if container is not None and issubclass(container, _CONTAINER_TYPES) and not issubclass(container, _TEXT_TYPES):
        args = get_args(tp)
        element = _strip(args[0])[0] if args else Any
        return _Shape(element, optional, True, container, tuple(metadata))
    return _Shape(tp, optional, False, None, tuple(metadata))


def _numeric_type(tp: Any) -> type | None:
    if _is_class(tp) and issubclass(tp, _NUMERIC_TYPES) and not issubclass(tp, bool):
        return next(t for t in _NUMERIC_TYPES if issubclass(tp, t))
    return None


def _has_schema(target: Any) -> bool:
    if isinstance(target, RecordSchema) or (callable(target) and not isinstance(target, type)): return True
    if not _is_class(target): return False
    return (issubclass(target, (Validatable, BaseModel)) or dataclasses.is_dataclass(target)
        or target in _schemas)


# ============================================================================
# Compatibility checks
# ============================================================================

def _rule_fits(kind: RuleKind, fd: FieldDescriptor) -> bool:
    if kind in (RuleKind.NOT_NULL, RuleKind.CUSTOM): return True
    if fd.is_collection: return kind.is_length or kind in (RuleKind.MIN, RuleKind.MAX)
    if fd.is_nested: return False
    vt = fd.value_type
    if vt is None: return True
    if kind.is_length: return issubclass(vt, str)
    if kind is RuleKind.DATE_FORMAT: return issubclass(vt, (str, date, time))
    return issubclass(vt, (str, *_NUMERIC_TYPES)) and not issubclass(vt, bool)


def check_compatibility(record: str, fd: FieldDescriptor) -> None:
    """Reject rules the field's declared type can never satisfy."""
    for rule in fd.rule_set.rules:
        if not _rule_fits(rule.kind, fd):
            shown = "nested record" if fd.is_nested and not fd.is_collection else (
                fd.value_type.__name__ if fd.value_type else "collection")
            raise RuleTypeMismatchError(
                f"{record}.{fd.name}: rule {rule.constraint_name} cannot apply to {shown}",
                record=record, field=fd.name, rule=rule.kind.value, type=shown)

    if fd.is_nested and not _has_schema(fd.nested_type):
        raise RuleTypeMismatchError(f"{record}.{fd.name}: nested target {fd.nested_type!r} has no record schema",
            record=record, field=fd.name)


def _descriptor(name: str, rule_set: RuleSet | None, desc: str | None = None, **kwargs) -> FieldDescriptor:
    bound = (rule_set or RuleSet()).bind(name, desc)
    return FieldDescriptor(name=name, desc=bound.desc, rule_set=bound,
        groups=frozenset(group_key(g) for g in bound.groups), sensitive=bound.sensitive, **kwargs)


def _build(name: str, fields: Iterable[FieldDescriptor], groups: GroupMap) -> RecordSchema:
    fields = tuple(fields)
    member_map: dict[str, set[str]] = {}
    for fd in fields:
        check_compatibility(name, fd)
        for g in fd.groups: member_map.setdefault(g, set()).add(fd.name)

    schema = RecordSchema(name=name, fields=fields, groups=groups.merged(member_map))
    logger.debug("schema_compiled", record=name, fields=len(fields), groups=list(schema.groups.names))
    return schema


# ============================================================================
# Builder
# ============================================================================

class SchemaBuilder:
    """Fluent, explicit route to a RecordSchema."""

    def __init__(self, name: str):
        self.name = name
        self._fields: list[FieldDescriptor] = []
        self._groups: dict[str, set[str]] = {}

    def field(
        self,
        name: str,
        rule_set: RuleSet | None = None,
        *,
        desc: str | None = None,
        optional: bool = False,
        collection: bool = False,
        value_type: type | None = None,
        numeric_type: type | None = None,
    ) -> SchemaBuilder:
        self._fields.append(_descriptor(name, rule_set, desc, is_optional=optional, is_collection=collection,
            value_type=value_type, numeric_type=numeric_type or (None if collection else _numeric_type(value_type))))
        return self

    def nested(
        self,
        name: str,
        target: NestedTarget,
        rule_set: RuleSet | None = None,
        *,
        desc: str | None = None,
        optional: bool = False,
        collection: bool = False,
    ) -> SchemaBuilder:
        self._fields.append(_descriptor(name, rule_set, desc, is_optional=optional, is_collection=collection,
            nested_type=target, value_type=list if collection else None))
        return self

    def group(self, name: str, *fields: str) -> SchemaBuilder:
        self._groups.setdefault(group_key(name), set()).update(fields)
        return self

    def build(self) -> RecordSchema:
        try:
            return _build(self.name, self._fields, GroupMap.from_dict(self._groups))
        except ConfigurationError as e:
            _log_configuration_error(self.name, e)
            raise


# ============================================================================
# Reflection
# ============================================================================

def _declared_fields(cls: type, localns: Mapping[str, Any] | None) -> list[tuple[str, Any, list[Any]]]:
    """(name, annotation, extra metadata) per field, in declaration order."""
    if issubclass(cls, BaseModel):
        return [(name, info.annotation, list(info.metadata)) for name, info in cls.model_fields.items()]

    hints = typing.get_type_hints(cls, localns=dict(localns) if localns else None, include_extras=True)
    return [(name, hint, []) for name, hint in hints.items()
        if not name.startswith("_") and get_origin(hint) is not ClassVar]


def _reflect_field(record: str, name: str, annotation: Any, extra: list[Any]) -> FieldDescriptor | None:
    shape = _shape(annotation)
    metadata = [*extra, *shape.metadata]
    rule_sets = [m for m in metadata if isinstance(m, RuleSet)]
    markers = [m for m in metadata if isinstance(m, Nested)]

    if len(rule_sets) > 1:
        raise InvalidRuleParameter(f"{record}.{name} declares {len(rule_sets)} rule sets; chain them into one",
            record=record, field=name)

    target = markers[0].target if markers and markers[0].target is not None else shape.base
    nested = bool(markers) or (_is_class(target) and issubclass(target, Validatable))
    if not rule_sets and not nested: return None

    return _descriptor(name, rule_sets[0] if rule_sets else None,
        is_optional=shape.optional,
        is_collection=shape.collection,
        nested_type=target if nested else None,
        value_type=shape.container if shape.collection else (shape.base if _is_class(shape.base) else None),
        numeric_type=None if shape.collection else _numeric_type(shape.base))


def compile_schema(cls: type, *, name: str | None = None, localns: Mapping[str, Any] | None = None) -> RecordSchema:
    """Compile a record class into a RecordSchema.

    Only fields carrying a RuleSet or a Nested marker (or typed as a
    Validatable record) take part. Groups come from `rules(..., groups=...)`
    on fields plus an optional `__groups__` class mapping.

    Raises NameError when annotations reference names that do not exist yet.
    """
    record = name or cls.__name__
    try:
        fields = []
        for field_name, annotation, extra in _declared_fields(cls, localns):
            fd = _reflect_field(record, field_name, annotation, extra)
            if fd is not None: fields.append(fd)
        declared = getattr(cls, "__groups__", None) or {}
        return _build(record, fields, GroupMap.from_dict(declared))
    except ConfigurationError as e:
        _log_configuration_error(record, e)
        raise


def compile_on_definition(cls: type, *, pydantic_ready: bool = False) -> None:
    """Compile a Validatable subclass at definition time, deferring unresolved names."""
    # model_fields is only populated once pydantic has finished building the class
    if issubclass(cls, BaseModel) and not pydantic_ready: return
    try:
        cls.__record_schema__ = compile_schema(cls, localns=_definition_locals(cls))
    except NameError as e:
        logger.debug("schema_deferred", record=cls.__name__, reason=str(e))


def schema_of(target: Any) -> RecordSchema:
    """The compiled schema of a record class (or instance), compiling on first use.

    Raises UnresolvedAnnotationError when the class annotations still name
    something undefined.
    """
    if isinstance(target, RecordSchema): return target
    cls = target if isinstance(target, type) else type(target)

    if issubclass(cls, Validatable):
        if (schema := cls.__dict__.get("__record_schema__")) is None:
            schema = _compile_deferred(cls)
            cls.__record_schema__ = schema
        return schema

    if (schema := _schemas.get(cls)) is None:
        schema = _schemas[cls] = _compile_deferred(cls)
    return schema


def _definition_locals(cls: type) -> dict[str, Any] | None:
    """Locals of the scope a Validatable class was defined in, plus the class itself."""
    captured = cls.__dict__.get("__definition_locals__")
    if captured is None: return None
    return {**captured, cls.__name__: cls}


def _compile_deferred(cls: type) -> RecordSchema:
    try:
        return compile_schema(cls, localns=_definition_locals(cls))
    except NameError as e:
        error = UnresolvedAnnotationError(f"{cls.__qualname__} annotations name something undefined: {e}",
            record=cls.__name__, name=getattr(e, "name", None))
        _log_configuration_error(cls.__name__, error)
        raise error from e


def _log_configuration_error(record: str, error: ConfigurationError) -> None:
    logger.error("configuration_error", record=record, code=error.code.value, error=error.message,
        details=error.metadata)
