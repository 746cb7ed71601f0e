"""
Schema Loader — build RecordSchemas from a declarative YAML document.

Document layout:

    records:
      Address:
        fields:
          zipcode:
            desc: Zip code
            type: str
            rules:
              - not_null
              - length_range: [5, 10]
      User:
        fields:
          username: {desc: Username, type: str, rules: [not_null, {length_range: [3, 20]}], groups: [create]}
          age: {type: int, rules: [{min: 0}, {max: 150}]}
          address: {nested: Address, optional: true}
          phones: {nested: Phone, collection: true, rules: [{max: 5}]}
          code: {rules: [{custom: is_code}]}
        groups:
          update: [age]

A rule entry is either a bare name or a one-key mapping whose value is the
argument: a scalar, a list of positional arguments, or a mapping of keyword
arguments. `nested:` refers to another record of the same document (in any
order); `custom:` refers to a check in the registry passed to load_schemas().
"""

from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import IO, Any, Optional, Union

import yaml

from fieldrules.logging import compiler_logger

from .compiler import SchemaBuilder
from .errors import ConfigurationError, SchemaDocumentError
from .rules import RuleSet, rules
from .schema import RecordSchema

logger = compiler_logger()

TYPE_NAMES: dict[str, type] = {
    "str": str,
    "int": int,
    "float": float,
    "decimal": Decimal,
    "bool": bool,
    "date": date,
    "datetime": datetime,
    "time": time,
}

# Rule names accepted in documents; each maps onto the RuleSet method of the same name.
RULE_NAMES = frozenset({
    "not_null", "length", "length_range", "exist_length", "exist_length_range", "date_format",
    "min", "max", "number_min", "number_max", "number_range", "positive", "non_negative",
    "integer", "decimal_scale", "odd", "even", "multiple_of", "custom",
})

FIELD_KEYS = frozenset({"desc", "type", "rules", "groups", "optional", "collection", "nested", "sensitive"})


def load_schemas(
    source: Union[str, Path, IO[str], Mapping[str, Any]],
    custom: Optional[Mapping[str, Callable[[Any], Any]]] = None,
) -> dict[str, RecordSchema]:
    """
    Load every record declared in a YAML schema document.

    Args:
        source: A path, an open stream, YAML text, or an already-parsed mapping
        custom: Named checks referenced by `custom:` rules

    Returns:
        Record name -> RecordSchema, in document order

    Raises:
        SchemaDocumentError: If the document is malformed
        ConfigurationError: If a declared rule is invalid (e.g. min > max)
    """
    try:
        data = source if isinstance(source, Mapping) else _read_document(source)
        return parse_schemas(data, custom or {})
    except ConfigurationError as e:
        logger.error("configuration_error", source=str(source)[:200], code=e.code.value, error=e.message)
        raise


def _read_document(source: Union[str, Path, IO[str]]) -> Any:
    try:
        if isinstance(source, Path) or (isinstance(source, str) and "\n" not in source
                                        and source.endswith((".yaml", ".yml"))):
            path = Path(source)
            if not path.exists():
                raise SchemaDocumentError(f"Schema document not found: {path}", path=str(path))
            with open(path, encoding="utf-8") as f:
                return yaml.safe_load(f)
        return yaml.safe_load(source)
    except yaml.YAMLError as e:
        raise SchemaDocumentError(f"Schema document is not valid YAML: {e}") from e


def parse_schemas(data: Any, custom: Mapping[str, Callable[[Any], Any]]) -> dict[str, RecordSchema]:
    """Build schemas from a parsed document."""
    if not isinstance(data, Mapping) or not isinstance(data.get("records"), Mapping):
        raise SchemaDocumentError("Schema document must contain a 'records' mapping")

    records: Mapping[str, Any] = data["records"]
    built: dict[str, RecordSchema] = {}

    for name, record in records.items():
        built[name] = parse_record(name, record, records, built, custom)

    logger.debug("schemas_loaded", records=list(built))
    return built


def parse_record(
    name: str,
    record: Any,
    records: Mapping[str, Any],
    built: dict[str, RecordSchema],
    custom: Mapping[str, Callable[[Any], Any]],
) -> RecordSchema:
    """Build one record; nested references resolve through `built` on first use."""
    if not isinstance(record, Mapping) or not isinstance(record.get("fields", {}), Mapping):
        raise SchemaDocumentError(f"Record {name!r} must be a mapping with a 'fields' mapping", record=name)

    builder = SchemaBuilder(name)
    for field_name, spec in (record.get("fields") or {}).items():
        spec = spec or {}
        if not isinstance(spec, Mapping):
            raise SchemaDocumentError(f"{name}.{field_name} must be a mapping", record=name, field=field_name)
        if unknown := sorted(set(spec) - FIELD_KEYS):
            raise SchemaDocumentError(f"{name}.{field_name} has unknown keys: {', '.join(unknown)}",
                record=name, field=field_name)

        rule_set = parse_rules(f"{name}.{field_name}", spec, custom)
        optional, collection = bool(spec.get("optional", False)), bool(spec.get("collection", False))

        if (ref := spec.get("nested")) is not None:
            if ref not in records:
                raise SchemaDocumentError(f"{name}.{field_name} refers to unknown record {ref!r}",
                    record=name, field=field_name, nested=ref)
            builder.nested(field_name, partial(built.__getitem__, ref), rule_set,
                optional=optional, collection=collection)
        else:
            builder.field(field_name, rule_set, optional=optional, collection=collection,
                value_type=list if collection else _value_type(name, field_name, spec.get("type")))

    for group, members in (record.get("groups") or {}).items():
        if not isinstance(members, list):
            raise SchemaDocumentError(f"Group {group!r} of {name} must list field names", record=name, group=group)
        builder.group(group, *members)

    return builder.build()


def parse_rules(path: str, spec: Mapping[str, Any], custom: Mapping[str, Callable[[Any], Any]]) -> RuleSet:
    """Chain the `rules:` entries of one field into a RuleSet."""
    rule_set = rules(spec.get("desc", ""), groups=spec.get("groups") or (), sensitive=bool(spec.get("sensitive")))

    for entry in spec.get("rules") or []:
        if isinstance(entry, str):
            rule_name, arg = entry, None
        elif isinstance(entry, Mapping) and len(entry) == 1:
            rule_name, arg = next(iter(entry.items()))
        else:
            raise SchemaDocumentError(f"{path}: rule entry must be a name or a one-key mapping, got {entry!r}",
                field=path)

        if rule_name not in RULE_NAMES:
            raise SchemaDocumentError(f"{path}: unknown rule {rule_name!r}", field=path, rule=rule_name)

        if rule_name == "custom":
            if arg not in custom:
                raise SchemaDocumentError(f"{path}: custom check {arg!r} is not registered", field=path, check=arg)
            rule_set = rule_set.custom(custom[arg], arg)
            continue

        method = getattr(rule_set, rule_name)
        try:
            if arg is None:
                rule_set = method()
            elif isinstance(arg, list):
                rule_set = method(*arg)
            elif isinstance(arg, Mapping):
                rule_set = method(**arg)
            else:
                rule_set = method(arg)
        except TypeError as e:
            raise SchemaDocumentError(f"{path}: bad arguments for rule {rule_name!r}: {e}",
                field=path, rule=rule_name) from e

    return rule_set


def _value_type(record: str, field_name: str, type_name: Any) -> Optional[type]:
    if type_name is None: return None
    try:
        return TYPE_NAMES[type_name]
    except (KeyError, TypeError):
        raise SchemaDocumentError(f"{record}.{field_name}: unknown type {type_name!r}",
            record=record, field=field_name, expected=sorted(TYPE_NAMES)) from None
