"""Group Classifier

Groups are data, not types: a GroupMap maps an opaque group name ("create",
"update", ...) to the set of field names validated together in that flow.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING

from .errors import UnknownFieldError, UnknownGroupError

if TYPE_CHECKING:
    from .schema import FieldDescriptor, RecordSchema


class StandardGroup(str, Enum):
    """Group names used by the usual CRUD flows."""
    CREATE = "create"
    UPDATE = "update"
    QUERY = "query"
    PAGE_QUERY = "page_query"
    STATUS_UPDATE = "status_update"


def group_key(group: str) -> str:
    return group.value if isinstance(group, Enum) else group


@dataclass(frozen=True, slots=True)
class GroupMap:
    """Immutable mapping of group name -> frozenset of field names."""
    groups: Mapping[str, frozenset[str]] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_dict(cls, groups: Mapping[str, Iterable[str]] | None) -> GroupMap:
        return cls(MappingProxyType({group_key(name): frozenset(members) for name, members in (groups or {}).items()}))

    def __contains__(self, group: object) -> bool:
        return isinstance(group, str) and group_key(group) in self.groups

    def __len__(self) -> int: return len(self.groups)

    @property
    def names(self) -> tuple[str, ...]: return tuple(self.groups)

    def members(self, group: str, *, record: str | None = None) -> frozenset[str]:
        """Field names in a group. Unknown groups are a configuration error."""
        try:
            return self.groups[group_key(group)]
        except KeyError:
            raise UnknownGroupError(f"Group {group_key(group)!r} is not declared" + (f" on {record}" if record else ""),
                group=group_key(group), record=record, declared=list(self.groups)) from None

    def merged(self, other: Mapping[str, Iterable[str]]) -> GroupMap:
        """Union of this map and another declaration, member sets combined."""
        combined: dict[str, set[str]] = {name: set(members) for name, members in self.groups.items()}
        for name, members in other.items():
            combined.setdefault(group_key(name), set()).update(members)
        return GroupMap.from_dict(combined)

    def check_fields(self, field_names: Iterable[str], *, record: str | None = None) -> None:
        """Every member of every group must be a declared field."""
        declared = set(field_names)
        for name, members in self.groups.items():
            if unknown := sorted(members - declared):
                raise UnknownFieldError(f"Group {name!r} references undeclared field(s): {', '.join(unknown)}",
                    group=name, fields=unknown, record=record)


def classify(schema: RecordSchema, group: str | None) -> tuple[FieldDescriptor, ...]:
    """Field descriptors taking part in a validation pass, in declaration order."""
    if group is None: return schema.fields
    members = schema.groups.members(group, record=schema.name)
    return tuple(f for f in schema.fields if f.name in members)
