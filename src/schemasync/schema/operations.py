"""
Schema change requests for schemasync.

A change request accumulates field, index and permission operations for one
class and is flushed to the schema store as a single create/update payload.
After each flush the field and index operations are cleared, so one request
object can carry several strictly ordered flushes (deletions first, then the
additions that reuse the deleted names).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import ValidationError
from .models import FieldDescriptor, FieldType, PointerField, RelationField


logger = logging.getLogger(__name__)

DELETE_OP: Dict[str, str] = {"__op": "Delete"}


class ChangeType(str, Enum):
    """Types of schema changes."""

    ADD_FIELD = "add_field"
    ADD_POINTER = "add_pointer"
    ADD_RELATION = "add_relation"
    DELETE_FIELD = "delete_field"
    ADD_INDEX = "add_index"
    DELETE_INDEX = "delete_index"


@dataclass
class SchemaChange:
    """Represents a single field or index operation."""

    change_type: ChangeType
    class_name: str
    target: str
    definition: Optional[Dict[str, Any]] = None

    # Execution results
    executed: bool = False
    error: Optional[str] = None

    @property
    def is_destructive(self) -> bool:
        return self.change_type in (ChangeType.DELETE_FIELD, ChangeType.DELETE_INDEX)

    @property
    def change_id(self) -> str:
        """Get unique identifier for this change."""
        return f"{self.change_type.value}_{self.class_name}_{self.target}"


class SchemaChangeRequest:
    """Mutable accumulator of pending operations for one class."""

    def __init__(self, class_name: str):
        self.class_name = class_name
        self._fields: Dict[str, Dict[str, Any]] = {}
        self._indexes: Dict[str, Dict[str, Any]] = {}
        self._clp: Optional[Dict[str, Any]] = None
        self._pending: List[SchemaChange] = []

    @property
    def has_changes(self) -> bool:
        """Whether any field or index operation is waiting to be flushed."""
        return bool(self._fields or self._indexes)

    @property
    def pending_changes(self) -> List[SchemaChange]:
        return list(self._pending)

    def add_field(
        self, name: str, field_type: str, options: Optional[Dict[str, Any]] = None
    ) -> "SchemaChangeRequest":
        try:
            kind = FieldType(field_type)
        except ValueError:
            raise ValidationError(f"Unknown type {field_type} for field '{name}'")
        if kind in (FieldType.POINTER, FieldType.RELATION):
            raise ValidationError(
                f"Use add_pointer/add_relation for {kind.value} field '{name}'"
            )
        definition = {"type": kind.value}
        definition.update(_field_options(options))
        return self._set_field(ChangeType.ADD_FIELD, name, definition)

    def add_pointer(
        self, name: str, target_class: str, options: Optional[Dict[str, Any]] = None
    ) -> "SchemaChangeRequest":
        if not target_class:
            raise ValidationError(f"Pointer field '{name}' needs a target class")
        definition = {"type": FieldType.POINTER.value, "targetClass": target_class}
        definition.update(_field_options(options))
        return self._set_field(ChangeType.ADD_POINTER, name, definition)

    def add_relation(self, name: str, target_class: str) -> "SchemaChangeRequest":
        if not target_class:
            raise ValidationError(f"Relation field '{name}' needs a target class")
        definition = {"type": FieldType.RELATION.value, "targetClass": target_class}
        return self._set_field(ChangeType.ADD_RELATION, name, definition)

    def delete_field(self, name: str) -> "SchemaChangeRequest":
        return self._set_field(ChangeType.DELETE_FIELD, name, dict(DELETE_OP))

    def add_index(self, name: str, definition: Dict[str, Any]) -> "SchemaChangeRequest":
        if not definition:
            raise ValidationError(f"Index '{name}' must reference at least one field")
        return self._set_index(ChangeType.ADD_INDEX, name, dict(definition))

    def delete_index(self, name: str) -> "SchemaChangeRequest":
        return self._set_index(ChangeType.DELETE_INDEX, name, dict(DELETE_OP))

    def set_class_level_permissions(self, clp: Dict[str, Any]) -> "SchemaChangeRequest":
        self._clp = clp
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Build the create/update payload for the schema store."""
        payload: Dict[str, Any] = {
            "className": self.class_name,
            "fields": dict(self._fields),
            "indexes": dict(self._indexes),
        }
        if self._clp is not None:
            payload["classLevelPermissions"] = self._clp
        return payload

    def reset(self) -> List[SchemaChange]:
        """Clear field and index operations, returning the ones that were pending."""
        flushed = self._pending
        self._fields = {}
        self._indexes = {}
        self._pending = []
        return flushed

    def _set_field(
        self, change_type: ChangeType, name: str, definition: Dict[str, Any]
    ) -> "SchemaChangeRequest":
        # The backend rejects a payload touching the same name twice
        if name in self._fields:
            raise ValidationError(
                f"Field '{name}' of {self.class_name} already has a pending operation; "
                "flush before changing it again"
            )
        self._fields[name] = definition
        self._pending.append(SchemaChange(change_type, self.class_name, name, definition))
        return self

    def _set_index(
        self, change_type: ChangeType, name: str, definition: Dict[str, Any]
    ) -> "SchemaChangeRequest":
        if name in self._indexes:
            raise ValidationError(
                f"Index '{name}' of {self.class_name} already has a pending operation; "
                "flush before changing it again"
            )
        self._indexes[name] = definition
        self._pending.append(SchemaChange(change_type, self.class_name, name, definition))
        return self


def _field_options(options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    options = options or {}
    return {k: options[k] for k in ("required", "defaultValue") if k in options}


def apply_field(
    request: SchemaChangeRequest, name: str, field: FieldDescriptor
) -> SchemaChangeRequest:
    """Record the creation of ``field``; relations, pointers and the rest use different operations."""
    if isinstance(field, RelationField):
        return request.add_relation(name, field.target_class)
    if isinstance(field, PointerField):
        return request.add_pointer(name, field.target_class, field.to_payload())
    return request.add_field(name, field.type, field.to_payload())
