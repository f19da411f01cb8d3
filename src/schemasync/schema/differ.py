"""
Field and index diffing for schemasync.

Compares one declared schema with the matching live schema (or with nothing,
when the class does not exist yet) and partitions the differences into the
change set a reconciliation pass applies. Protected fields and indexes are
filtered out before any partition is computed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .models import DeclaredSchema, FieldDescriptor, IndexDescriptor, LiveSchema, type_signature
from .protection import is_protected_field, is_protected_index


logger = logging.getLogger(__name__)


def _values_equal(a: Any, b: Any) -> bool:
    # Values of different types never match: True, 1 and 1.0 all differ
    if type(a) is not type(b):
        return False
    if isinstance(a, dict):
        return params_are_equal(a, b)
    if isinstance(a, list):
        return len(a) == len(b) and all(_values_equal(x, y) for x, y in zip(a, b))
    return a == b


def params_are_equal(a: Mapping[str, Any], b: Mapping[str, Any]) -> bool:
    """Same key set and equal value, of the same type, for every key."""
    if set(a.keys()) != set(b.keys()):
        return False
    return all(_values_equal(a[k], b[k]) for k in a)


def describe_type(signature: Mapping[str, Any]) -> str:
    """Human readable type, e.g. ``Pointer (_User)``."""
    result = str(signature.get("type"))
    if signature.get("targetClass"):
        result += f" ({signature['targetClass']})"
    return result


@dataclass
class FieldRecreate:
    """A field whose type or target class changed and must be deleted then re-added."""

    field_name: str
    from_signature: Dict[str, Any]
    to_signature: Dict[str, Any]

    @property
    def from_type(self) -> str:
        return describe_type(self.from_signature)

    @property
    def to_type(self) -> str:
        return describe_type(self.to_signature)


@dataclass
class ChangeSet:
    """Differences between a declared schema and the live state of its class."""

    class_name: str
    class_exists: bool
    fields_to_add: Dict[str, FieldDescriptor] = field(default_factory=dict)
    fields_to_delete: List[str] = field(default_factory=list)
    fields_to_recreate: List[FieldRecreate] = field(default_factory=list)
    fields_with_changed_params: List[str] = field(default_factory=list)
    indexes_to_add: Dict[str, IndexDescriptor] = field(default_factory=dict)
    indexes_to_delete: List[str] = field(default_factory=list)
    indexes_to_replace: Dict[str, IndexDescriptor] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """True when the class exists and nothing differs."""
        return self.class_exists and not any(
            (
                self.fields_to_add,
                self.fields_to_delete,
                self.fields_to_recreate,
                self.fields_with_changed_params,
                self.indexes_to_add,
                self.indexes_to_delete,
                self.indexes_to_replace,
            )
        )

    def describe(self) -> List[str]:
        """One line per change, for plans and logs."""
        lines = []
        if not self.class_exists:
            lines.append(f"create class {self.class_name}")
        for name, descriptor in self.fields_to_add.items():
            lines.append(f"add field {name}: {describe_type(descriptor.type_signature)}")
        for name in self.fields_to_delete:
            lines.append(f"delete field {name}")
        for recreate in self.fields_to_recreate:
            lines.append(
                f"recreate field {recreate.field_name}: "
                f"{recreate.from_type} -> {recreate.to_type}"
            )
        for name in self.fields_with_changed_params:
            lines.append(f"update field {name}")
        for name in self.indexes_to_add:
            lines.append(f"add index {name}")
        for name in self.indexes_to_delete:
            lines.append(f"delete index {name}")
        for name in self.indexes_to_replace:
            lines.append(f"replace index {name}")
        return lines


def compute_change_set(
    declared: DeclaredSchema,
    live: Optional[LiveSchema] = None,
) -> ChangeSet:
    """
    Diff ``declared`` against ``live``.

    Args:
        declared: The declared schema
        live: The live schema of the same class, or None if the class is absent

    Returns:
        ChangeSet with every difference that is not on a protected name
    """
    class_name = declared.class_name
    changes = ChangeSet(class_name=class_name, class_exists=live is not None)

    declared_fields = {
        name: descriptor
        for name, descriptor in (declared.fields or {}).items()
        if not is_protected_field(class_name, name)
    }
    declared_indexes = {
        name: definition
        for name, definition in (declared.indexes or {}).items()
        if not is_protected_index(class_name, name)
    }

    if live is None:
        changes.fields_to_add = declared_fields
        changes.indexes_to_add = declared_indexes
        return changes

    live_fields = {
        name: definition
        for name, definition in live.fields.items()
        if not is_protected_field(class_name, name)
    }
    live_indexes = {
        name: definition
        for name, definition in live.indexes.items()
        if not is_protected_index(class_name, name)
    }

    for name, descriptor in declared_fields.items():
        if name not in live_fields:
            changes.fields_to_add[name] = descriptor

    for name, live_field in live_fields.items():
        if name not in declared_fields:
            changes.fields_to_delete.append(name)
            continue

        local_field = declared_fields[name].to_payload()
        live_signature = type_signature(live_field)
        local_signature = type_signature(local_field)
        if not params_are_equal(live_signature, local_signature):
            changes.fields_to_recreate.append(
                FieldRecreate(name, live_signature, local_signature)
            )
            continue

        # Same type, something else changed (required, defaultValue)
        if not params_are_equal(live_field, local_field):
            changes.fields_with_changed_params.append(name)

    for name, definition in declared_indexes.items():
        if name not in live_indexes:
            changes.indexes_to_add[name] = definition

    for name, live_definition in live_indexes.items():
        if name not in declared_indexes:
            changes.indexes_to_delete.append(name)
        elif not params_are_equal(declared_indexes[name], live_definition):
            changes.indexes_to_replace[name] = declared_indexes[name]

    if not changes.is_empty:
        logger.debug(f"Changes for {class_name}: {'; '.join(changes.describe())}")

    return changes
