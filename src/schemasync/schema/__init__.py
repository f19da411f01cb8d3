"""
Schema management package for schemasync.

This package provides:
- Declared and live schema models
- Protected field/index policy
- Class level permission merging
- Field and index diffing
- Schema reconciliation core logic
"""

from .models import DeclaredSchema, LiveSchema, FieldType, make_schema
from .differ import ChangeSet, FieldRecreate, compute_change_set, params_are_equal
from .operations import SchemaChange, SchemaChangeRequest, ChangeType
from .permissions import merge_class_level_permissions
from .reconciler import SchemaReconciler, ReconciliationResult, ReconciliationStatus

__all__ = [
    "DeclaredSchema",
    "LiveSchema",
    "FieldType",
    "make_schema",
    "ChangeSet",
    "FieldRecreate",
    "compute_change_set",
    "params_are_equal",
    "SchemaChange",
    "SchemaChangeRequest",
    "ChangeType",
    "merge_class_level_permissions",
    "SchemaReconciler",
    "ReconciliationResult",
    "ReconciliationStatus",
]
