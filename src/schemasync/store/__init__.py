"""
Schema store package for schemasync.

This package provides:
- The abstract schema store interface used by the reconciler
- A REST store for Parse Server's schema API
- An in-memory store for dry runs and tests
"""

from .base import SchemaStore
from .memory import InMemorySchemaStore, StoreCall
from .rest import RestSchemaStore

__all__ = [
    "SchemaStore",
    "InMemorySchemaStore",
    "StoreCall",
    "RestSchemaStore",
]
