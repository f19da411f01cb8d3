"""
schemasync: declarative schema reconciliation for Parse-style backends.

schemasync compares declared class schemas with the live schemas of a
running backend and applies the field, index and permission changes needed
to make the live state match the declaration.
"""

__version__ = "0.1.0"
__author__ = "schemasync Contributors"

from .config import SchemaSyncConfig
from .exceptions import SchemaSyncError, ConfigurationError, ReconciliationError, StoreError

__all__ = [
    "__version__",
    "SchemaSyncConfig",
    "SchemaSyncError",
    "ConfigurationError",
    "ReconciliationError",
    "StoreError",
]
