"""
Abstract schema store interface.

The reconciler only ever talks to the backend through this interface, so any
backend exposing schema enumeration, create and update works.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from ..schema.models import LiveSchema


class SchemaStore(ABC):
    """
    Abstract base class for schema stores.

    Update payloads carry deltas: added or changed fields and indexes carry
    their full definition, removed ones carry ``{"__op": "Delete"}``. The
    ``classLevelPermissions`` entry, when present, replaces the whole
    permission document.
    """

    @abstractmethod
    async def get_all_schemas(self) -> List[LiveSchema]:
        """
        Enumerate every class, system classes included.

        Raises:
            StoreError: If the schemas cannot be fetched
        """
        pass

    @abstractmethod
    async def create_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        """
        Create a class.

        Raises:
            StoreError: If the class already exists or the payload is rejected
        """
        pass

    @abstractmethod
    async def update_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        """
        Apply a delta payload to an existing class.

        Raises:
            StoreError: If the class does not exist or the payload is rejected
        """
        pass

    @abstractmethod
    async def ensure_session_collection(self) -> None:
        """
        Make sure the session class is materialized.

        The backend only creates the session schema once a session has been
        stored, so this creates a throwaway session and destroys it again.
        """
        pass

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass

    async def __aenter__(self) -> "SchemaStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
