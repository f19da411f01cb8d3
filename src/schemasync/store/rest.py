"""
REST schema store backed by the Parse Server HTTP API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from .base import SchemaStore
from ..config import StoreConfig
from ..exceptions import (
    StoreAPIError,
    StoreConnectionError,
    StoreTimeoutError,
    ValidationError,
)
from ..schema.models import LiveSchema


logger = logging.getLogger(__name__)

SESSION_CLASS = "_Session"


class RestSchemaStore(SchemaStore):
    """
    Schema store talking to ``/schemas`` and ``/classes`` over HTTP.

    Every request is authenticated with the master key, since schema
    endpoints are master-key only.
    """

    def __init__(self, config: StoreConfig):
        if not config.server_url:
            raise ValidationError("Schema store server_url is required")
        if not config.app_id:
            raise ValidationError("Schema store app_id is required")

        self.config = config
        self.server_url = config.server_url.rstrip("/")
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout)

            headers = {
                "Content-Type": "application/json",
                "User-Agent": "schemasync/1.0",
                "X-Parse-Application-Id": self.config.app_id,
            }
            if self.config.master_key:
                headers["X-Parse-Master-Key"] = self.config.master_key

            self._session = aiohttp.ClientSession(timeout=timeout, headers=headers)
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send a request and return the decoded JSON body."""
        session = await self._get_session()
        url = f"{self.server_url}{path}"

        try:
            async with session.request(method, url, json=payload) as response:
                if response.status in (200, 201):
                    return await response.json()

                try:
                    error_data = await response.json()
                    error_msg = error_data.get("error", f"HTTP {response.status}")
                    code = error_data.get("code")
                except (aiohttp.ContentTypeError, ValueError):
                    error_msg = f"HTTP {response.status}"
                    code = None

                raise StoreAPIError(
                    f"{method} {path} failed: {error_msg}",
                    status_code=response.status,
                    code=code,
                )
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError(
                f"Timeout calling {method} {path}", timeout_duration=self.config.timeout
            ) from e
        except aiohttp.ClientError as e:
            raise StoreConnectionError(
                f"Network error calling {method} {path}: {e}", cause=e
            ) from e

    async def get_all_schemas(self) -> List[LiveSchema]:
        data = await self._request("GET", "/schemas")
        schemas = [LiveSchema.model_validate(item) for item in data.get("results", [])]
        logger.debug(f"Fetched {len(schemas)} schemas from {self.server_url}")
        return schemas

    async def create_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        await self._request("POST", f"/schemas/{class_name}", payload)
        logger.debug(f"Created schema {class_name}")

    async def update_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        await self._request("PUT", f"/schemas/{class_name}", payload)
        logger.debug(f"Updated schema {class_name}")

    async def ensure_session_collection(self) -> None:
        created = await self._request("POST", f"/classes/{SESSION_CLASS}", {})
        object_id = created.get("objectId")
        if not object_id:
            raise StoreAPIError("Session creation returned no objectId")
        await self._request("DELETE", f"/classes/{SESSION_CLASS}/{object_id}")

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
