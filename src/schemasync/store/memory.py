"""
In-memory schema store.

Applies payloads with the same rules as the backend: classes are created
once, deleted names must exist, and an existing field or index cannot be
redefined in place. Used for dry runs and as a deterministic test double.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from .base import SchemaStore
from ..exceptions import StoreAPIError
from ..schema.models import LiveSchema, type_signature
from ..schema.protection import DEFAULT_COLUMNS, PRIMARY_KEY_INDEX


logger = logging.getLogger(__name__)

INVALID_CLASS_NAME = 103
INCORRECT_TYPE = 111
INVALID_KEY_NAME = 105
DUPLICATE_VALUE = 137
CHANGED_IMMUTABLE_FIELD = 255

DEFAULT_CLP: Dict[str, Any] = {
    "find": {"*": True},
    "count": {"*": True},
    "get": {"*": True},
    "create": {"*": True},
    "update": {"*": True},
    "delete": {"*": True},
    "addField": {"*": True},
    "protectedFields": {"*": []},
}


@dataclass
class StoreCall:
    """A recorded call against the in-memory store."""

    method: str
    class_name: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def fields(self) -> Dict[str, Any]:
        return self.payload.get("fields") or {}

    @property
    def indexes(self) -> Dict[str, Any]:
        return self.payload.get("indexes") or {}

    @property
    def class_level_permissions(self) -> Optional[Dict[str, Any]]:
        return self.payload.get("classLevelPermissions")


def _is_delete(definition: Any) -> bool:
    return isinstance(definition, dict) and definition.get("__op") == "Delete"


class InMemorySchemaStore(SchemaStore):
    """Schema store holding every class in a dict."""

    def __init__(self, schemas: Optional[Iterable[Union[LiveSchema, Dict[str, Any]]]] = None):
        self._schemas: Dict[str, Dict[str, Any]] = {}
        self.calls: List[StoreCall] = []
        for schema in schemas or []:
            if isinstance(schema, LiveSchema):
                document = schema.model_dump(by_alias=True)
            else:
                document = LiveSchema.model_validate(schema).model_dump(by_alias=True)
            self._schemas[document["className"]] = document

    def schema(self, class_name: str) -> Optional[LiveSchema]:
        """Current state of ``class_name``, or None."""
        document = self._schemas.get(class_name)
        return LiveSchema.model_validate(copy.deepcopy(document)) if document else None

    def calls_for(self, class_name: str) -> List[StoreCall]:
        return [c for c in self.calls if c.class_name == class_name]

    def mutating_calls(self) -> List[StoreCall]:
        return [c for c in self.calls if c.method in ("create_schema", "update_schema")]

    async def get_all_schemas(self) -> List[LiveSchema]:
        self.calls.append(StoreCall("get_all_schemas"))
        return [
            LiveSchema.model_validate(copy.deepcopy(document))
            for document in self._schemas.values()
        ]

    async def create_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        self.calls.append(StoreCall("create_schema", class_name, copy.deepcopy(payload)))
        if class_name in self._schemas:
            raise StoreAPIError(
                f"Class {class_name} already exists.", status_code=400, code=INVALID_CLASS_NAME
            )

        document = self._new_document(class_name)
        for name, definition in (payload.get("fields") or {}).items():
            if _is_delete(definition):
                raise StoreAPIError(
                    f"Field {name} does not exist, cannot delete.",
                    status_code=400,
                    code=CHANGED_IMMUTABLE_FIELD,
                )
            self._add_field(document, name, definition)
        for name, definition in (payload.get("indexes") or {}).items():
            if _is_delete(definition):
                raise StoreAPIError(
                    f"Index {name} does not exist, cannot delete.",
                    status_code=400,
                    code=INVALID_KEY_NAME,
                )
            self._add_index(document, name, definition)
        if payload.get("classLevelPermissions") is not None:
            document["classLevelPermissions"] = copy.deepcopy(payload["classLevelPermissions"])

        self._schemas[class_name] = document
        logger.debug(f"Created class {class_name} in memory")

    async def update_schema(self, class_name: str, payload: Dict[str, Any]) -> None:
        self.calls.append(StoreCall("update_schema", class_name, copy.deepcopy(payload)))
        if class_name not in self._schemas:
            raise StoreAPIError(
                f"Class {class_name} does not exist.", status_code=400, code=INVALID_CLASS_NAME
            )

        # Validate against a copy so a rejected payload leaves no partial state
        document = copy.deepcopy(self._schemas[class_name])
        for name, definition in (payload.get("fields") or {}).items():
            if _is_delete(definition):
                if name not in document["fields"]:
                    raise StoreAPIError(
                        f"Field {name} does not exist, cannot delete.",
                        status_code=400,
                        code=CHANGED_IMMUTABLE_FIELD,
                    )
                del document["fields"][name]
            else:
                self._add_field(document, name, definition)
        for name, definition in (payload.get("indexes") or {}).items():
            if _is_delete(definition):
                if name not in document["indexes"]:
                    raise StoreAPIError(
                        f"Index {name} does not exist, cannot delete.",
                        status_code=400,
                        code=INVALID_KEY_NAME,
                    )
                del document["indexes"][name]
            else:
                self._add_index(document, name, definition)
        if payload.get("classLevelPermissions") is not None:
            document["classLevelPermissions"] = copy.deepcopy(payload["classLevelPermissions"])

        self._schemas[class_name] = document

    async def ensure_session_collection(self) -> None:
        self.calls.append(StoreCall("ensure_session_collection", "_Session"))
        if "_Session" not in self._schemas:
            self._schemas["_Session"] = self._new_document("_Session")

    def _new_document(self, class_name: str) -> Dict[str, Any]:
        fields = copy.deepcopy(DEFAULT_COLUMNS["_Default"])
        fields.update(copy.deepcopy(DEFAULT_COLUMNS.get(class_name, {})))
        return {
            "className": class_name,
            "fields": fields,
            "indexes": {PRIMARY_KEY_INDEX: {"_id": 1}},
            "classLevelPermissions": copy.deepcopy(DEFAULT_CLP),
        }

    def _add_field(self, document: Dict[str, Any], name: str, definition: Dict[str, Any]) -> None:
        if not isinstance(definition, dict) or "type" not in definition:
            raise StoreAPIError(
                f"Invalid field definition for {name}.", status_code=400, code=INCORRECT_TYPE
            )
        existing = document["fields"].get(name)
        if existing is not None and type_signature(existing) != type_signature(definition):
            raise StoreAPIError(
                f"Field {name} exists, cannot update.",
                status_code=400,
                code=CHANGED_IMMUTABLE_FIELD,
            )
        document["fields"][name] = copy.deepcopy(definition)

    def _add_index(self, document: Dict[str, Any], name: str, definition: Dict[str, Any]) -> None:
        if name in document["indexes"]:
            raise StoreAPIError(
                f"Index {name} exists, cannot update.", status_code=400, code=DUPLICATE_VALUE
            )
        for key in definition:
            if key not in document["fields"]:
                raise StoreAPIError(
                    f"Field {key} does not exist, cannot add index.",
                    status_code=400,
                    code=INVALID_KEY_NAME,
                )
        document["indexes"][name] = copy.deepcopy(definition)
