"""
Schema descriptor models for schemasync.

Declared schemas come from configuration and are validated strictly; live
schemas are reported by the backend and are parsed leniently, since the
backend may report field types that can never be declared (``ACL``, ...).
Built-in fields in a declaration are set aside rather than rejected, so a
schema copied from the backend can be declared as is.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .protection import is_protected_field


class FieldType(str, Enum):
    """Field kinds that may be declared."""

    STRING = "String"
    BOOLEAN = "Boolean"
    FILE = "File"
    NUMBER = "Number"
    RELATION = "Relation"
    POINTER = "Pointer"
    DATE = "Date"
    GEO_POINT = "GeoPoint"
    POLYGON = "Polygon"
    ARRAY = "Array"
    OBJECT = "Object"


ScalarTypeName = Literal[
    "String",
    "Boolean",
    "File",
    "Number",
    "Date",
    "GeoPoint",
    "Polygon",
    "Array",
    "Object",
]

CLP_ACTIONS = ("find", "count", "get", "create", "update", "delete", "addField")
CLP_EXTRA_KEYS = ("protectedFields", "readUserFields", "writeUserFields")


class _BaseField(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the backend's field document, keeping only keys that were set."""
        return self.model_dump(by_alias=True, exclude_unset=True)

    @property
    def type_signature(self) -> Dict[str, Any]:
        """The ``type``/``targetClass`` pair that decides whether a field must be recreated."""
        return type_signature(self.to_payload())


class ScalarField(_BaseField):
    """Any field kind that does not reference another class."""

    type: ScalarTypeName
    required: Optional[bool] = Field(None, description="Whether the field is required")
    default_value: Optional[Any] = Field(
        None, alias="defaultValue", description="Default value for new objects"
    )


class PointerField(_BaseField):
    """Pointer to a single object of ``target_class``."""

    type: Literal["Pointer"]
    target_class: str = Field(..., alias="targetClass", min_length=1)
    required: Optional[bool] = Field(None, description="Whether the field is required")
    default_value: Optional[Any] = Field(
        None, alias="defaultValue", description="Default pointer for new objects"
    )


class RelationField(_BaseField):
    """
    Many-to-many relation to objects of ``target_class``.

    ``required`` and ``defaultValue`` are accepted but never sent: the backend
    creates relations from the target class alone.
    """

    type: Literal["Relation"]
    target_class: str = Field(..., alias="targetClass", min_length=1)
    required: Optional[bool] = Field(None, description="Ignored for relations")
    default_value: Optional[Any] = Field(
        None, alias="defaultValue", description="Ignored for relations"
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(
            by_alias=True, exclude_unset=True, exclude={"required", "default_value"}
        )


FieldDescriptor = Annotated[
    Union[ScalarField, PointerField, RelationField],
    Field(discriminator="type"),
]

IndexDescriptor = Dict[str, int]


def type_signature(field: Dict[str, Any]) -> Dict[str, Any]:
    """Extract ``type`` and ``targetClass`` from a field document."""
    return {"type": field.get("type"), "targetClass": field.get("targetClass")}


class DeclaredSchema(BaseModel):
    """A schema declared in configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    class_name: str = Field(..., alias="className", min_length=1)
    fields: Optional[Dict[str, FieldDescriptor]] = Field(
        None, description="Declared fields by name"
    )
    indexes: Optional[Dict[str, IndexDescriptor]] = Field(
        None, description="Declared indexes by name"
    )
    class_level_permissions: Optional[Dict[str, Any]] = Field(
        None, alias="classLevelPermissions", description="Class level permissions"
    )
    system_fields: Dict[str, Any] = Field(
        default_factory=dict,
        exclude=True,
        description="Built-in fields that were declared; kept as given, never reconciled",
    )

    @model_validator(mode="before")
    @classmethod
    def split_system_fields(cls, data):
        """Move built-in fields (``ACL``, ``objectId``, ...) out of ``fields``."""
        if not isinstance(data, dict):
            return data
        class_name = data.get("className", data.get("class_name"))
        fields = data.get("fields")
        if not isinstance(class_name, str) or not isinstance(fields, dict):
            return data

        system_fields = {
            name: definition
            for name, definition in fields.items()
            if is_protected_field(class_name, name)
        }
        if not system_fields:
            return data

        data = dict(data)
        data["fields"] = {k: v for k, v in fields.items() if k not in system_fields}
        data["system_fields"] = {**data.get("system_fields", {}), **system_fields}
        return data

    @field_validator("indexes")
    @classmethod
    def validate_indexes(cls, v):
        if v is None:
            return v
        for name, definition in v.items():
            if not definition:
                raise ValueError(f"Index '{name}' must reference at least one field")
        return v

    @field_validator("class_level_permissions")
    @classmethod
    def validate_class_level_permissions(cls, v):
        if v is None:
            return v
        unknown = [k for k in v if k not in CLP_ACTIONS and k not in CLP_EXTRA_KEYS]
        if unknown:
            raise ValueError(f"Unknown class level permission keys: {unknown}")
        return v


class LiveSchema(BaseModel):
    """A schema as reported by the backend at the start of a pass."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    class_name: str = Field(..., alias="className")
    fields: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    indexes: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    class_level_permissions: Optional[Dict[str, Any]] = Field(
        None, alias="classLevelPermissions"
    )

    @field_validator("fields", "indexes", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return v or {}


def make_schema(
    class_name: str,
    fields: Optional[Dict[str, Any]] = None,
    indexes: Optional[Dict[str, IndexDescriptor]] = None,
    class_level_permissions: Optional[Dict[str, Any]] = None,
) -> DeclaredSchema:
    """
    Build a declared schema prefilled with the default system fields.

    The ``objectId`` index and a fully closed permission document are added
    too; anything passed in overrides those defaults. The system fields end
    up in ``system_fields`` and are never reconciled.
    """
    return DeclaredSchema.model_validate(
        {
            "className": class_name,
            "fields": {
                "objectId": {"type": "String"},
                "createdAt": {"type": "Date"},
                "updatedAt": {"type": "Date"},
                "ACL": {"type": "ACL"},
                **(fields or {}),
            },
            "indexes": {
                "objectId": {"objectId": 1},
                **(indexes or {}),
            },
            "classLevelPermissions": {
                "find": {},
                "count": {},
                "get": {},
                "update": {},
                "create": {},
                "delete": {},
                "addField": {},
                "protectedFields": {},
                **(class_level_permissions or {}),
            },
        }
    )


def class_names(schemas: Iterable[Union[DeclaredSchema, LiveSchema]]) -> List[str]:
    """Class names of ``schemas`` in order."""
    return [s.class_name for s in schemas]
