"""
Schema reconciliation core logic for schemasync.

Drives one pass over every declared schema: diff against the live snapshot,
apply the changes in an order the backend accepts, then lock down the
permissions of every live class that has no declaration.
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Union

import pydantic

from ..exceptions import (
    ConfigurationError,
    DuplicateClassError,
    ReconciliationError,
    StartupTimeoutError,
)
from .differ import ChangeSet, compute_change_set
from .models import DeclaredSchema, LiveSchema, class_names
from .operations import SchemaChange, SchemaChangeRequest, apply_field
from .permissions import merge_class_level_permissions
from .protection import is_system_class

if TYPE_CHECKING:
    from ..store.base import SchemaStore


logger = logging.getLogger(__name__)

DEFAULT_STARTUP_TIMEOUT = 20.0


def _quoted(names: Iterable[str]) -> str:
    return ", ".join(f'"{name}"' for name in names)


class ReconciliationStatus(str, Enum):
    """Status of a reconciliation pass."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class ReconciliationResult:
    """Result of one reconciliation pass."""

    status: ReconciliationStatus = ReconciliationStatus.FAILED
    classes_created: List[str] = field(default_factory=list)
    classes_updated: List[str] = field(default_factory=list)
    classes_secured: List[str] = field(default_factory=list)
    changes_applied: List[SchemaChange] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def successful_changes(self) -> int:
        """Count of successfully applied changes."""
        return sum(1 for c in self.changes_applied if c.executed)

    @property
    def failed_changes(self) -> int:
        """Count of failed changes."""
        return sum(1 for c in self.changes_applied if c.error)


def validate_declared_schemas(
    schemas: Any,
) -> List[DeclaredSchema]:
    """
    Check that ``schemas`` is a sequence of schemas with unique class names.

    Plain dicts are validated into DeclaredSchema.

    Raises:
        ConfigurationError: If the sequence is malformed
        DuplicateClassError: If a class name is declared more than once
    """
    if schemas is None:
        return []
    if isinstance(schemas, (str, bytes, dict)) or not isinstance(schemas, Iterable):
        raise ConfigurationError(
            f"Declared schemas must be a list, got {type(schemas).__name__}"
        )

    validated = []
    for i, schema in enumerate(schemas):
        if isinstance(schema, DeclaredSchema):
            validated.append(schema)
            continue
        try:
            validated.append(DeclaredSchema.model_validate(schema))
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid schema at index {i}: {e}", cause=e)

    counts = Counter(class_names(validated))
    duplicates = sorted(name for name, count in counts.items() if count > 1)
    if duplicates:
        raise DuplicateClassError(duplicates)

    return validated


class SchemaReconciler:
    """
    Core schema reconciliation engine for schemasync.

    One ``run()`` call is one pass:
    - materialize the session class and snapshot every live schema
    - create or update each declared class, concurrently
    - warn about undeclared classes (strict mode)
    - close ``addField`` on every undeclared live class
    """

    def __init__(
        self,
        store: "SchemaStore",
        schemas: Sequence[Union[DeclaredSchema, Dict[str, Any]]],
        strict: bool = False,
        delete_extra_fields: bool = False,
        recreate_modified_fields: bool = False,
        delete_extra_indexes: bool = True,
        production: bool = False,
        startup_timeout: float = DEFAULT_STARTUP_TIMEOUT,
    ):
        self.store = store
        self.schemas = tuple(validate_declared_schemas(schemas))
        self.strict = strict
        self.delete_extra_fields = delete_extra_fields
        self.recreate_modified_fields = recreate_modified_fields
        self.delete_extra_indexes = delete_extra_indexes
        self.production = production
        self.startup_timeout = startup_timeout
        self.last_result: Optional[ReconciliationResult] = None

    @classmethod
    def from_config(cls, store: "SchemaStore", config) -> "SchemaReconciler":
        """Build a reconciler from a SchemaSyncConfig."""
        migrations = config.migrations
        return cls(
            store,
            migrations.schemas,
            strict=migrations.strict,
            delete_extra_fields=migrations.delete_extra_fields,
            recreate_modified_fields=migrations.recreate_modified_fields,
            delete_extra_indexes=migrations.delete_extra_indexes,
            production=config.is_production,
            startup_timeout=config.retry.startup_timeout,
        )

    @property
    def declared_class_names(self) -> List[str]:
        return class_names(self.schemas)

    async def run(self) -> ReconciliationResult:
        """
        Perform one reconciliation pass.

        Returns:
            ReconciliationResult of the successful pass

        Raises:
            StartupTimeoutError: If bootstrap and enumeration exceed the startup window
            ReconciliationError: If any class fails to reconcile
            StoreError: If the live schemas cannot be enumerated
        """
        loop = asyncio.get_running_loop()
        start_time = loop.time()
        result = ReconciliationResult()
        self.last_result = result

        try:
            live_schemas = await self._load_live_schemas()
            live_by_name = {schema.class_name: schema for schema in live_schemas}

            await self._gather_classes(
                [
                    self._save_or_update(schema, live_by_name.get(schema.class_name), result)
                    for schema in self.schemas
                ],
                result,
            )

            self._check_for_missing_schemas(live_schemas, result)
            await self._enforce_clp_for_undeclared_classes(live_schemas, result)

            result.status = ReconciliationStatus.SUCCESS
            return result
        except Exception as e:
            if not result.errors:
                result.errors.append(str(e))
            raise
        finally:
            result.execution_time_ms = (loop.time() - start_time) * 1000
            logger.info(
                f"Reconciliation {result.status.value}: "
                f"{len(result.classes_created)} created, "
                f"{len(result.classes_updated)} updated, "
                f"{len(result.classes_secured)} secured "
                f"({result.execution_time_ms:.1f}ms)"
            )

    async def plan(self) -> Dict[str, ChangeSet]:
        """Diff every declared schema against the live state without applying anything."""
        live_by_name = {
            schema.class_name: schema for schema in await self.store.get_all_schemas()
        }
        return {
            schema.class_name: compute_change_set(schema, live_by_name.get(schema.class_name))
            for schema in self.schemas
        }

    async def _load_live_schemas(self) -> List[LiveSchema]:
        """Materialize the session class, then snapshot every live schema."""

        async def bootstrap() -> List[LiveSchema]:
            await self.store.ensure_session_collection()
            return await self.store.get_all_schemas()

        # Outside production an unreachable backend is allowed to hang
        if not self.production:
            return await bootstrap()

        try:
            return await asyncio.wait_for(bootstrap(), timeout=self.startup_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Timeout occurred during execution of migrations.")
            raise StartupTimeoutError(self.startup_timeout) from e

    async def _gather_classes(self, tasks: List, result: ReconciliationResult) -> None:
        """Run per-class tasks to completion, then fail if any of them failed."""
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if not failures:
            return

        result.errors.extend(str(f) for f in failures)
        raise failures[0]

    async def _save_or_update(
        self,
        declared: DeclaredSchema,
        live: Optional[LiveSchema],
        result: ReconciliationResult,
    ) -> None:
        class_name = declared.class_name
        if live is not None:
            try:
                await self._update_schema(declared, live, result)
            except Exception as e:
                logger.error(f"Error during update of schema for type {class_name}: {e}")
                raise ReconciliationError(
                    class_name, f"Failed to update schema for {class_name}", cause=e
                ) from e
        else:
            try:
                await self._save_schema(declared, result)
            except Exception as e:
                logger.error(f"Error while saving Schema for type {class_name}: {e}")
                raise ReconciliationError(
                    class_name, f"Failed to create schema for {class_name}", cause=e
                ) from e

    async def _save_schema(self, declared: DeclaredSchema, result: ReconciliationResult) -> None:
        class_name = declared.class_name
        changes = compute_change_set(declared)
        request = SchemaChangeRequest(class_name)

        for name, descriptor in changes.fields_to_add.items():
            apply_field(request, name, descriptor)
        for name, definition in changes.indexes_to_add.items():
            request.add_index(name, definition)

        request.set_class_level_permissions(
            merge_class_level_permissions(class_name, declared.class_level_permissions)
        )

        await self._flush(request, result, create=True)
        result.classes_created.append(class_name)
        logger.info(f"Created schema {class_name}")

    async def _update_schema(
        self,
        declared: DeclaredSchema,
        live: LiveSchema,
        result: ReconciliationResult,
    ) -> None:
        class_name = declared.class_name
        changes = compute_change_set(declared, live)
        declared_fields = declared.fields or {}
        request = SchemaChangeRequest(class_name)
        request.set_class_level_permissions(
            merge_class_level_permissions(
                class_name,
                declared.class_level_permissions,
                live.class_level_permissions,
                live_class_exists=True,
            )
        )

        # Deletions go out alone: the backend rejects dropping and re-adding
        # the same name in one call
        if self.delete_extra_fields:
            for name in changes.fields_to_delete:
                request.delete_field(name)
        elif changes.fields_to_delete:
            self._warn(
                result,
                f'The following fields exist in the database for "{class_name}", '
                f"but are missing in the schema : {_quoted(changes.fields_to_delete)}",
            )

        if self.recreate_modified_fields:
            for recreate in changes.fields_to_recreate:
                request.delete_field(recreate.field_name)
        else:
            for recreate in changes.fields_to_recreate:
                self._warn(
                    result,
                    f'The field "{recreate.field_name}" type differ between the schema and '
                    f'the database for "{class_name}"; Schema is defined as '
                    f'"{recreate.to_type}" and current database type is "{recreate.from_type}"',
                )

        if request.has_changes:
            await self._flush(request, result)

        for name, descriptor in changes.fields_to_add.items():
            apply_field(request, name, descriptor)
        if self.recreate_modified_fields:
            for recreate in changes.fields_to_recreate:
                apply_field(request, recreate.field_name, declared_fields[recreate.field_name])
        for name in changes.fields_with_changed_params:
            apply_field(request, name, declared_fields[name])

        for name, definition in changes.indexes_to_add.items():
            request.add_index(name, definition)
        if self.delete_extra_indexes:
            for name in changes.indexes_to_delete:
                request.delete_index(name)
        elif changes.indexes_to_delete:
            self._warn(
                result,
                f'The following indexes exist in the database for "{class_name}", '
                f"but are missing in the schema : {_quoted(changes.indexes_to_delete)}",
            )
        for name in changes.indexes_to_replace:
            request.delete_index(name)

        await self._flush(request, result)

        # Redefined indexes come back only once the old definition is gone
        if changes.indexes_to_replace:
            logger.debug(
                f'Updating indexes for "{class_name}" : '
                f"{', '.join(changes.indexes_to_replace)}"
            )
            for name, definition in changes.indexes_to_replace.items():
                request.add_index(name, definition)
            await self._flush(request, result)

        result.classes_updated.append(class_name)

    def _check_for_missing_schemas(
        self, live_schemas: List[LiveSchema], result: ReconciliationResult
    ) -> None:
        """Warn about live classes that are neither declared nor system classes."""
        if not self.strict:
            return

        declared = set(self.declared_class_names)
        missing = [
            schema.class_name
            for schema in live_schemas
            if schema.class_name not in declared and not is_system_class(schema.class_name)
        ]
        if missing:
            self._warn(
                result,
                "The following schemas are currently present in the database, "
                f"but not explicitly defined in a schema: {_quoted(missing)}",
            )

    async def _enforce_clp_for_undeclared_classes(
        self, live_schemas: List[LiveSchema], result: ReconciliationResult
    ) -> None:
        """Submit a permission-only update to every live class without a declaration."""
        declared = set(self.declared_class_names)
        undeclared = [s for s in live_schemas if s.class_name not in declared]
        await self._gather_classes(
            [self._secure_class(schema, result) for schema in undeclared], result
        )

    async def _secure_class(self, live: LiveSchema, result: ReconciliationResult) -> None:
        class_name = live.class_name
        request = SchemaChangeRequest(class_name)
        request.set_class_level_permissions(
            merge_class_level_permissions(
                class_name, None, live.class_level_permissions, live_class_exists=True
            )
        )
        try:
            await self._flush(request, result)
        except Exception as e:
            logger.error(f"Error while enforcing permissions for type {class_name}: {e}")
            raise ReconciliationError(
                class_name, f"Failed to enforce permissions for {class_name}", cause=e
            ) from e
        result.classes_secured.append(class_name)

    async def _flush(
        self,
        request: SchemaChangeRequest,
        result: ReconciliationResult,
        create: bool = False,
    ) -> None:
        """Submit the accumulated payload and reset the request."""
        payload = request.to_payload()
        try:
            if create:
                await self.store.create_schema(request.class_name, payload)
            else:
                await self.store.update_schema(request.class_name, payload)
        except Exception as e:
            for change in request.reset():
                change.error = str(e)
                result.changes_applied.append(change)
            raise

        for change in request.reset():
            change.executed = True
            result.changes_applied.append(change)

    def _warn(self, result: ReconciliationResult, message: str) -> None:
        logger.warning(message)
        result.warnings.append(message)
