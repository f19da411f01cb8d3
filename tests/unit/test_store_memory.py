"""
Tests for schemasync.store.memory module.
"""

import pytest

from schemasync.exceptions import StoreAPIError
from schemasync.schema.models import LiveSchema
from schemasync.schema.operations import DELETE_OP
from schemasync.store.memory import DEFAULT_CLP, InMemorySchemaStore


class TestInMemorySchemaStore:
    """Test the in-memory schema store."""

    @pytest.mark.asyncio
    async def test_seeded_with_dicts_and_models(self, live_game):
        store = InMemorySchemaStore(
            [live_game, LiveSchema.model_validate({"className": "Orphan"})]
        )

        schemas = await store.get_all_schemas()

        assert [s.class_name for s in schemas] == ["Game", "Orphan"]
        assert store.calls[0].method == "get_all_schemas"

    @pytest.mark.asyncio
    async def test_create_adds_default_columns(self, empty_store):
        await empty_store.create_schema(
            "Game",
            {
                "className": "Game",
                "fields": {"title": {"type": "String"}},
                "indexes": {"title_1": {"title": 1}},
            },
        )

        schema = empty_store.schema("Game")
        assert set(schema.fields) == {"objectId", "createdAt", "updatedAt", "ACL", "title"}
        assert schema.indexes == {"_id_": {"_id": 1}, "title_1": {"title": 1}}
        assert schema.class_level_permissions == DEFAULT_CLP

    @pytest.mark.asyncio
    async def test_create_existing_class_fails(self, seeded_store):
        with pytest.raises(StoreAPIError, match="already exists"):
            await seeded_store.create_schema("Game", {"className": "Game"})

    @pytest.mark.asyncio
    async def test_update_missing_class_fails(self, empty_store):
        with pytest.raises(StoreAPIError, match="does not exist"):
            await empty_store.update_schema("Game", {"className": "Game"})

    @pytest.mark.asyncio
    async def test_update_applies_deltas(self, seeded_store):
        await seeded_store.update_schema(
            "Game",
            {
                "className": "Game",
                "fields": {"score": DELETE_OP, "level": {"type": "Number"}},
                "indexes": {"title_1": DELETE_OP},
                "classLevelPermissions": {"addField": {}},
            },
        )

        schema = seeded_store.schema("Game")
        assert "score" not in schema.fields
        assert schema.fields["level"] == {"type": "Number"}
        assert "title_1" not in schema.indexes
        assert schema.class_level_permissions == {"addField": {}}

    @pytest.mark.asyncio
    async def test_update_without_permissions_keeps_them(self, seeded_store, live_game):
        await seeded_store.update_schema("Game", {"className": "Game", "fields": {}})

        assert (
            seeded_store.schema("Game").class_level_permissions
            == live_game["classLevelPermissions"]
        )

    @pytest.mark.asyncio
    async def test_type_change_in_place_rejected(self, seeded_store):
        """Changing a field type requires a delete first."""
        with pytest.raises(StoreAPIError, match="cannot update"):
            await seeded_store.update_schema(
                "Game", {"className": "Game", "fields": {"score": {"type": "String"}}}
            )

        assert seeded_store.schema("Game").fields["score"] == {"type": "Number"}

    @pytest.mark.asyncio
    async def test_same_type_replaces_options(self, seeded_store):
        await seeded_store.update_schema(
            "Game",
            {"className": "Game", "fields": {"score": {"type": "Number", "required": True}}},
        )

        assert seeded_store.schema("Game").fields["score"] == {"type": "Number", "required": True}

    @pytest.mark.asyncio
    async def test_delete_missing_field_rejected(self, seeded_store):
        with pytest.raises(StoreAPIError):
            await seeded_store.update_schema(
                "Game", {"className": "Game", "fields": {"nope": DELETE_OP}}
            )

    @pytest.mark.asyncio
    async def test_existing_index_redefinition_rejected(self, seeded_store):
        with pytest.raises(StoreAPIError, match="Index title_1 exists"):
            await seeded_store.update_schema(
                "Game", {"className": "Game", "indexes": {"title_1": {"title": -1}}}
            )

    @pytest.mark.asyncio
    async def test_index_on_unknown_field_rejected(self, seeded_store):
        with pytest.raises(StoreAPIError, match="cannot add index"):
            await seeded_store.update_schema(
                "Game", {"className": "Game", "indexes": {"nope_1": {"nope": 1}}}
            )

    @pytest.mark.asyncio
    async def test_rejected_update_leaves_no_partial_state(self, seeded_store):
        with pytest.raises(StoreAPIError):
            await seeded_store.update_schema(
                "Game",
                {
                    "className": "Game",
                    "fields": {"level": {"type": "Number"}, "nope": DELETE_OP},
                },
            )

        assert "level" not in seeded_store.schema("Game").fields

    @pytest.mark.asyncio
    async def test_ensure_session_collection(self, empty_store):
        await empty_store.ensure_session_collection()
        await empty_store.ensure_session_collection()

        schema = empty_store.schema("_Session")
        assert schema.fields["sessionToken"] == {"type": "String"}
        assert [c.method for c in empty_store.calls] == [
            "ensure_session_collection",
            "ensure_session_collection",
        ]

    @pytest.mark.asyncio
    async def test_recorded_calls(self, seeded_store):
        await seeded_store.update_schema("Game", {"className": "Game", "fields": {}})

        calls = seeded_store.calls_for("Game")
        assert len(calls) == 1
        assert calls[0].fields == {}
        assert calls[0].class_level_permissions is None
        assert seeded_store.mutating_calls() == calls

    @pytest.mark.asyncio
    async def test_context_manager(self):
        async with InMemorySchemaStore() as store:
            assert await store.get_all_schemas() == []
