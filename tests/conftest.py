"""
Pytest configuration and shared fixtures for schemasync tests.
"""

import os
import tempfile
from typing import Any, Dict

import pytest
import yaml

from schemasync.config import SchemaSyncConfig
from schemasync.store import InMemorySchemaStore


# ============================================================================
# Schema Fixtures
# ============================================================================

@pytest.fixture
def game_schema() -> Dict[str, Any]:
    """A declared schema for a class that does not exist yet."""
    return {
        "className": "Game",
        "fields": {
            "title": {"type": "String", "required": True},
            "score": {"type": "Number"},
            "owner": {"type": "Pointer", "targetClass": "_User"},
            "players": {"type": "Relation", "targetClass": "_User"},
        },
        "indexes": {"title_1": {"title": 1}},
        "classLevelPermissions": {
            "find": {"*": True},
            "get": {"*": True},
            "create": {"requiresAuthentication": True},
        },
    }


@pytest.fixture
def live_game() -> Dict[str, Any]:
    """Live state of ``Game`` as reported by the backend."""
    return {
        "className": "Game",
        "fields": {
            "objectId": {"type": "String"},
            "createdAt": {"type": "Date"},
            "updatedAt": {"type": "Date"},
            "ACL": {"type": "ACL"},
            "title": {"type": "String", "required": True},
            "score": {"type": "Number"},
            "owner": {"type": "Pointer", "targetClass": "_User"},
            "players": {"type": "Relation", "targetClass": "_User"},
        },
        "indexes": {"_id_": {"_id": 1}, "title_1": {"title": 1}},
        "classLevelPermissions": {
            "find": {"*": True},
            "count": {"*": False},
            "get": {"*": True},
            "create": {"requiresAuthentication": True},
            "update": {"*": False},
            "delete": {"*": False},
            "addField": {},
        },
    }


@pytest.fixture
def live_user() -> Dict[str, Any]:
    """Live ``_User`` class with its built-in fields and indexes."""
    return {
        "className": "_User",
        "fields": {
            "objectId": {"type": "String"},
            "createdAt": {"type": "Date"},
            "updatedAt": {"type": "Date"},
            "ACL": {"type": "ACL"},
            "username": {"type": "String"},
            "password": {"type": "String"},
            "email": {"type": "String"},
            "emailVerified": {"type": "Boolean"},
            "authData": {"type": "Object"},
        },
        "indexes": {
            "_id_": {"_id": 1},
            "username_1": {"username": 1},
            "case_insensitive_username": {"username": 1},
        },
        "classLevelPermissions": {
            "find": {"*": True},
            "count": {"*": True},
            "get": {"*": True},
            "create": {"*": True},
            "update": {"*": True},
            "delete": {"*": True},
            "addField": {"*": True},
            "protectedFields": {"*": ["email"]},
        },
    }


@pytest.fixture
def empty_store() -> InMemorySchemaStore:
    """In-memory store with no classes."""
    return InMemorySchemaStore()


@pytest.fixture
def seeded_store(live_game, live_user) -> InMemorySchemaStore:
    """In-memory store holding ``Game`` and ``_User``."""
    return InMemorySchemaStore([live_game, live_user])


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config_data(game_schema) -> Dict[str, Any]:
    """Raw configuration as it appears in a YAML file."""
    return {
        "environment": "development",
        "store": {
            "server_url": "http://localhost:1337/parse/",
            "app_id": "test-app",
            "master_key": "test-master-key",
            "timeout": 5,
        },
        "migrations": {
            "schemas": [game_schema],
            "strict": True,
            "delete_extra_fields": False,
            "recreate_modified_fields": False,
        },
        "retry": {"max_retries": 2, "base_delay": 0.5},
        "logging": {"level": "INFO"},
    }


@pytest.fixture
def sample_config(sample_config_data) -> SchemaSyncConfig:
    """Validated configuration built from ``sample_config_data``."""
    return SchemaSyncConfig(**sample_config_data)


@pytest.fixture
def temp_config_file(sample_config_data) -> str:
    """Write ``sample_config_data`` to a temporary YAML file."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(sample_config_data, f)
        path = f.name
    yield path
    os.unlink(path)
