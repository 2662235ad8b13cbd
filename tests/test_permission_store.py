"""Tests for the SQLite permission store."""

import sqlite3
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from gatekeeper.auth.errors import PermissionNotFoundError, StoreError
from gatekeeper.auth.models import Permission
from gatekeeper.auth.store import SQLitePermissionStore


@pytest.fixture
def temp_db():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "permissions.db"


@pytest.fixture
def store(temp_db):
    """Create a permission store with a temporary database."""
    return SQLitePermissionStore(db_path=temp_db)


class TestInitialize:
    """Tests for schema creation."""

    @pytest.mark.asyncio
    async def test_initialize_creates_table(self, store, temp_db):
        """Test initialize creates the permissions table and index."""
        await store.initialize()

        conn = sqlite3.connect(str(temp_db))
        try:
            tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
            indexes = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")}
        finally:
            conn.close()

        assert "permissions" in tables
        assert "idx_permissions_api_key" in indexes

    @pytest.mark.asyncio
    async def test_initialize_is_repeatable(self, store):
        """Test initialize can be called multiple times."""
        await store.initialize()
        await store.initialize()
        assert store._initialized

    @pytest.mark.asyncio
    async def test_initialize_creates_parent_directory(self, temp_db):
        """Test a missing parent directory is created."""
        store = SQLitePermissionStore(db_path=temp_db.parent / "nested" / "perms.db")
        await store.initialize()
        assert store.db_path.exists()

    @pytest.mark.asyncio
    async def test_initialize_failure_raises_store_error(self, store):
        """Test sqlite failures during initialize become StoreError."""
        with patch.object(store, "_create_schema", side_effect=sqlite3.OperationalError("disk I/O error")):
            with pytest.raises(StoreError) as exc_info:
                await store.initialize()

        assert isinstance(exc_info.value.cause, sqlite3.OperationalError)
        assert not store._initialized


class TestGrantAndRevoke:
    """Tests for grant and revoke."""

    @pytest.mark.asyncio
    async def test_grant_and_get(self, store):
        """Test granted permissions are returned by get_permissions."""
        await store.grant("key-1", "inventory", "read")
        await store.grant("key-1", "billing", "write")

        perms = await store.get_permissions("key-1")
        assert perms == [Permission("inventory", "read"), Permission("billing", "write")]

    @pytest.mark.asyncio
    async def test_grant_duplicate_is_noop(self, store):
        """Test granting an existing triple does not error or duplicate."""
        await store.grant("key-1", "inventory", "read")
        await store.grant("key-1", "inventory", "read")

        perms = await store.get_permissions("key-1")
        assert perms == [Permission("inventory", "read")]

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self, store):
        """Test permissions of one key are not visible to another."""
        await store.grant("key-1", "inventory", "read")

        assert await store.get_permissions("key-2") == []
        assert not await store.has_permission("key-2", "inventory", "read")

    @pytest.mark.asyncio
    async def test_has_permission(self, store):
        """Test has_permission reflects grants."""
        await store.grant("key-1", "inventory", "read")

        assert await store.has_permission("key-1", "inventory", "read")
        assert not await store.has_permission("key-1", "inventory", "write")

    @pytest.mark.asyncio
    async def test_revoke_removes_grant(self, store):
        """Test revoke deletes the row."""
        await store.grant("key-1", "inventory", "read")
        await store.revoke("key-1", "inventory", "read")

        assert await store.get_permissions("key-1") == []

    @pytest.mark.asyncio
    async def test_revoke_missing_raises_not_found(self, store):
        """Test revoking a missing grant raises PermissionNotFoundError."""
        with pytest.raises(PermissionNotFoundError) as exc_info:
            await store.revoke("key-1", "inventory", "read")

        assert exc_info.value.module == "inventory"
        assert exc_info.value.action == "read"

    @pytest.mark.asyncio
    async def test_revoke_twice_raises_not_found(self, store):
        """Test the second revoke of the same grant raises PermissionNotFoundError."""
        await store.grant("key-1", "inventory", "read")
        await store.revoke("key-1", "inventory", "read")

        with pytest.raises(PermissionNotFoundError):
            await store.revoke("key-1", "inventory", "read")

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, temp_db):
        """Test grants survive a new store instance on the same file."""
        await SQLitePermissionStore(db_path=temp_db).grant("key-1", "inventory", "read")

        other = SQLitePermissionStore(db_path=temp_db)
        assert await other.get_permissions("key-1") == [Permission("inventory", "read")]


class TestStoreErrors:
    """Tests for sqlite failure mapping."""

    @pytest.mark.asyncio
    async def test_grant_sqlite_error(self, store):
        """Test sqlite errors during grant become StoreError."""
        await store.initialize()
        with patch.object(store, "_grant", side_effect=sqlite3.OperationalError("database is locked")):
            with pytest.raises(StoreError):
                await store.grant("key-1", "inventory", "read")

    @pytest.mark.asyncio
    async def test_revoke_sqlite_error(self, store):
        """Test sqlite errors during revoke become StoreError, not not-found."""
        await store.initialize()
        with patch.object(store, "_revoke", side_effect=sqlite3.OperationalError("database is locked")):
            with pytest.raises(StoreError):
                await store.revoke("key-1", "inventory", "read")

    @pytest.mark.asyncio
    async def test_get_permissions_sqlite_error(self, store):
        """Test sqlite errors during reads become StoreError."""
        await store.initialize()
        with patch.object(store, "_get_permissions", side_effect=sqlite3.DatabaseError("malformed")):
            with pytest.raises(StoreError) as exc_info:
                await store.get_permissions("key-1")

        assert exc_info.value.message == "Failed to get permissions"

    @pytest.mark.asyncio
    async def test_has_permission_sqlite_error(self, store):
        """Test sqlite errors during existence checks become StoreError."""
        await store.initialize()
        with patch.object(store, "_has_permission", side_effect=sqlite3.OperationalError("locked")):
            with pytest.raises(StoreError):
                await store.has_permission("key-1", "inventory", "read")
