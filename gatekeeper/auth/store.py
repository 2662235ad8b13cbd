"""Durable permission store.

The store is the source of truth for granted permissions. The service only
talks to it through the PermissionStore interface, so tests and alternate
deployments can substitute their own implementation.
"""

import asyncio
import logging
import sqlite3
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

from .errors import PermissionNotFoundError, StoreError
from .models import Permission

logger = logging.getLogger("gatekeeper.auth.store")

# Default database location
DEFAULT_DB_PATH = Path.home() / ".local" / "share" / "gatekeeper" / "permissions.db"


class PermissionStore(ABC):
    """Abstract durable store of (api_key, module, action) grants."""

    async def initialize(self) -> None:
        """Prepare the store (create schema, open pools). Safe to call repeatedly."""

    @abstractmethod
    async def grant(self, api_key: str, module: str, action: str) -> None:
        """Record a grant. Granting an existing permission is a no-op.

        Raises:
            StoreError: On storage failure.
        """

    @abstractmethod
    async def revoke(self, api_key: str, module: str, action: str) -> None:
        """Delete a grant.

        Raises:
            PermissionNotFoundError: If no matching grant existed.
            StoreError: On storage failure.
        """

    @abstractmethod
    async def get_permissions(self, api_key: str) -> list[Permission]:
        """Return every permission held by an API key.

        Raises:
            StoreError: On storage failure.
        """

    @abstractmethod
    async def has_permission(self, api_key: str, module: str, action: str) -> bool:
        """Check whether a single grant exists.

        Raises:
            StoreError: On storage failure.
        """

    async def close(self) -> None:
        """Release any held resources."""


class SQLitePermissionStore(PermissionStore):
    """SQLite-backed permission store.

    Each call opens its own short-lived connection and runs in a worker
    thread, so concurrent requests never share a connection and the event
    loop is never blocked on disk I/O.

    Usage:
        store = SQLitePermissionStore(Path("/var/lib/gatekeeper/permissions.db"))
        await store.initialize()

        await store.grant("key-1", "inventory", "read")
        perms = await store.get_permissions("key-1")
    """

    def __init__(self, db_path: Path | None = None, timeout: float = 5.0):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to
                ~/.local/share/gatekeeper/permissions.db
            timeout: Seconds to wait on a locked database before failing.
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self.timeout = timeout
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_schema(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS permissions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    api_key TEXT NOT NULL,
                    module TEXT NOT NULL,
                    action TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE(api_key, module, action)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_permissions_api_key
                ON permissions(api_key)
            """)
            conn.commit()
        finally:
            conn.close()

    async def initialize(self) -> None:
        """Create the permissions table and index if they don't exist."""
        if self._initialized:
            return

        try:
            await asyncio.to_thread(self._create_schema)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to initialize permission store: {e}")
            raise StoreError("Failed to initialize permission store", cause=e) from e

        self._initialized = True
        logger.info(f"Permission store initialized at {self.db_path}")

    def _grant(self, api_key: str, module: str, action: str) -> bool:
        conn = self._get_connection()
        try:
            result = conn.execute(
                """
                INSERT INTO permissions (api_key, module, action, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (api_key, module, action) DO NOTHING
            """,
                (api_key, module, action, datetime.now(UTC).isoformat()),
            )
            conn.commit()
            return result.rowcount > 0
        finally:
            conn.close()

    async def grant(self, api_key: str, module: str, action: str) -> None:
        await self.initialize()

        try:
            inserted = await asyncio.to_thread(self._grant, api_key, module, action)
        except sqlite3.Error as e:
            logger.error(f"Failed to grant {module}:{action}: {e}")
            raise StoreError("Failed to grant permission", cause=e) from e

        if inserted:
            logger.info(f"Granted {module}:{action}")
        else:
            logger.debug(f"Permission {module}:{action} already granted")

    def _revoke(self, api_key: str, module: str, action: str) -> int:
        conn = self._get_connection()
        try:
            result = conn.execute(
                "DELETE FROM permissions WHERE api_key = ? AND module = ? AND action = ?",
                (api_key, module, action),
            )
            conn.commit()
            return result.rowcount
        finally:
            conn.close()

    async def revoke(self, api_key: str, module: str, action: str) -> None:
        await self.initialize()

        try:
            deleted = await asyncio.to_thread(self._revoke, api_key, module, action)
        except sqlite3.Error as e:
            logger.error(f"Failed to revoke {module}:{action}: {e}")
            raise StoreError("Failed to revoke permission", cause=e) from e

        if deleted == 0:
            raise PermissionNotFoundError(api_key, module, action)

        logger.info(f"Revoked {module}:{action}")

    def _get_permissions(self, api_key: str) -> list[Permission]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT module, action FROM permissions WHERE api_key = ? ORDER BY id",
                (api_key,),
            ).fetchall()
            return [self._row_to_permission(row) for row in rows]
        finally:
            conn.close()

    async def get_permissions(self, api_key: str) -> list[Permission]:
        await self.initialize()

        try:
            return await asyncio.to_thread(self._get_permissions, api_key)
        except sqlite3.Error as e:
            logger.error(f"Failed to get permissions: {e}")
            raise StoreError("Failed to get permissions", cause=e) from e

    def _has_permission(self, api_key: str, module: str, action: str) -> bool:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT 1 FROM permissions WHERE api_key = ? AND module = ? AND action = ?",
                (api_key, module, action),
            ).fetchone()
            return row is not None
        finally:
            conn.close()

    async def has_permission(self, api_key: str, module: str, action: str) -> bool:
        await self.initialize()

        try:
            return await asyncio.to_thread(self._has_permission, api_key, module, action)
        except sqlite3.Error as e:
            logger.error(f"Failed to check permission {module}:{action}: {e}")
            raise StoreError("Failed to check permission", cause=e) from e

    def _row_to_permission(self, row: sqlite3.Row) -> Permission:
        """Convert a database row to a Permission."""
        return Permission(module=row["module"], action=row["action"])
