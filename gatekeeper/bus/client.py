"""Client for calling the permissions service over NATS."""

from __future__ import annotations

import json
import logging
from typing import Any

from .router import subject_for

logger = logging.getLogger("gatekeeper.bus.client")


class ClientError(Exception):
    """Raised when a request cannot be delivered or answered."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)


class PermissionsClient:
    """Request/reply client for the permission subjects.

    Responses are returned as decoded dicts; error responses are returned,
    not raised, so callers can inspect ``response["error"]["code"]``.

    Usage:
        async with PermissionsClient("nats://localhost:4222") as client:
            await client.grant("key-1", "inventory", "read")
            response = await client.check("key-1", "inventory", "read")
            print(response["allowed"])
    """

    def __init__(self, nats_url: str, timeout: float = 5.0, subject_prefix: str = ""):
        self.nats_url = nats_url
        self.timeout = timeout
        self.subject_prefix = subject_prefix
        self._nc: Any | None = None

    async def connect(self) -> None:
        import nats
        from nats.errors import Error as NatsError

        try:
            self._nc = await nats.connect(servers=self.nats_url, allow_reconnect=False)
        except (NatsError, OSError) as e:
            raise ClientError(f"Cannot connect to {self.nats_url}", cause=e) from e

    async def close(self) -> None:
        if self._nc is not None:
            await self._nc.close()
            self._nc = None

    async def __aenter__(self) -> "PermissionsClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def grant(self, api_key: str, module: str, action: str) -> dict:
        return await self._request("grant", {"apiKey": api_key, "module": module, "action": action})

    async def revoke(self, api_key: str, module: str, action: str) -> dict:
        return await self._request("revoke", {"apiKey": api_key, "module": module, "action": action})

    async def check(self, api_key: str, module: str, action: str) -> dict:
        return await self._request("check", {"apiKey": api_key, "module": module, "action": action})

    async def list_permissions(self, api_key: str) -> dict:
        return await self._request("list", {"apiKey": api_key})

    async def _request(self, operation: str, payload: dict) -> dict:
        if self._nc is None:
            raise ClientError("Not connected to NATS")

        from nats.errors import Error as NatsError

        subject = subject_for(operation, self.subject_prefix)
        try:
            msg = await self._nc.request(subject, json.dumps(payload).encode(), timeout=self.timeout)
        except NatsError as e:
            logger.error(f"Request on {subject} failed: {e}")
            raise ClientError(f"Request on {subject} failed: {e}", cause=e) from e

        try:
            return json.loads(msg.data)
        except json.JSONDecodeError as e:
            raise ClientError(f"Malformed reply on {subject}", cause=e) from e
