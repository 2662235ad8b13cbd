"""NATS request router.

Binds the four permission subjects to the AuthorizationService. Each message
is decoded into a typed request, handed to the service, and the encoded
result is sent back as the reply on the same message.

Subjects:
    permissions.grant   {apiKey, module, action} -> {status: "ok"}
    permissions.revoke  {apiKey, module, action} -> {status: "ok"}
    permissions.check   {apiKey, module, action} -> {allowed: bool}
    permissions.list    {apiKey}                 -> {permissions: [...]}

Any failure is answered with {error: {code, message}}; the router never
leaves a request without a reply.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from ..auth.models import ErrorCode
from ..schemas import (
    CheckRequest,
    ErrorResponse,
    GrantRequest,
    ListRequest,
    RevokeRequest,
)
from ..service import AuthorizationService

logger = logging.getLogger("gatekeeper.bus.router")

OPERATIONS = ("grant", "revoke", "check", "list")


def subject_for(operation: str, prefix: str = "") -> str:
    """Build the bus subject for an operation, e.g. 'permissions.grant'."""
    subject = f"permissions.{operation}"
    if prefix:
        return f"{prefix.rstrip('.')}.{subject}"
    return subject


def encode_response(response: BaseModel) -> bytes:
    """Encode a response model as a JSON reply payload."""
    return json.dumps(response.model_dump(mode="json", exclude_none=True)).encode()


class RequestRouter:
    """Routes bus requests to the authorization service.

    Usage:
        router = RequestRouter(service, queue="gatekeeper")
        await router.start(nc)
        ...
        await router.stop()
    """

    def __init__(
        self,
        service: AuthorizationService,
        subject_prefix: str = "",
        queue: str | None = None,
    ):
        self.service = service
        self.subject_prefix = subject_prefix
        self.queue = queue
        self._subscriptions: list[Any] = []

        handlers: dict[str, tuple[type[BaseModel], Callable[[Any], Awaitable[BaseModel]]]] = {
            "grant": (GrantRequest, service.grant),
            "revoke": (RevokeRequest, service.revoke),
            "check": (CheckRequest, service.check),
            "list": (ListRequest, service.list),
        }
        self._routes = {subject_for(op, subject_prefix): handlers[op] for op in OPERATIONS}

    @property
    def subjects(self) -> list[str]:
        """Subjects served by this router."""
        return list(self._routes)

    @property
    def is_running(self) -> bool:
        return bool(self._subscriptions)

    async def handle(self, subject: str, data: bytes) -> bytes:
        """Handle one request payload and return the encoded reply."""
        route = self._routes.get(subject)
        if route is None:
            logger.error(f"No handler for subject {subject}")
            return encode_response(ErrorResponse.build(ErrorCode.INTERNAL_ERROR, "Internal server error"))

        request_model, handler = route

        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Malformed payload on {subject}: {e}")
            return encode_response(ErrorResponse.build(ErrorCode.INVALID_PAYLOAD, "Malformed JSON payload"))

        if not isinstance(payload, dict):
            logger.warning(f"Payload on {subject} is not a JSON object")
            return encode_response(
                ErrorResponse.build(ErrorCode.INVALID_PAYLOAD, "Payload must be a JSON object")
            )

        try:
            request = request_model.model_validate(payload)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            logger.warning(f"Invalid payload on {subject}: {fields}")
            return encode_response(
                ErrorResponse.build(ErrorCode.INVALID_PAYLOAD, f"Invalid field types: {fields}")
            )

        try:
            response = await handler(request)
            return encode_response(response)
        except Exception as e:
            logger.exception(f"Handler error on {subject}: {e}")
            return encode_response(ErrorResponse.build(ErrorCode.INTERNAL_ERROR, "Internal server error"))

    async def start(self, nc: Any) -> None:
        """Subscribe to all permission subjects on a connected NATS client."""
        for subject in self._routes:
            sub = await nc.subscribe(subject, queue=self.queue or "", cb=self._on_message)
            self._subscriptions.append(sub)
            logger.info(f"Subscribed to {subject}")

        logger.info("NATS subscriptions setup completed")

    async def stop(self) -> None:
        """Drain subscriptions so in-flight requests still get a reply."""
        for sub in self._subscriptions:
            try:
                await sub.drain()
            except Exception as e:
                logger.warning(f"Error draining subscription: {e}")
        self._subscriptions.clear()

    async def _on_message(self, msg: Any) -> None:
        reply = await self.handle(msg.subject, msg.data)
        if not msg.reply:
            logger.warning(f"Request on {msg.subject} has no reply subject, dropping response")
            return
        try:
            await msg.respond(reply)
        except Exception as e:
            logger.error(f"Failed to send reply on {msg.subject}: {e}")
