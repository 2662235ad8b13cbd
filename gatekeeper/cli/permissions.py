"""Permission management CLI.

Commands that talk to a running service over the message bus.
"""

import json

from ..auth.models import ErrorCode
from ..bus.client import ClientError, PermissionsClient
from ..config.settings import get_settings


def _make_client() -> PermissionsClient:
    settings = get_settings()
    return PermissionsClient(
        settings.nats_url,
        timeout=settings.request_timeout,
        subject_prefix=settings.subject_prefix,
    )


def _print_error(response: dict, json_output: bool) -> int:
    """Print an error response and return the exit code."""
    if json_output:
        print(json.dumps(response))
    else:
        error = response["error"]
        print(f"Error ({error.get('code')}): {error.get('message')}")
    return 1


def _print_client_error(error: ClientError, json_output: bool) -> int:
    """Report a transport failure in the same shape as a service error."""
    return _print_error(
        {"error": {"code": ErrorCode.INTERNAL_ERROR.value, "message": error.message}},
        json_output,
    )


async def _call(operation: str, *args: str) -> dict:
    async with _make_client() as client:
        if operation == "list":
            return await client.list_permissions(*args)
        return await getattr(client, operation)(*args)


async def cmd_change(operation: str, api_key: str, module: str, action: str, json_output: bool = False) -> int:
    """Grant or revoke a permission.

    Args:
        operation: "grant" or "revoke".
        api_key: The API key to change.
        module: Permission module.
        action: Permission action.
        json_output: Output as JSON.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        response = await _call(operation, api_key, module, action)
    except ClientError as e:
        return _print_client_error(e, json_output)

    if "error" in response:
        return _print_error(response, json_output)

    if json_output:
        print(json.dumps(response))
    else:
        verb = "Granted" if operation == "grant" else "Revoked"
        print(f"{verb} {module}:{action}")
    return 0


async def cmd_check(api_key: str, module: str, action: str, json_output: bool = False) -> int:
    """Check a permission. Exit code 0 means the request was answered, not that it was allowed."""
    try:
        response = await _call("check", api_key, module, action)
    except ClientError as e:
        return _print_client_error(e, json_output)

    if "error" in response:
        return _print_error(response, json_output)

    if json_output:
        print(json.dumps(response))
    else:
        print(f"{module}:{action}: {'allowed' if response['allowed'] else 'denied'}")
    return 0


async def cmd_list(api_key: str, json_output: bool = False) -> int:
    """List the permissions held by an API key."""
    try:
        response = await _call("list", api_key)
    except ClientError as e:
        return _print_client_error(e, json_output)

    if "error" in response:
        return _print_error(response, json_output)

    if json_output:
        print(json.dumps(response))
        return 0

    permissions = response.get("permissions", [])
    if not permissions:
        print("No permissions granted.")
        return 0

    print(f"{'MODULE':<24} ACTION")
    print("-" * 40)
    for perm in permissions:
        print(f"{perm['module']:<24} {perm['action']}")
    print(f"\nTotal: {len(permissions)} permission(s)")
    return 0
