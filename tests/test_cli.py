"""Tests for the gatekeeper CLI."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gatekeeper.auth.models import ErrorCode
from gatekeeper.bus.client import ClientError
from gatekeeper.cli import create_parser, main
from gatekeeper.cli.permissions import cmd_change, cmd_check, cmd_list


def _mock_client(**responses) -> MagicMock:
    """Build a PermissionsClient mock usable as an async context manager."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    for name, value in responses.items():
        setattr(client, name, AsyncMock(return_value=value))
    return client


class TestParser:
    """Tests for argument parsing."""

    def test_grant_args(self):
        """Test grant parses key, module and action."""
        args = create_parser().parse_args(["grant", "k1", "inventory", "read", "--json"])
        assert args.command == "grant"
        assert (args.api_key, args.module, args.action) == ("k1", "inventory", "read")
        assert args.json_output is True

    def test_list_args(self):
        """Test list takes only an API key."""
        args = create_parser().parse_args(["list", "k1"])
        assert args.api_key == "k1"
        assert args.json_output is False

    def test_serve_args(self):
        """Test serve accepts host and port overrides."""
        args = create_parser().parse_args(["serve", "--host", "0.0.0.0", "--port", "9000"])
        assert args.host == "0.0.0.0"
        assert args.port == 9000


class TestCommands:
    """Tests for the permission commands."""

    @pytest.mark.asyncio
    async def test_grant_success(self, capsys):
        """Test a successful grant prints a confirmation."""
        client = _mock_client(grant={"status": "ok"})
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_change("grant", "k1", "inventory", "read")

        assert code == 0
        assert "Granted inventory:read" in capsys.readouterr().out
        client.grant.assert_awaited_once_with("k1", "inventory", "read")

    @pytest.mark.asyncio
    async def test_revoke_error(self, capsys):
        """Test an error response exits with 1."""
        error = {"error": {"code": "permission_not_found", "message": "Permission not found"}}
        client = _mock_client(revoke=error)
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_change("revoke", "k1", "inventory", "read")

        assert code == 1
        assert "permission_not_found" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_check_json(self, capsys):
        """Test check --json prints the raw response."""
        client = _mock_client(check={"allowed": True})
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_check("k1", "inventory", "read", json_output=True)

        assert code == 0
        assert json.loads(capsys.readouterr().out) == {"allowed": True}

    @pytest.mark.asyncio
    async def test_check_denied(self, capsys):
        """Test a denied check still exits with 0."""
        client = _mock_client(check={"allowed": False})
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_check("k1", "inventory", "write")

        assert code == 0
        assert "inventory:write: denied" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_list_table(self, capsys):
        """Test list prints one row per permission."""
        client = _mock_client(
            list_permissions={"permissions": [{"module": "inventory", "action": "read"}]}
        )
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_list("k1")

        out = capsys.readouterr().out
        assert code == 0
        assert "inventory" in out
        assert "Total: 1 permission(s)" in out

    @pytest.mark.asyncio
    async def test_list_empty(self, capsys):
        """Test list reports when nothing is granted."""
        client = _mock_client(list_permissions={"permissions": []})
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            await cmd_list("k1")

        assert "No permissions granted." in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_connection_failure(self, capsys):
        """Test a connection failure exits with 1."""
        client = _mock_client()
        client.__aenter__ = AsyncMock(side_effect=ClientError("Cannot connect to nats://localhost:4222"))
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_check("k1", "inventory", "read")

        assert code == 1
        out = capsys.readouterr().out
        assert "Cannot connect" in out
        assert "internal_error" in out

    @pytest.mark.asyncio
    async def test_connection_failure_json(self, capsys):
        """Test a connection failure in JSON mode uses a documented error code."""
        client = _mock_client()
        client.__aenter__ = AsyncMock(side_effect=ClientError("Cannot connect to nats://localhost:4222"))
        with patch("gatekeeper.cli.permissions._make_client", return_value=client):
            code = await cmd_list("k1", json_output=True)

        assert code == 1
        error = json.loads(capsys.readouterr().out)["error"]
        assert error["code"] == ErrorCode.INTERNAL_ERROR.value
        assert "Cannot connect" in error["message"]


class TestMain:
    """Tests for the CLI entry point."""

    def test_main_dispatches_check(self):
        """Test main runs the check command."""
        with patch("gatekeeper.cli.permissions.cmd_check", AsyncMock(return_value=0)) as cmd:
            assert main(["check", "k1", "inventory", "read"]) == 0
        cmd.assert_awaited_once_with("k1", "inventory", "read", json_output=False)

    def test_main_dispatches_serve(self):
        """Test main runs the server with overrides."""
        with patch("gatekeeper.main.run") as run:
            assert main(["serve", "--port", "9000"]) == 0
        run.assert_called_once_with(host=None, port=9000)
