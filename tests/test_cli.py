"""Tests for the interactive CLI."""

from unittest.mock import patch

import pytest
import typer
from typer.testing import CliRunner

from macrolink.application.config import DeviceProfile
from macrolink.application.connection_manager import ConnectionManager
from macrolink.cli import TyperConnectPrompt, _bind_console_output, _dispatch_command, app, load_transport
from macrolink.domain.exceptions import ConnectionFailure, TransportFailure
from macrolink.domain.types import ErrorCategory
from tests.fakes import FakeTransport

runner = CliRunner()


async def ready_manager(transport, scheduler) -> ConnectionManager:
    manager = ConnectionManager("codec.local", "admin", "pw", transport=transport, scheduler=scheduler)
    await manager.connect()
    transport.sessions[-1].emit_ready()
    return manager


class TestLoadTransport:
    """Tests for transport resolution."""

    def test_factory(self):
        transport = load_transport("tests.fakes:ready_transport")

        assert isinstance(transport, FakeTransport)
        assert transport.auto_ready

    def test_class(self):
        assert isinstance(load_transport("tests.fakes:FakeTransport"), FakeTransport)

    def test_malformed(self):
        with pytest.raises(typer.BadParameter):
            load_transport("tests.fakes")


class TestDispatch:
    """Tests for REPL command dispatch."""

    @pytest.mark.asyncio
    async def test_list(self, transport, scheduler, capsys):
        manager = await ready_manager(transport, scheduler)
        transport.sessions[0].results["Macros/Macro/Get"] = {
            "Macro": [{"Name": "greeter", "Active": True}, {"Name": "idle", "Active": False}]
        }

        assert await _dispatch_command(manager, "list\r\n") is True

        out = capsys.readouterr().out
        assert "● greeter" in out
        assert "○ idle" in out

    @pytest.mark.asyncio
    async def test_rename(self, transport, scheduler):
        manager = await ready_manager(transport, scheduler)

        await _dispatch_command(manager, "rename old new")

        assert transport.sessions[0].commands == [("Macros/Macro/Rename", {"Name": "old", "NewName": "new"}, None)]

    @pytest.mark.asyncio
    async def test_quit_and_unknown(self, transport, scheduler, capsys):
        manager = await ready_manager(transport, scheduler)

        assert await _dispatch_command(manager, "quit") is False
        assert await _dispatch_command(manager, "") is True
        assert await _dispatch_command(manager, "explode") is True
        assert "Unknown command" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_not_connected(self, transport, scheduler, capsys):
        manager = await ready_manager(transport, scheduler)
        transport.sessions[0].emit_close()

        assert await _dispatch_command(manager, "activate greeter") is True
        assert "Not connected" in capsys.readouterr().out


class TestConsoleOutput:
    """Tests for the status lines printed while connected."""

    @pytest.mark.asyncio
    async def test_each_reconnect_attempt_prints_status(self, transport, scheduler, capsys):
        manager = await ready_manager(transport, scheduler)
        _bind_console_output(manager)
        transport.fail_with = TransportFailure("connect ECONNREFUSED", code="ECONNREFUSED")

        transport.sessions[0].emit_close()
        await scheduler.run_next()
        await scheduler.run_next()

        out = capsys.readouterr().out
        assert out.count("attempt 1, retry in 1s") == 1
        assert out.count("attempt 2, retry in 2s") == 1
        assert out.count("attempt 3, retry in 4s") == 1

    @pytest.mark.asyncio
    async def test_unbind_stops_output(self, transport, scheduler, capsys):
        manager = await ready_manager(transport, scheduler)
        for unsubscribe in _bind_console_output(manager):
            unsubscribe()

        transport.sessions[0].emit_close()

        assert capsys.readouterr().out == ""


class TestTyperConnectPrompt:
    """Tests for the terminal prompt."""

    PROFILE = DeviceProfile(host="codec.local", username="admin")
    FAILURE = ConnectionFailure(ErrorCategory.AUTH, "401 Unauthorized", "Update your password")

    @pytest.mark.asyncio
    async def test_ask_password(self):
        with patch("macrolink.cli.typer.prompt", return_value="fresh") as prompt:
            assert await TyperConnectPrompt().ask_password(self.PROFILE, self.FAILURE) == "fresh"
        assert prompt.call_args.kwargs["hide_input"] is True

    @pytest.mark.asyncio
    async def test_ask_password_cancelled(self):
        with patch("macrolink.cli.typer.prompt", return_value=""):
            assert await TyperConnectPrompt().ask_password(self.PROFILE, self.FAILURE) is None

    @pytest.mark.asyncio
    async def test_ask_retry(self):
        with patch("macrolink.cli.typer.confirm", return_value=False):
            assert await TyperConnectPrompt().ask_retry(self.PROFILE, self.FAILURE) is False


class TestMain:
    """Tests for the Typer command."""

    def test_requires_transport(self, tmp_path):
        result = runner.invoke(
            app,
            ["--host", "codec.local", "--log-file", str(tmp_path / "cli.log")],
            env={"MACROLINK_TRANSPORT": ""},
        )

        assert result.exit_code != 0

    def test_session_roundtrip(self, tmp_path):
        result = runner.invoke(
            app,
            [
                "--transport",
                "tests.fakes:ready_transport",
                "--host",
                "codec.local",
                "--log-file",
                str(tmp_path / "cli.log"),
            ],
            input="status\nquit\n",
            env={"MACROLINK_PASSWORD": "pw"},
        )

        assert result.exit_code == 0, result.output
        assert "Interactive macro console" in result.output
        assert "Connected" in result.output
