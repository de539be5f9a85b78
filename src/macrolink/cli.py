"""Interactive Typer-based CLI for managing device macros."""

import asyncio
import importlib
import os
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console

from macrolink.application.config import DeviceProfile, ProfilesConfig, load_profiles
from macrolink.application.connection_manager import ConnectionManager
from macrolink.application.interactive_connect import InteractiveConnectOrchestrator
from macrolink.application.macros import format_macro_log
from macrolink.application.status import format_status_line_markup
from macrolink.domain.events import Unsubscribe
from macrolink.domain.exceptions import ConnectionFailure, NotConnectedError
from macrolink.domain.protocols import SessionTransport
from macrolink.domain.types import ConnectionMethod, ConnectionState
from macrolink.infrastructure.credentials import InMemoryCredentialStore
from macrolink.logger import get_logger, setup_logger

load_dotenv()

logger = get_logger("cli")
app = typer.Typer()
console = Console()

CommandHandler = Callable[[ConnectionManager, str], Awaitable[None]]

# Debug traces with this prefix announce a newly armed reconnect timer
RECONNECT_TRACE_PREFIX = "Reconnect attempt"


class TyperConnectPrompt:
    """Terminal implementation of the connect recovery prompt."""

    async def ask_password(self, profile: DeviceProfile, failure: ConnectionFailure) -> Optional[str]:
        typer.echo(f"❌ {failure.message}")
        password = typer.prompt(
            f"Authentication failed for {profile.username}@{profile.host}. Enter password to retry",
            hide_input=True,
            default="",
            show_default=False,
        )
        return password or None

    async def ask_retry(self, profile: DeviceProfile, failure: ConnectionFailure) -> bool:
        typer.echo(f"❌ {failure.guidance or failure.message}")
        return typer.confirm("Retry?", default=True)

    async def notify_failure(self, profile: DeviceProfile, failure: ConnectionFailure) -> None:
        typer.echo(f"❌ {failure}")


def load_transport(spec: str) -> SessionTransport:
    """
    Resolve a ``module:attribute`` transport spec.

    The attribute is either a transport instance (anything with an async
    ``connect``) or a zero-argument factory returning one.
    """
    module_name, _, attr = spec.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter(f"Transport must look like 'package.module:attribute', got {spec!r}")

    target: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        target = getattr(target, part)

    if not hasattr(target, "connect") or isinstance(target, type):
        target = target()
    return target


def _sanitize_command(text: str) -> str:
    """Normalize command text by removing carriage returns and trimming whitespace."""
    return text.replace("\r", "").strip()


def _read_command(prompt: str) -> str:
    """Read a command from stdin, ensuring carriage returns are stripped."""
    typer.echo(prompt, nl=False)
    sys.stdout.flush()

    line = sys.stdin.readline()
    if line == "":
        raise EOFError
    return _sanitize_command(line)


async def _handle_list(manager: ConnectionManager, _: str) -> None:
    macros = await manager.list_macros()
    if not macros:
        typer.echo("No macros on the device.")
        return
    typer.echo("Macros:")
    for macro in macros:
        marker = "●" if macro.active else "○"
        typer.echo(f"  {marker} {macro.name}")


async def _handle_get(manager: ConnectionManager, name: str) -> None:
    if not name:
        typer.echo("❌ Please specify a macro name.")
        return
    typer.echo(await manager.get_macro(name))


async def _handle_activate(manager: ConnectionManager, name: str) -> None:
    if not name:
        typer.echo("❌ Please specify a macro name.")
        return
    await manager.activate_macro(name)
    typer.echo(f"Activated {name}")


async def _handle_deactivate(manager: ConnectionManager, name: str) -> None:
    if not name:
        typer.echo("❌ Please specify a macro name.")
        return
    await manager.deactivate_macro(name)
    typer.echo(f"Deactivated {name}")


async def _handle_rename(manager: ConnectionManager, payload: str) -> None:
    parts = payload.split()
    if len(parts) != 2:
        typer.echo("❌ Usage: rename <old> <new>")
        return
    await manager.rename_macro(parts[0], parts[1])
    typer.echo(f"Renamed {parts[0]} to {parts[1]}")


async def _handle_remove(manager: ConnectionManager, name: str) -> None:
    if not name:
        typer.echo("❌ Please specify a macro name.")
        return
    await manager.remove_macro(name)
    typer.echo(f"Removed {name}")


async def _handle_restart(manager: ConnectionManager, _: str) -> None:
    await manager.restart_framework()
    typer.echo("Macro runtime restarted.")


async def _handle_status(manager: ConnectionManager, _: str) -> None:
    console.print(format_status_line_markup(manager.state, manager.host, manager.reconnect_info))


COMMANDS: Dict[str, CommandHandler] = {
    "list": _handle_list,
    "get": _handle_get,
    "activate": _handle_activate,
    "deactivate": _handle_deactivate,
    "rename": _handle_rename,
    "remove": _handle_remove,
    "restart": _handle_restart,
    "status": _handle_status,
}


async def _dispatch_command(manager: ConnectionManager, command: str) -> bool:
    command = _sanitize_command(command)

    if not command:
        return True

    if command == "quit":
        return False

    parts = command.split(maxsplit=1)
    name = parts[0]
    handler = COMMANDS.get(name)
    if handler is None:
        typer.echo("❌ Unknown command. Try 'list', 'get <name>', 'status', or 'quit'.")
        return True

    payload = _sanitize_command(parts[1]) if len(parts) > 1 else ""
    try:
        await handler(manager, payload)
    except NotConnectedError:
        typer.echo("⚠️  Not connected right now, the session is recovering. Try again shortly.")
    return True


async def _interactive_loop(manager: ConnectionManager) -> None:
    typer.echo("")
    typer.echo("🎯 Interactive macro console")
    typer.echo("Commands:")
    typer.echo("  list                    List macros")
    typer.echo("  get <name>              Print a macro's source")
    typer.echo("  activate <name>         Activate a macro")
    typer.echo("  deactivate <name>       Deactivate a macro")
    typer.echo("  rename <old> <new>      Rename a macro")
    typer.echo("  remove <name>           Remove a macro")
    typer.echo("  restart                 Restart the macro runtime")
    typer.echo("  status                  Show connection status")
    typer.echo("  quit                    Exit")
    typer.echo("")

    while True:
        try:
            # Read in a thread so reconnect and health timers keep running
            command = await asyncio.to_thread(_read_command, "macros> ")
        except (KeyboardInterrupt, EOFError):
            typer.echo("\n👋 Goodbye!")
            break

        should_continue = await _dispatch_command(manager, command)
        if not should_continue:
            break


def _bind_console_output(manager: ConnectionManager) -> List[Unsubscribe]:
    """Print device logs and status lines for a connected manager."""

    def print_status() -> None:
        console.print(format_status_line_markup(manager.state, manager.host, manager.reconnect_info))

    def on_state(state: ConnectionState) -> None:
        # Reconnect progress is printed from the trace that carries the new delay
        if state is not ConnectionState.RECONNECTING:
            print_status()

    def on_trace(message: str) -> None:
        if message.startswith(RECONNECT_TRACE_PREFIX):
            print_status()

    return [
        manager.on_state_change(on_state),
        manager.on_debug(on_trace),
        manager.on_log(lambda entry: typer.echo(format_macro_log(entry))),
    ]


def _resolve_profile(
    config: Optional[ProfilesConfig],
    profile_id: Optional[str],
    host: Optional[str],
    username: Optional[str],
    method: str,
) -> DeviceProfile:
    if host:
        return DeviceProfile(label=host, host=host, username=username or "admin", connection_method=method)
    if config is None:
        raise typer.BadParameter("No profiles file found; pass --host or --config")
    profile = config.get(profile_id) if profile_id else config.active()
    if profile is None:
        raise typer.BadParameter(f"Unknown profile {profile_id!r}" if profile_id else "No profiles configured")
    return profile


def run_cli(
    profile: DeviceProfile,
    transport: SessionTransport,
    config: Optional[ProfilesConfig],
    password: Optional[str],
) -> None:
    settings = config.settings if config else None

    async def runner() -> None:
        credentials = InMemoryCredentialStore()
        if password is None:
            entered = typer.prompt(f"Password for {profile.username}@{profile.host}", hide_input=True)
            await credentials.set_password(profile.id, entered)
        else:
            await credentials.set_password(profile.id, password)

        orchestrator = InteractiveConnectOrchestrator(
            transport,
            credentials,
            TyperConnectPrompt(),
            settings=settings,
        )
        try:
            manager = await orchestrator.connect(profile)
        except ConnectionFailure as failure:
            logger.error(f"Could not connect to {profile.host}: {failure}")
            raise typer.Exit(code=1)

        _bind_console_output(manager)
        try:
            await _interactive_loop(manager)
        except Exception as exc:
            typer.echo(f"❌ Error: {exc}")
            logger.exception("Fatal error in CLI")
        finally:
            await manager.disconnect()

    asyncio.run(runner())


@app.command()
def main(
    transport: str = typer.Option(
        os.getenv("MACROLINK_TRANSPORT", ""),
        "--transport",
        help="Session transport as 'package.module:attribute'",
    ),
    config_path: Optional[str] = typer.Option(
        os.getenv("MACROLINK_CONFIG"),
        "--config",
        help="Path to the profiles JSON file",
    ),
    profile_id: Optional[str] = typer.Option(
        None,
        "--profile",
        help="Profile id, label or host (defaults to the active profile)",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="Connect to this host without a profile"),
    username: Optional[str] = typer.Option(None, "--username", help="Username used with --host"),
    method: str = typer.Option(ConnectionMethod.WSS.value, "--method", help="wss or ssh, used with --host"),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Log file path"),
    verbose: bool = typer.Option(False, "--verbose", help="Also log to stderr"),
) -> None:
    """Connect to a device and launch the interactive macro console."""
    setup_logger(log_file=log_file, log_level=log_level.upper(), console_output=verbose)

    if not transport:
        raise typer.BadParameter("A transport is required (--transport or MACROLINK_TRANSPORT)")

    config: Optional[ProfilesConfig] = None
    try:
        config = load_profiles(config_path)
    except FileNotFoundError:
        if config_path:
            raise typer.BadParameter(f"Profiles file not found: {config_path}")

    profile = _resolve_profile(config, profile_id, host, username, method)
    run_cli(profile, load_transport(transport), config, os.getenv("MACROLINK_PASSWORD"))


if __name__ == "__main__":
    app()
