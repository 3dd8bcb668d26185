"""Command line interface for dbsage."""

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .config import ConfigurationStore, ConnectionConfig, default_config_dir, parse_database_url
from .core.exceptions import DBSageException
from .database import ConnectionRegistry, ConnectionStatus
from .logging import configure_logging
from .tools import TOOLS, CapabilityFacade, PendingToolCall, PendingToolCalls, ToolDispatcher, get_tool
from .version import ReleaseChecker, UpdateInfo, UpdateNotifier

T = TypeVar("T")

LOG_FILENAME = "dbsage.log"
DEFAULT_TOOL_TIMEOUT = 60.0

app = typer.Typer(
    name="dbsage",
    help="Inspect and optimize PostgreSQL and SQLite databases.",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    ConnectionStatus.ACTIVE: "[green]active[/green]",
    ConnectionStatus.CONNECTED: "[cyan]connected[/cyan]",
    ConnectionStatus.UNHEALTHY: "[red]unhealthy[/red]",
    ConnectionStatus.DISCONNECTED: "[dim]disconnected[/dim]",
}

RISK_STYLES = {"low": "green", "medium": "yellow", "high": "red"}


def setup_logging(debug: bool = False) -> None:
    """Send logs to a file in the dbsage directory so the console stays clean."""
    configure_logging(
        level="DEBUG" if debug else "INFO",
        format="json",
        console_output=False,
        file_path=str(default_config_dir() / LOG_FILENAME),
    )


def _store(ctx: typer.Context) -> ConfigurationStore:
    config_path = ctx.obj.get("config_path") if ctx.obj else None
    return ConfigurationStore(config_path)


def _load_registry(ctx: typer.Context) -> ConnectionRegistry:
    registry = ConnectionRegistry(_store(ctx))
    registry.load()
    return registry


def _run(registry: ConnectionRegistry, action: Callable[[], Awaitable[T]]) -> T:
    """Run ``action`` on a fresh event loop, then close every connection."""

    async def main() -> T:
        try:
            return await action()
        finally:
            await registry.close()

    try:
        return asyncio.run(main())
    except DBSageException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)


def _connections_table(registry: ConnectionRegistry) -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Endpoint")
    table.add_column("Status")
    table.add_column("Last used")
    table.add_column("Description")

    status = registry.status()
    for config in registry.sorted_by_last_used():
        table.add_row(
            "*" if config.name == registry.current_name else "",
            config.name,
            config.kind,
            config.endpoint,
            STATUS_STYLES[status[config.name]],
            f"{config.last_used:%Y-%m-%d %H:%M}" if config.last_used else "never",
            config.description,
        )
    return table


def _tools_table() -> Table:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Tool")
    table.add_column("Risk")
    table.add_column("Confirm")
    table.add_column("Description")
    for tool in TOOLS:
        style = RISK_STYLES[tool.risk_level]
        table.add_row(
            tool.name,
            f"[{style}]{tool.risk_level}[/{style}]",
            "yes" if tool.requires_confirmation else "",
            tool.description,
        )
    return table


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Connections file (default: ~/.dbsage/connections.json)"
    ),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
) -> None:
    """dbsage - database inspection and optimization assistant.

    Without a command, starts the interactive mode.
    """
    setup_logging(debug)
    ctx.obj = {"config_path": config_path, "debug": debug}

    if ctx.invoked_subcommand is None:
        interactive(ctx)


@app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Connection name"),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="postgres://... or sqlite:///path URL"),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="postgres or sqlite"),
    host: str = typer.Option("", "--host", help="PostgreSQL host"),
    port: int = typer.Option(0, "--port", help="PostgreSQL port"),
    database: str = typer.Option("", "--database", help="Database name or SQLite file path"),
    username: str = typer.Option("", "--username", help="PostgreSQL user"),
    password: Optional[str] = typer.Option(None, "--password", help="PostgreSQL password"),
    ssl_mode: str = typer.Option("disable", "--ssl-mode", help="PostgreSQL sslmode"),
    description: str = typer.Option("", "--description", help="Connection description"),
) -> None:
    """Add a connection and make it current if none is selected."""
    registry = _load_registry(ctx)

    try:
        if url:
            config = parse_database_url(url, name=name, description=description)
        elif kind:
            config = ConnectionConfig.from_dict({
                "name": name,
                "kind": kind,
                "host": host,
                "port": port,
                "database": database,
                "username": username,
                "password": password,
                "ssl_mode": ssl_mode,
                "description": description,
            })
        else:
            console.print("[red]Error:[/red] either --url or --kind is required")
            raise typer.Exit(1)
    except DBSageException as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)

    with console.status(f"Connecting to {config.endpoint}..."):
        _run(registry, lambda: registry.add(config))
    console.print(f"[green]✓[/green] Added connection '{config.name}' ({config.kind})")


@app.command("list")
def list_connections(ctx: typer.Context) -> None:
    """List connections, most recently used first."""
    registry = _load_registry(ctx)
    if not len(registry):
        console.print("[yellow]No connections configured. Use 'dbsage add' to create one.[/yellow]")
        return
    console.print(_connections_table(registry))


@app.command()
def switch(ctx: typer.Context, name: str = typer.Argument(..., help="Connection name")) -> None:
    """Make a connection current."""
    registry = _load_registry(ctx)
    _run(registry, lambda: registry.switch(name))
    console.print(f"[green]✓[/green] Switched to '{name}'")


@app.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Connection name"),
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation"),
) -> None:
    """Remove a connection."""
    registry = _load_registry(ctx)
    if not force and not Confirm.ask(f"Remove connection '{name}'?", console=console):
        raise typer.Exit(0)

    _run(registry, lambda: registry.remove(name))
    console.print(f"[green]✓[/green] Removed '{name}'")
    if registry.current_name:
        console.print(f"Current connection: {registry.current_name}")


@app.command()
def status(ctx: typer.Context) -> None:
    """Check the current connection."""
    registry = _load_registry(ctx)
    if registry.current_name is None:
        console.print("[yellow]No current connection.[/yellow]")
        raise typer.Exit(1)

    async def check() -> Any:
        await registry.ensure_healthy()
        adapter, _ = await registry.current()
        return adapter.get_connection_info()

    info = _run(registry, check)
    stats = registry.stats()
    console.print(
        Panel.fit(
            f"[bold]{info['name']}[/bold] ({info['platform']})\n"
            + "\n".join(f"{key}: {value}" for key, value in info.items() if key not in ("name", "platform"))
            + f"\n\nconnections: {stats['total']}",
            title="[green]connected[/green]",
            border_style="green",
        )
    )


@app.command()
def tools() -> None:
    """List the tools available to the assistant."""
    console.print(_tools_table())


@app.command()
def version(check: bool = typer.Option(False, "--check", help="Check GitHub for a newer release")) -> None:
    """Show the dbsage version."""
    console.print(f"dbsage {__version__}")
    if not check:
        return

    try:
        info = asyncio.run(ReleaseChecker(current_version=__version__).check())
    except DBSageException as e:
        console.print(f"[red]Update check failed:[/red] {e.message}")
        raise typer.Exit(1)

    if info is None or not info.has_update:
        console.print("[green]You are running the latest version.[/green]")
    else:
        _show_update(info)


def _show_update(info: UpdateInfo) -> None:
    console.print(
        Panel.fit(
            f"dbsage {info.latest_version} is available (you have {info.current_version})\n{info.release_url}",
            title="Update available",
            border_style="yellow",
        )
    )


# Interactive mode

HELP_TEXT = """[bold]Commands[/bold]
  /tool <name> [json-args]  Run a tool, e.g. /tool get_table_schema {"tableName": "users"}
  /tools                    List tools
  /list                     List connections
  /switch <name>            Switch the current connection
  /help                     Show this help
  /quit                     Exit"""


class InteractiveSession:
    """Prompt loop driving the dispatcher directly."""

    def __init__(self, registry: ConnectionRegistry, *, timeout: float = DEFAULT_TOOL_TIMEOUT) -> None:
        self.registry = registry
        self.dispatcher = ToolDispatcher(CapabilityFacade(registry))
        self.pending = PendingToolCalls()
        self.timeout = timeout
        self._call_counter = 0

    async def _prompt(self) -> str:
        return await asyncio.to_thread(Prompt.ask, "\n[bold cyan]dbsage>[/bold cyan]", default="", console=console)

    async def _confirm(self, question: str) -> bool:
        return await asyncio.to_thread(Confirm.ask, question, console=console)

    async def run(self) -> None:
        console.print(
            Panel.fit(
                "[bold blue]dbsage interactive mode[/bold blue]\n"
                f"Current connection: {self.registry.current_name or 'none'}\n"
                "Type /help for commands.",
                border_style="blue",
            )
        )

        notifier = UpdateNotifier(ReleaseChecker(current_version=__version__), _show_update)
        notifier.start()
        try:
            while True:
                try:
                    line = (await self._prompt()).strip()
                except (EOFError, KeyboardInterrupt):
                    break
                if not line:
                    continue
                if not await self.handle(line):
                    break
        finally:
            await notifier.stop()
        console.print("[yellow]Goodbye![/yellow]")

    async def handle(self, line: str) -> bool:
        """Handle one input line. Returns False when the session should end."""
        if not line.startswith("/"):
            console.print("[yellow]Use /tool to run a tool; /help lists commands.[/yellow]")
            return True

        command, _, rest = line.partition(" ")
        rest = rest.strip()

        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            console.print(HELP_TEXT)
        elif command == "/tools":
            console.print(_tools_table())
        elif command == "/list":
            console.print(_connections_table(self.registry))
        elif command == "/switch":
            await self._switch(rest)
        elif command == "/tool":
            await self._tool(rest)
        else:
            console.print(f"[red]Unknown command:[/red] {command}")
        return True

    async def _switch(self, name: str) -> None:
        if not name:
            console.print("[red]Usage:[/red] /switch <name>")
            return
        try:
            await self.registry.switch(name)
        except DBSageException as e:
            console.print(f"[red]Error:[/red] {e.message}")
            return
        console.print(f"[green]✓[/green] Switched to '{name}'")

    async def _tool(self, rest: str) -> None:
        name, _, arguments = rest.partition(" ")
        if not name:
            console.print("[red]Usage:[/red] /tool <name> [json-args]")
            return

        try:
            tool = get_tool(name)
            parsed = self.dispatcher.parse_arguments(arguments.strip())
        except DBSageException as e:
            console.print(f"[red]Error:[/red] {e.message}")
            return

        if tool.requires_confirmation:
            self._call_counter += 1
            call_id = f"call_{self._call_counter}"
            self.pending.add(call_id, PendingToolCall(messages=[], tool_name=name, arguments=parsed))
            style = RISK_STYLES[tool.risk_level]
            if not await self._confirm(f"[{style}]{tool.summary}[/{style}] - run {name}?"):
                self.pending.reject(call_id)
                console.print("[yellow]Cancelled.[/yellow]")
                return
            parsed = self.pending.approve(call_id).arguments

        result = await self.dispatcher.dispatch(name, parsed, timeout=self.timeout)
        console.print(Syntax(json.dumps(json.loads(result), indent=2, ensure_ascii=False), "json"))


def interactive(ctx: typer.Context) -> None:
    registry = _load_registry(ctx)
    session = InteractiveSession(registry)
    _run(registry, session.run)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
