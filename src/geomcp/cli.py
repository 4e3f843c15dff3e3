"""
CLI entry point for geomcp.

This module provides the Typer-based command-line interface for geomcp.

Commands:
    serve   Run the MCP server over stdio
    tools   List the tools a server would expose with the given filters

Architecture Note:
    The CLI is intentionally thin: it loads configuration, configures
    logging and delegates to geomcp.server. While serving, stdout carries
    the MCP protocol, so every human-facing message goes to stderr.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from geomcp import __version__
from geomcp.config import ServerConfig, load_config
from geomcp.errors import ConfigError, TransportError
from geomcp.http.models import HttpRequest, HttpResponse, redact_url
from geomcp.logging import configure_logging, get_logger
from geomcp.server import serve_stdio
from geomcp.tools.registry import build_registry, parse_tool_list

app = typer.Typer(
    name="geomcp",
    help="Geospatial API tools for agents, served over MCP.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

logger = get_logger(__name__)

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a YAML config file. Environment variables fill the gaps.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
EnableOption = Annotated[
    Optional[str],
    typer.Option(
        "--enable-tools",
        help="Comma-separated tools to expose (default: all).",
    ),
]
DisableOption = Annotated[
    Optional[str],
    typer.Option(
        "--disable-tools",
        help="Comma-separated tools to hide; applied after --enable-tools.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]geomcp[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    geomcp - Geospatial API tools for agents.

    Serves geocoding, routing, isochrone and static map tools over the
    Model Context Protocol.
    """
    pass


def _load(config_path: Path | None) -> ServerConfig:
    """Load configuration or exit with a readable error."""
    try:
        return load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading config: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def serve(
    config_path: ConfigOption = None,
    enable_tools: EnableOption = None,
    disable_tools: DisableOption = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            "-l",
            help="DEBUG, INFO, WARNING or ERROR (overrides config).",
        ),
    ] = None,
    trace: Annotated[
        Optional[bool],
        typer.Option(
            "--trace/--no-trace",
            help="Record spans for outbound calls (overrides config).",
        ),
    ] = None,
) -> None:
    """
    Run the MCP server over stdio.

    Example:
        $ MAPBOX_ACCESS_TOKEN=pk.xxx geomcp serve --enable-tools forward_geocode,directions
    """
    config = _load(config_path)
    try:
        config = config.with_overrides(log_level=log_level, tracing=trace)
    except ValueError as e:
        err_console.print(f"[red]Invalid option: {e}[/red]")
        raise typer.Exit(code=1) from e

    configure_logging(config.log_level, json_output=config.log_json)
    if config.access_token is None:
        logger.warning("config.no_access_token", hint="network tools will fail until a token is set")

    try:
        asyncio.run(
            serve_stdio(
                config,
                enable=parse_tool_list(enable_tools),
                disable=parse_tool_list(disable_tools),
            )
        )
    except KeyboardInterrupt:
        logger.info("server.interrupted")


async def _offline(request: HttpRequest) -> HttpResponse:
    """Stand-in execute function for commands that never send requests."""
    raise TransportError(message="Requests are not sent while listing tools", url=redact_url(request.url))


@app.command("tools")
def list_tools(
    config_path: ConfigOption = None,
    enable_tools: EnableOption = None,
    disable_tools: DisableOption = None,
) -> None:
    """
    List the tools the server would expose.

    Example:
        $ geomcp tools --disable-tools static_map
    """
    config = _load(config_path)
    configure_logging("WARNING")
    registry = build_registry(
        _offline,
        config,
        enable=parse_tool_list(enable_tools),
        disable=parse_tool_list(disable_tools),
    )

    if not len(registry):
        console.print("[yellow]No tools selected.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Network")
    table.add_column("Description")

    for tool in registry:
        table.add_row(
            tool.name,
            "[green]yes[/green]" if tool.requires_network else "[dim]no[/dim]",
            tool.description,
        )

    console.print(table)
    console.print(f"[dim]{len(registry)} tool(s)[/dim]")


if __name__ == "__main__":
    app()
