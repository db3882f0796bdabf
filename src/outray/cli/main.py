"""
Outray CLI entry point.

Usage:
    outray [OPTIONS] COMMAND PORT

Commands:
    http  Expose a local HTTP service
    tcp   Expose a local TCP service
    udp   Expose a local UDP service

Example:
    # Expose localhost:3000 over HTTPS
    OUTRAY_API_KEY=... outray http 3000

    # Expose a local Postgres on a relay-assigned port
    outray tcp 5432 --api-key ...
"""

import asyncio
from typing import Annotated

import typer

from outray.cli.output import console, err_console, print_error, print_success
from outray.client import CallbackHandler, Client, ClientConfig
from outray.exceptions import ConfigError
from outray.models.enums import LogLevel, TunnelProtocol
from outray.utils.logger import configure_logging

app = typer.Typer(
    name="outray",
    help="Expose local services through an Outray tunnel",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

ApiKeyOption = Annotated[
    str | None,
    typer.Option("--api-key", "-k", help="Relay API key", envvar="OUTRAY_API_KEY"),
]
ServerOption = Annotated[
    str | None,
    typer.Option("--server", "-s", help="Relay URL", envvar="OUTRAY_SERVER_URL"),
]
RemotePortOption = Annotated[
    int | None,
    typer.Option(
        "--remote-port",
        "-r",
        help="Public port to request for TCP/UDP (0: assigned by the relay)",
    ),
]
LogLevelOption = Annotated[
    LogLevel,
    typer.Option("--log-level", "-l", help="Log verbosity", case_sensitive=False),
]


@app.command("http")
def http(
    port: Annotated[int, typer.Argument(help="Local HTTP port")],
    api_key: ApiKeyOption = None,
    server: ServerOption = None,
    log_level: LogLevelOption = LogLevel.INFO,
):
    """Expose a local HTTP service."""
    _run(TunnelProtocol.HTTP, port, api_key, server, None, log_level)


@app.command("tcp")
def tcp(
    port: Annotated[int, typer.Argument(help="Local TCP port")],
    api_key: ApiKeyOption = None,
    server: ServerOption = None,
    remote_port: RemotePortOption = None,
    log_level: LogLevelOption = LogLevel.INFO,
):
    """Expose a local TCP service."""
    _run(TunnelProtocol.TCP, port, api_key, server, remote_port, log_level)


@app.command("udp")
def udp(
    port: Annotated[int, typer.Argument(help="Local UDP port")],
    api_key: ApiKeyOption = None,
    server: ServerOption = None,
    remote_port: RemotePortOption = None,
    log_level: LogLevelOption = LogLevel.INFO,
):
    """Expose a local UDP service."""
    _run(TunnelProtocol.UDP, port, api_key, server, remote_port, log_level)


def _run(
    protocol: TunnelProtocol,
    port: int,
    api_key: str | None,
    server: str | None,
    remote_port: int | None,
    log_level: LogLevel,
) -> None:
    if not api_key:
        print_error("OUTRAY_API_KEY environment variable not set (or pass --api-key)")
        raise typer.Exit(1)

    configure_logging(log_level)

    try:
        config = ClientConfig.from_env(
            api_key=api_key,
            port=port,
            protocol=protocol,
            server_url=server,
            remote_port=remote_port,
        )
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1)

    def on_open(url: str) -> None:
        print_success(f"Tunnel is live: [cyan]{url}[/cyan]")
        console.print(
            f"  Forwarding to [yellow]{config.local_host}:{port}[/yellow] "
            f"[dim]({protocol.value.upper()})[/dim]"
        )
        console.print("[dim]Press Ctrl+C to stop.[/dim]")

    def on_error(error: Exception) -> None:
        err_console.print(f"[red]{error}[/red]")

    client = Client(config, CallbackHandler(on_open=on_open, on_error=on_error))
    console.print(
        f"[dim]Starting {protocol.value.upper()} tunnel via {config.server_url}...[/dim]"
    )

    try:
        asyncio.run(_serve(client))
    except KeyboardInterrupt:
        console.print("\n[dim]Shutting down tunnel...[/dim]")


async def _serve(client: Client) -> None:
    # Ctrl+C cancels this task; the client still gets closed on the way out
    try:
        await client.connect()
    finally:
        await client.close()


def main():
    """Entry point for the outray command."""
    app()


if __name__ == "__main__":
    main()
