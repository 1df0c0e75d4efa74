"""``mcpwire serve`` — run the bundled demo server."""

from __future__ import annotations

import asyncio
import logging
import sys

import click


@click.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "tcp"]),
    default="stdio",
    help="How clients reach the server.",
)
@click.option("--host", default="127.0.0.1", show_default=True, help="TCP bind address.")
@click.option("--port", type=int, default=8765, show_default=True, help="TCP port.")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="warning",
    show_default=True,
)
@click.option("--telemetry", is_flag=True, help="Export OpenTelemetry spans to stderr.")
def serve(transport: str, host: str, port: int, log_level: str, telemetry: bool) -> None:
    """Serve the demo tools (get_weather, echo) over stdio or TCP."""
    from mcpwire.demo import build_demo_server

    # stdout carries the protocol when serving over stdio.
    logging.basicConfig(
        stream=sys.stderr,
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if telemetry:
        from mcpwire.utils.telemetry import configure_telemetry

        configure_telemetry(service_name="mcpwire-demo")

    server = build_demo_server()
    if transport == "stdio":
        asyncio.run(server.serve_stdio())
    else:
        click.echo(f"Listening on {host}:{port}", err=True)
        asyncio.run(server.serve_tcp(host, port))
