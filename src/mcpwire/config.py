"""Configuration models and the YAML settings loader."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from mcpwire import __version__
from mcpwire.protocol.errors import ConfigError
from mcpwire.protocol.models import Implementation
from mcpwire.protocol.transport import DEFAULT_MAX_FRAME_BYTES

PROTOCOL_VERSION = "2024-11-05"


class SessionConfig(BaseModel):
    """Per-session protocol settings shared by client and server."""

    protocol_version: str = Field(
        default=PROTOCOL_VERSION,
        description="Version this side announces during the handshake.",
    )
    supported_versions: list[str] = Field(
        default_factory=lambda: [PROTOCOL_VERSION],
        description="Versions this side accepts from the peer.",
    )
    request_timeout: float | None = Field(
        default=30.0,
        description="Default per-call timeout in seconds (None disables).",
    )
    drain_timeout: float = Field(
        default=5.0,
        description="Seconds a graceful close waits for in-flight work.",
    )
    max_frame_bytes: int = Field(default=DEFAULT_MAX_FRAME_BYTES, gt=0)
    client_info: Implementation = Field(
        default_factory=lambda: Implementation(name="mcpwire", version=__version__)
    )
    server_info: Implementation = Field(
        default_factory=lambda: Implementation(name="mcpwire", version=__version__)
    )

    def accepts(self, version: str) -> bool:
        return version in self.supported_versions


class ServerRef(BaseModel):
    """Reference to an MCP server a client connects to."""

    name: str
    transport: Literal["stdio", "tcp", "websocket"] = "stdio"
    command: str | None = None
    url: str | None = None
    host: str = "127.0.0.1"
    port: int | None = None
    env: dict[str, str] = {}


class ClientSettings(BaseModel):
    """Validated representation of a client settings file.

    Example YAML::

        session:
          request_timeout: 10
        servers:
          - name: weather
            transport: stdio
            command: mcpwire serve
          - name: remote
            transport: tcp
            host: 10.0.0.5
            port: 8765
    """

    session: SessionConfig = Field(default_factory=SessionConfig)
    servers: list[ServerRef] = []

    def server(self, name: str) -> ServerRef:
        for ref in self.servers:
            if ref.name == name:
                return ref
        raise ConfigError(f"No server named {name!r} in settings")


def load_settings(path: str | Path) -> ClientSettings:
    """Read YAML, interpolate env vars, and validate.

    Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
    using :func:`os.path.expandvars` before YAML parsing.

    Raises:
        ConfigError: On read errors, YAML parse errors or validation failures.
    """
    p = Path(path)
    try:
        raw = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {p}: {exc}") from exc

    expanded = os.path.expandvars(raw)

    try:
        data: Any = yaml.safe_load(expanded)
    except yaml.YAMLError as exc:
        raise ConfigError(f"YAML parse error: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Settings YAML must be a mapping")

    try:
        return ClientSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
