"""Tests for ``mcpwire serve`` CLI command."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from mcpwire.cli import main


def _mock_server() -> MagicMock:
    server = MagicMock()
    server.serve_stdio = AsyncMock()
    server.serve_tcp = AsyncMock()
    return server


class TestServe:
    def test_serve_stdio_by_default(self) -> None:
        server = _mock_server()
        with patch("mcpwire.demo.build_demo_server", return_value=server):
            result = CliRunner().invoke(main, ["serve"])

        assert result.exit_code == 0
        server.serve_stdio.assert_awaited_once()
        server.serve_tcp.assert_not_called()

    def test_serve_tcp(self) -> None:
        server = _mock_server()
        with patch("mcpwire.demo.build_demo_server", return_value=server):
            result = CliRunner().invoke(main, ["serve", "--transport", "tcp", "--port", "9001"])

        assert result.exit_code == 0
        server.serve_tcp.assert_awaited_once_with("127.0.0.1", 9001)

    def test_rejects_unknown_transport(self) -> None:
        result = CliRunner().invoke(main, ["serve", "--transport", "pigeon"])
        assert result.exit_code != 0

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
