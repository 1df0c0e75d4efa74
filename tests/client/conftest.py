"""Fixtures for client-side tests."""

from __future__ import annotations

import pytest

from tests.client._fakes import FakeServerTransport


@pytest.fixture
def fake_server() -> FakeServerTransport:
    return FakeServerTransport(
        {
            "tools/list": lambda _p: {
                "result": {
                    "tools": [
                        {
                            "name": "get_weather",
                            "description": "Current weather",
                            "inputSchema": {
                                "type": "object",
                                "properties": {"city": {"type": "string"}},
                                "required": ["city"],
                            },
                        }
                    ]
                }
            },
            "tools/call": lambda p: {
                "result": {
                    "content": [{"type": "text", "text": f"{p['arguments'].get('city')}: 18C sunny"}],
                    "isError": False,
                }
            },
            "resources/read": lambda p: {
                "result": {"contents": [{"uri": p["uri"], "mimeType": "text/plain", "text": "hello"}]}
            },
            "ping": lambda _p: {"result": {}},
        }
    )
