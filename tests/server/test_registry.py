"""Tests for the capability registry and schema derivation."""

import pytest

from mcpwire.protocol.errors import (
    CapabilityNotFoundError,
    DuplicateCapabilityError,
    RegistryFrozenError,
    ToolNotFoundError,
)
from mcpwire.protocol.models import PromptDescriptor, ResourceDescriptor, ToolDescriptor
from mcpwire.server.registry import CapabilityKind, CapabilityRegistry, schema_from_function


def _noop(**_: object) -> str:
    return ""


class TestRegistration:
    def test_add_and_get_tool(self) -> None:
        registry = CapabilityRegistry()
        registry.add_tool(ToolDescriptor(name="get_weather", description="Weather"), _noop)

        assert registry.has(CapabilityKind.TOOL, "get_weather")
        assert registry.get_tool("get_weather").description == "Weather"
        assert [t.name for t in registry.list_tools()] == ["get_weather"]

    def test_duplicate_tool_rejected(self) -> None:
        registry = CapabilityRegistry()
        registry.add_tool(ToolDescriptor(name="echo", description="first"), _noop)
        with pytest.raises(DuplicateCapabilityError, match="echo"):
            registry.add_tool(ToolDescriptor(name="echo", description="second"), _noop)
        assert registry.get_tool("echo").description == "first"

    def test_same_name_different_kinds(self) -> None:
        registry = CapabilityRegistry()
        registry.add_tool(ToolDescriptor(name="summary"), _noop)
        registry.add_prompt(PromptDescriptor(name="summary"), _noop)
        assert registry.has(CapabilityKind.TOOL, "summary")
        assert registry.has(CapabilityKind.PROMPT, "summary")

    def test_resources_keyed_by_uri(self) -> None:
        registry = CapabilityRegistry()
        registry.add_resource(ResourceDescriptor(uri="demo://a", name="a"), _noop)
        assert registry.get_resource("demo://a").name == "a"
        assert not registry.has(CapabilityKind.RESOURCE, "a")

    def test_frozen_registry_rejects_additions(self) -> None:
        registry = CapabilityRegistry()
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RegistryFrozenError, match="frozen"):
            registry.add_tool(ToolDescriptor(name="late"), _noop)

    def test_listing_preserves_registration_order(self) -> None:
        registry = CapabilityRegistry()
        for name in ("b", "a", "c"):
            registry.add_tool(ToolDescriptor(name=name), _noop)
        assert [t.name for t in registry.list_tools()] == ["b", "a", "c"]


class TestLookup:
    def test_missing_tool(self) -> None:
        with pytest.raises(ToolNotFoundError, match="Tool not found: nope"):
            CapabilityRegistry().get_tool("nope")

    def test_missing_resource(self) -> None:
        with pytest.raises(CapabilityNotFoundError) as exc_info:
            CapabilityRegistry().get_resource("demo://missing")
        assert exc_info.value.capability_kind == "resource"
        assert exc_info.value.code == -32002

    def test_entry_carries_handler(self) -> None:
        registry = CapabilityRegistry()
        registry.add_prompt(PromptDescriptor(name="p"), _noop)
        assert registry.entry(CapabilityKind.PROMPT, "p").handler is _noop


class TestCapabilities:
    def test_empty_registry_announces_nothing(self) -> None:
        assert CapabilityRegistry().capabilities() == {}

    def test_announces_populated_kinds(self) -> None:
        registry = CapabilityRegistry()
        registry.add_tool(ToolDescriptor(name="t"), _noop)
        registry.add_resource(ResourceDescriptor(uri="demo://r", name="r"), _noop)
        caps = registry.capabilities()
        assert set(caps) == {"tools", "resources"}


class TestSchemaFromFunction:
    def test_required_and_optional(self) -> None:
        def forecast(city: str, days: int = 1) -> str:
            return city

        schema = schema_from_function(forecast)
        assert schema["type"] == "object"
        assert schema["properties"]["city"] == {"type": "string"}
        assert schema["properties"]["days"]["type"] == "integer"
        assert schema["required"] == ["city"]
        assert "title" not in schema
        assert schema["additionalProperties"] is False

    def test_no_arguments(self) -> None:
        def now() -> str:
            return ""

        schema = schema_from_function(now)
        assert schema["type"] == "object"
        assert schema.get("required", []) == []

    def test_var_keyword_allows_extra_arguments(self) -> None:
        def tag(name: str, **labels: str) -> str:
            return name

        schema = schema_from_function(tag)
        assert list(schema["properties"]) == ["name"]
        assert "additionalProperties" not in schema
