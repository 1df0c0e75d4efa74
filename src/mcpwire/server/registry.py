"""CapabilityRegistry — the tools, resources and prompts a server exposes.

Populated while the server is being built; frozen as soon as the first
session starts serving, so every read afterwards sees the same contents.
"""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from pydantic import create_model

from mcpwire.protocol.errors import (
    CapabilityNotFoundError,
    DuplicateCapabilityError,
    RegistryFrozenError,
    ToolNotFoundError,
)
from mcpwire.protocol.models import PromptDescriptor, ResourceDescriptor, ToolDescriptor


class CapabilityKind(str, Enum):
    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


@dataclass(frozen=True)
class Capability:
    """A registered descriptor together with the callable that serves it."""

    kind: CapabilityKind
    name: str
    descriptor: ToolDescriptor | ResourceDescriptor | PromptDescriptor
    handler: Callable[..., Any]


class CapabilityRegistry:
    """Maps capability kind -> name -> :class:`Capability`.

    Usage::

        registry = CapabilityRegistry()
        registry.add_tool(ToolDescriptor(name="get_weather"), get_weather)
        registry.freeze()

        registry.list_tools()            # [ToolDescriptor(name="get_weather", ...)]
        registry.get_tool("get_weather") # ToolDescriptor
    """

    def __init__(self) -> None:
        self._entries: dict[CapabilityKind, dict[str, Capability]] = {
            kind: {} for kind in CapabilityKind
        }
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Reject any further registration."""
        self._frozen = True

    # -- registration -------------------------------------------------------

    def add_tool(self, descriptor: ToolDescriptor, handler: Callable[..., Any]) -> None:
        self._add(CapabilityKind.TOOL, descriptor.name, descriptor, handler)

    def add_resource(self, descriptor: ResourceDescriptor, reader: Callable[..., Any]) -> None:
        self._add(CapabilityKind.RESOURCE, descriptor.uri, descriptor, reader)

    def add_prompt(self, descriptor: PromptDescriptor, renderer: Callable[..., Any]) -> None:
        self._add(CapabilityKind.PROMPT, descriptor.name, descriptor, renderer)

    def _add(
        self,
        kind: CapabilityKind,
        name: str,
        descriptor: ToolDescriptor | ResourceDescriptor | PromptDescriptor,
        handler: Callable[..., Any],
    ) -> None:
        if self._frozen:
            msg = f"Cannot add {kind.value} {name!r}: registry is frozen while serving"
            raise RegistryFrozenError(msg)
        if name in self._entries[kind]:
            raise DuplicateCapabilityError(kind.value, name)
        self._entries[kind][name] = Capability(kind, name, descriptor, handler)

    # -- lookup -------------------------------------------------------------

    def has(self, kind: CapabilityKind, name: str) -> bool:
        return name in self._entries[kind]

    def entry(self, kind: CapabilityKind, name: str) -> Capability:
        try:
            return self._entries[kind][name]
        except KeyError:
            if kind is CapabilityKind.TOOL:
                raise ToolNotFoundError(name) from None
            raise CapabilityNotFoundError(kind.value, name) from None

    def list_tools(self) -> list[ToolDescriptor]:
        return [
            typing.cast("ToolDescriptor", c.descriptor)
            for c in self._entries[CapabilityKind.TOOL].values()
        ]

    def get_tool(self, name: str) -> ToolDescriptor:
        return typing.cast("ToolDescriptor", self.entry(CapabilityKind.TOOL, name).descriptor)

    def list_resources(self) -> list[ResourceDescriptor]:
        return [
            typing.cast("ResourceDescriptor", c.descriptor)
            for c in self._entries[CapabilityKind.RESOURCE].values()
        ]

    def get_resource(self, uri: str) -> ResourceDescriptor:
        return typing.cast("ResourceDescriptor", self.entry(CapabilityKind.RESOURCE, uri).descriptor)

    def list_prompts(self) -> list[PromptDescriptor]:
        return [
            typing.cast("PromptDescriptor", c.descriptor)
            for c in self._entries[CapabilityKind.PROMPT].values()
        ]

    def get_prompt(self, name: str) -> PromptDescriptor:
        return typing.cast("PromptDescriptor", self.entry(CapabilityKind.PROMPT, name).descriptor)

    def capabilities(self) -> dict[str, Any]:
        """Capability announcement for the ``initialize`` result."""
        announced: dict[str, Any] = {}
        if self._entries[CapabilityKind.TOOL]:
            announced["tools"] = {"listChanged": False}
        if self._entries[CapabilityKind.RESOURCE]:
            announced["resources"] = {"listChanged": False, "subscribe": False}
        if self._entries[CapabilityKind.PROMPT]:
            announced["prompts"] = {"listChanged": False}
        return announced


def schema_from_function(fn: Callable[..., Any]) -> dict[str, Any]:
    """Derive a JSON schema for *fn*'s keyword arguments via pydantic."""
    hints = typing.get_type_hints(fn)
    fields: dict[str, Any] = {}
    open_ended = False
    for name, param in inspect.signature(fn).parameters.items():
        if param.kind is inspect.Parameter.VAR_KEYWORD:
            open_ended = True
            continue
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            continue
        annotation = hints.get(name, Any)
        default = ... if param.default is inspect.Parameter.empty else param.default
        fields[name] = (annotation, default)

    model = create_model(f"{fn.__name__}_arguments", **fields)
    schema = model.model_json_schema()
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    if not open_ended:
        schema["additionalProperties"] = False
    return schema
