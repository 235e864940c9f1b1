"""
Tool descriptions as announced by tools/list, and their translation into
the function-calling schema an LLM expects.

MCP servers may declare a property type either as a single string or as a
list of strings (nullable unions such as ["string", "null"]). The list form
is what we keep internally; translate_input_schema() collapses one-element
lists back to a scalar.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_MISSING = object()


def _type_tags(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, (list, tuple)):
        return tuple(t for t in raw if isinstance(t, str))
    return ()


@dataclass(frozen=True)
class PropertySchema:
    """One entry of an input schema's `properties`."""
    type: tuple[str, ...] = ()
    description: str | None = None
    format: str | None = None
    default: Any = _MISSING

    @classmethod
    def from_dict(cls, data: Any) -> "PropertySchema":
        if not isinstance(data, dict):
            return cls()
        description = data.get("description")
        fmt = data.get("format")
        return cls(
            type=_type_tags(data.get("type")),
            description=description if isinstance(description, str) else None,
            format=fmt if isinstance(fmt, str) else None,
            # an explicit JSON null default counts as no default
            default=data["default"] if data.get("default") is not None else _MISSING,
        )

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    @property
    def is_nullable(self) -> bool:
        return "null" in self.type

    @property
    def primary_type(self) -> str:
        """First non-null type tag; "string" when there is none."""
        return next((t for t in self.type if t != "null"), "string")


@dataclass(frozen=True)
class InputSchema:
    type: str = "object"
    properties: dict[str, PropertySchema] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "InputSchema":
        if not isinstance(data, dict):
            return cls()
        raw_props = data.get("properties")
        props = {}
        if isinstance(raw_props, dict):
            props = {
                str(name): PropertySchema.from_dict(spec)
                for name, spec in raw_props.items()
            }
        raw_required = data.get("required")
        required = ()
        if isinstance(raw_required, (list, tuple)):
            required = tuple(r for r in raw_required if isinstance(r, str))
        schema_type = data.get("type")
        return cls(
            type=schema_type if isinstance(schema_type, str) and schema_type else "object",
            properties=props,
            required=required,
        )


@dataclass(frozen=True)
class Tool:
    """A remote tool, snapshotted once from tools/list."""
    name: str
    description: str = ""
    input_schema: InputSchema = field(default_factory=InputSchema)

    @classmethod
    def from_dict(cls, data: dict) -> "Tool":
        return cls(
            name=str(data["name"]),
            description=data.get("description") or "",
            input_schema=InputSchema.from_dict(data.get("inputSchema")),
        )


def parse_tools(raw_tools: Any) -> list[Tool]:
    """Parse the `tools` array of a tools/list result, skipping nameless entries."""
    if not isinstance(raw_tools, list):
        return []
    tools = []
    for entry in raw_tools:
        if not isinstance(entry, dict) or not entry.get("name"):
            logger.warning(f"Skipping malformed tool entry: {entry!r}")
            continue
        tools.append(Tool.from_dict(entry))
    return tools


def translate_property(prop: PropertySchema) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if len(prop.type) == 1:
        out["type"] = prop.type[0]
    elif len(prop.type) > 1:
        out["type"] = list(prop.type)
    if prop.description:
        out["description"] = prop.description
    if prop.format:
        out["format"] = prop.format
    if prop.has_default:
        out["default"] = prop.default
    return out


def translate_input_schema(schema: InputSchema | None) -> dict[str, Any]:
    """
    Convert an MCP input schema into a function-calling parameter schema.

    Pure and total: a missing schema becomes an empty object schema.
    """
    if schema is None:
        return {"type": "object", "properties": {}}

    out: dict[str, Any] = {
        "type": schema.type or "object",
        "properties": {
            name: translate_property(prop) for name, prop in schema.properties.items()
        },
    }
    if schema.required:
        out["required"] = list(schema.required)
    return out
