"""
Render a schema as a compact TypeScript-style type declaration.

The text is injected verbatim into prompts, so it only has to be readable by
a model: every field name and its required/optional status must be visible.
Rendering works on the JSON Schema the schema reports about itself.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, FrozenSet, List, Optional

from jsontunnel.core.schema import Schema, as_schema

_IDENTIFIER = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")
_REF_PREFIXES = ("#/$defs/", "#/definitions/")

_PRIMITIVES = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "null": "null",
}


def describe_schema(schema: Any, *, name: str = "Output") -> str:
    """
    Top-level objects render as ``export interface Name {...}``, anything
    else as ``export type Name = ...;``.
    """
    resolved: Schema = as_schema(schema)
    root = resolved.json_schema()
    renderer = _Renderer(root)

    body = renderer.render(root, depth=0, seen=frozenset())
    if _is_object_shape(renderer.resolve(root)):
        return f"export interface {name} {body}"
    return f"export type {name} = {body};"


def _is_object_shape(node: Dict[str, Any]) -> bool:
    return node.get("type") == "object" and "properties" in node


def _wrap_if_union(rendered: str) -> str:
    return f"({rendered})" if " | " in rendered else rendered


def _safe_key(key: str) -> str:
    return key if _IDENTIFIER.match(key) else json.dumps(key)


def _join_alternatives(parts: List[str]) -> str:
    unique: List[str] = []
    for p in parts:
        if p not in unique:
            unique.append(p)
    return " | ".join(unique)


class _Renderer:
    def __init__(self, root: Dict[str, Any]) -> None:
        self._defs: Dict[str, Any] = {}
        self._defs.update(root.get("definitions", {}))
        self._defs.update(root.get("$defs", {}))

    def _ref_name(self, ref: str) -> Optional[str]:
        for prefix in _REF_PREFIXES:
            if ref.startswith(prefix):
                return ref[len(prefix):]
        return None

    def resolve(self, node: Dict[str, Any]) -> Dict[str, Any]:
        """Follow a top-level $ref (recursive models put the root under $defs)."""
        name = self._ref_name(node.get("$ref", ""))
        if name is not None and name in self._defs:
            return self._defs[name]
        return node

    def render(self, node: Any, *, depth: int, seen: FrozenSet[str]) -> str:
        if not isinstance(node, dict):
            # `true` schema accepts anything, `false` nothing
            return "unknown" if node is not False else "never"

        if "$ref" in node:
            name = self._ref_name(node["$ref"])
            if name is None or name not in self._defs:
                return "unknown"
            if name in seen:
                return self._defs[name].get("title", name)
            return self.render(self._defs[name], depth=depth, seen=seen | {name})

        if "const" in node:
            return json.dumps(node["const"])

        if "enum" in node:
            return _join_alternatives([json.dumps(v) for v in node["enum"]])

        for key in ("anyOf", "oneOf"):
            if key in node:
                return _join_alternatives(
                    [self.render(opt, depth=depth, seen=seen) for opt in node[key]]
                )

        if "allOf" in node:
            parts = [self.render(opt, depth=depth, seen=seen) for opt in node["allOf"]]
            if len(parts) == 1:
                return parts[0]
            return " & ".join(_wrap_if_union(p) for p in parts)

        type_ = node.get("type")

        if isinstance(type_, list):
            return _join_alternatives(
                [self.render({**node, "type": t}, depth=depth, seen=seen) for t in type_]
            )

        if type_ in _PRIMITIVES:
            return _PRIMITIVES[type_]

        if type_ == "array":
            return self._render_array(node, depth=depth, seen=seen)

        if type_ == "object":
            return self._render_object(node, depth=depth, seen=seen)

        return "unknown"

    def _render_array(self, node: Dict[str, Any], *, depth: int, seen: FrozenSet[str]) -> str:
        if "prefixItems" in node:
            items = [self.render(item, depth=depth, seen=seen) for item in node["prefixItems"]]
            return f"[{', '.join(items)}]"

        items = node.get("items")
        if items is None:
            return "unknown[]"
        return f"{_wrap_if_union(self.render(items, depth=depth, seen=seen))}[]"

    def _render_object(self, node: Dict[str, Any], *, depth: int, seen: FrozenSet[str]) -> str:
        properties = node.get("properties")

        if properties is None:
            extra = node.get("additionalProperties")
            if isinstance(extra, dict):
                value = self.render(extra, depth=depth, seen=seen)
            else:
                value = "unknown"
            return f"Record<string, {value}>"

        if not properties:
            return "{}"

        required = set(node.get("required", []))
        indent = "  " * depth
        indent_inner = "  " * (depth + 1)

        lines = []
        for key, prop in properties.items():
            marker = "" if key in required else "?"
            rendered = self.render(prop, depth=depth + 1, seen=seen)
            desc = prop.get("description") if isinstance(prop, dict) else None
            comment = f" // {' '.join(str(desc).split())}" if desc else ""
            lines.append(f"{indent_inner}{_safe_key(key)}{marker}: {rendered};{comment}")

        return "{\n" + "\n".join(lines) + f"\n{indent}}}"
