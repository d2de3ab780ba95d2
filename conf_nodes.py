# conf_nodes.py
# Syntax tree for parsed hexconf documents and its JSON rendering.
#
# Nodes are frozen once built. Containers take ordinary Python lists and
# dicts and keep only read-only copies, so a node stored in the constant
# table can be handed to any number of parents without being copied.

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple, Union

INDENT_UNIT = "  "

# ---------------------------------------------------------------------------
# NODE VARIANTS
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class NumberNode:
    value: int


@dataclass(frozen=True)
class TextNode:
    value: str


@dataclass(frozen=True)
class BooleanNode:
    value: bool


@dataclass(frozen=True)
class SequenceNode:
    items: Tuple["Node", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class MappingNode:
    """
    Keyed children. Building from a dict keeps its last value per key; the
    stored view is read-only and iterated in sorted key order on output.
    """
    entries: Mapping[str, "Node"] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))


Node = Union[NumberNode, TextNode, BooleanNode, SequenceNode, MappingNode]

# ---------------------------------------------------------------------------
# SERIALIZER
# ---------------------------------------------------------------------------
def to_json(node: Node, indent: int = 0) -> str:
    """
    Render node as JSON text.

    Strings are emitted verbatim between quotes with no escaping, so input
    containing quotes, backslashes or control characters yields text that a
    strict JSON reader will reject. Arrays always stay on one line and render
    their elements from indent level 0; objects open one INDENT_UNIT deeper
    per nesting level.
    """
    if isinstance(node, BooleanNode):
        return "true" if node.value else "false"
    if isinstance(node, NumberNode):
        return str(node.value)
    if isinstance(node, TextNode):
        return f'"{node.value}"'
    if isinstance(node, SequenceNode):
        return "[" + ", ".join(to_json(item) for item in node.items) + "]"
    if isinstance(node, MappingNode):
        if not node.entries:
            return "{}"
        pad = INDENT_UNIT * (indent + 1)
        lines = [
            f'{pad}"{key}": {to_json(node.entries[key], indent + 1)}'
            for key in sorted(node.entries)
        ]
        return "{\n" + ",\n".join(lines) + "\n" + INDENT_UNIT * indent + "}"
    raise TypeError(f"not a syntax tree node: {type(node).__name__}")
