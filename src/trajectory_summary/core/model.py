"""Model metadata: which variables a model declares, and in which role.

The summary pipeline only needs two things from a model: the names declared
for each variable role, and the raw lines of a named block (used to detect
initial-value proposals). ``StaticModel`` holds these directly;
``parse_model`` builds one from LibBi-style model text.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Protocol, Union

from ..errors import NotFoundError

ROLES = ("state", "noise", "obs", "param", "input", "const")

_DECLARATION = re.compile(r"^\s*(" + "|".join(ROLES) + r")\s+(.+?)\s*;?\s*$")
_IDENTIFIER = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)")
_BLOCK_START = re.compile(r"\bsub\s+([A-Za-z_][A-Za-z0-9_]*)\s*(\([^)]*\))?\s*\{")


class ModelMetadata(Protocol):
    """What the resolver needs to know about a model."""

    def var_names(self, role: str) -> List[str]: ...

    def get_block(self, name: str) -> List[str]: ...


@dataclass(frozen=True)
class StaticModel:
    """
    Model metadata held in memory.

    Attributes:
        roles: Role name -> declared variable names
        blocks: Block name -> lines of the block body
    """

    roles: Mapping[str, List[str]] = field(default_factory=dict)
    blocks: Mapping[str, List[str]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "roles", MappingProxyType({k: list(v) for k, v in self.roles.items()})
        )
        object.__setattr__(
            self, "blocks", MappingProxyType({k: list(v) for k, v in self.blocks.items()})
        )

    def var_names(self, role: str) -> List[str]:
        return list(self.roles.get(role, []))

    def get_block(self, name: str) -> List[str]:
        return list(self.blocks.get(name, []))


def _strip_comments(text: str) -> str:
    text = re.sub(r"/\*.*?\*/", "", text, flags=re.DOTALL)
    return re.sub(r"//[^\n]*", "", text)


def _split_top_level(decl: str) -> List[str]:
    """Split a declaration list on commas outside brackets and parentheses."""
    parts, depth, current = [], 0, []
    for ch in decl:
        if ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return [p for p in parts if p.strip()]


def _block_bodies(text: str) -> Dict[str, List[str]]:
    blocks: Dict[str, List[str]] = {}
    for match in _BLOCK_START.finditer(text):
        depth, start = 1, match.end()
        pos = start
        while pos < len(text) and depth > 0:
            if text[pos] == "{":
                depth += 1
            elif text[pos] == "}":
                depth -= 1
            pos += 1
        body = text[start:pos - 1]
        lines = [line.strip() for line in body.splitlines()]
        blocks[match.group(1)] = [line for line in lines if line]
    return blocks


def parse_model(source: Union[str, Path]) -> StaticModel:
    """Parse LibBi-style model text into a ``StaticModel``.

    Args:
        source: Model text, or a path to a model file

    Returns:
        StaticModel with declared variables per role and every ``sub`` block

    Raises:
        NotFoundError: If a path is given that does not exist

    Example:
        >>> model = parse_model("model PZ {\\n state P, Z\\n param mu\\n}")
        >>> model.var_names("state")
        ['P', 'Z']
    """
    if isinstance(source, Path):
        if not source.exists():
            raise NotFoundError(f"Model file not found: {source}")
        source = source.read_text(encoding="utf-8")

    text = _strip_comments(source)
    roles: Dict[str, List[str]] = {}
    for line in text.splitlines():
        match = _DECLARATION.match(line)
        if not match:
            continue
        role, decl = match.groups()
        for item in _split_top_level(decl):
            ident = _IDENTIFIER.match(item)
            if ident:
                roles.setdefault(role, []).append(ident.group(1))

    return StaticModel(roles=roles, blocks=_block_bodies(text))
