"""Turn ``{[0]: v}`` back into ``{0: v}`` after optimization."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..edits import Edit, Overwrite
from ..parsing import walk
from .base import Stage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

_LITERALS = ("number", "string")


def post(unit: "Unit") -> List[Edit]:
    tree = unit.parse()
    edits: List[Edit] = []
    for node in walk(tree.root):
        if node.type != "computed_property_name":
            continue
        parent = node.parent
        if parent is None or parent.type not in ("pair", "method_definition"):
            continue
        container = parent.parent
        if container is None or container.type != "object":
            continue
        keys = node.named_children
        if len(keys) == 1 and keys[0].type in _LITERALS:
            edits.append(Overwrite(tree.range(node), tree.source(keys[0])))
    return edits


STAGE = Stage("literal_computed_keys", post=post)

__all__ = ["STAGE", "post"]
