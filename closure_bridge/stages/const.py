"""Rewrite ``const`` declarations to ``let`` before optimization."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..edits import Edit, Overwrite
from ..parsing import walk
from .base import Stage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit


def pre(unit: "Unit") -> List[Edit]:
    tree = unit.parse()
    edits: List[Edit] = []
    for node in walk(tree.root):
        if node.type not in ("lexical_declaration", "for_in_statement"):
            continue
        keyword = node.child_by_field_name("kind")
        if keyword is not None and tree.source(keyword) == "const":
            edits.append(Overwrite(tree.range(keyword), "let"))
    return edits


STAGE = Stage("const", pre=pre)

__all__ = ["STAGE", "pre"]
