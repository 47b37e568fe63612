"""Drop the ``'use strict'`` directive the optimizer adds to module output."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..edits import Edit, Remove
from ..parsing import string_value
from .base import Stage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit


def _applies(unit: "Unit") -> bool:
    target = unit.options.file or unit.file_name
    return unit.options.is_esm or str(target).endswith(".mjs")


def post(unit: "Unit") -> List[Edit]:
    if not _applies(unit):
        return []
    tree = unit.parse()
    statements = tree.statements()
    if not statements:
        return []
    first = statements[0]
    if first.type != "expression_statement" or first.named_child_count != 1:
        return []
    if string_value(tree, first.named_children[0]) != "use strict":
        return []
    return [Remove(tree.range(first))]


STAGE = Stage("strict", post=post)

__all__ = ["STAGE", "post"]
