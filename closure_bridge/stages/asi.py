"""Drop the redundant semicolon closing the final top-level statement."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..edits import Edit, Remove, SyntaxRange
from .base import Stage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

_TERMINATED = frozenset(
    {
        "expression_statement",
        "variable_declaration",
        "lexical_declaration",
        "export_statement",
        "import_statement",
    }
)


def post(unit: "Unit") -> List[Edit]:
    tree = unit.parse()
    statements = tree.statements()
    if not statements:
        return []
    last = statements[-1]
    if last.type == "empty_statement":
        return [Remove(tree.range(last))]
    if last.type in _TERMINATED:
        end = tree.end(last)
        if end > 0 and unit.code[end - 1] == ";":
            return [Remove(SyntaxRange(end - 1, end))]
    return []


STAGE = Stage("asi", post=post)

__all__ = ["STAGE", "post"]
