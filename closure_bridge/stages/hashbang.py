"""Move a leading ``#!`` line out of the optimizer's way and back again."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from ..edits import AppendBefore, Edit, Remove, SyntaxRange
from .base import Stage

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit


def pre(unit: "Unit") -> List[Edit]:
    code = unit.code
    if not code.startswith("#!"):
        return []
    newline = code.find("\n")
    end = len(code) if newline == -1 else newline + 1
    unit.memory.hashbang = code[:end]
    return [Remove(SyntaxRange(0, end))]


def post(unit: "Unit") -> List[Edit]:
    if unit.memory.hashbang is None:
        return []
    line = unit.memory.hashbang
    if not line.endswith("\n") and unit.code:
        line += "\n"
    return [AppendBefore(SyntaxRange(0, 0), line)]


STAGE = Stage("hashbang", pre=pre, post=post)

__all__ = ["STAGE", "post", "pre"]
