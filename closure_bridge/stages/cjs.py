"""Declare the ``exports`` typedef so ``__esModule`` survives cjs output."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .base import Stage, extern_header

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

HEADER = extern_header("the cjs typing info for modules") + (
    "\n"
    "/**\n"
    "* @typedef {{\n"
    "*   __esModule: boolean,\n"
    "* }}\n"
    "*/\n"
    "var exports;"
)


def extern(unit: "Unit") -> Optional[str]:
    if unit.options.format == "cjs":
        return HEADER
    return None


STAGE = Stage("cjs", extern=extern)

__all__ = ["HEADER", "STAGE", "extern"]
