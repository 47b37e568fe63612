"""Keep the name of an ``iife`` wrapper from being renamed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from .base import Stage, extern_header

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

HEADER = extern_header("the iife name so it does not get mangled at the top level")


def extern(unit: "Unit") -> Optional[str]:
    options = unit.options
    if options.format == "iife" and options.name:
        return HEADER + f"window['{options.name}'] = {options.name};\n"
    return None


STAGE = Stage("iife", extern=extern)

__all__ = ["HEADER", "STAGE", "extern"]
