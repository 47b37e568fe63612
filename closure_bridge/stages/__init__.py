"""Stage modules orchestrated by :mod:`closure_bridge.pipeline`."""

from __future__ import annotations

from . import (
    asi,
    cjs,
    const,
    exports,
    hashbang,
    iife,
    imports,
    literal_computed_keys,
    strict,
)
from .base import ExportBinding, ExportRegistry, Memory, Stage

__all__ = [
    "ExportBinding",
    "ExportRegistry",
    "Memory",
    "Stage",
    "asi",
    "cjs",
    "const",
    "exports",
    "hashbang",
    "iife",
    "imports",
    "literal_computed_keys",
    "strict",
]
