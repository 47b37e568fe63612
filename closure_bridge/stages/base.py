"""Stage descriptors and the per-unit state stages share."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional

from ..edits import Edit, SyntaxRange

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

StageFn = Callable[["Unit"], List[Edit]]
ExternFn = Callable[["Unit"], Optional[str]]

NAMED_FUNCTION = "named-function"
NAMED_CLASS = "named-class"
NAMED_DEFAULT_FUNCTION = "named-default-function"
DEFAULT_FUNCTION = "default-function"
NAMED_DEFAULT_CLASS = "named-default-class"
DEFAULT_CLASS = "default-class"
NAMED_CONSTANT = "named-constant"

CLOSURE_KINDS = frozenset(
    {
        NAMED_FUNCTION,
        NAMED_CLASS,
        NAMED_DEFAULT_FUNCTION,
        DEFAULT_FUNCTION,
        NAMED_DEFAULT_CLASS,
        DEFAULT_CLASS,
        NAMED_CONSTANT,
    }
)
DEFAULT_KINDS = frozenset({NAMED_DEFAULT_FUNCTION, DEFAULT_FUNCTION, NAMED_DEFAULT_CLASS, DEFAULT_CLASS})
FUNCTION_KINDS = frozenset({NAMED_FUNCTION, NAMED_DEFAULT_FUNCTION, DEFAULT_FUNCTION})
CLASS_KINDS = frozenset({NAMED_CLASS, NAMED_DEFAULT_CLASS, DEFAULT_CLASS})


def extern_header(contents: str) -> str:
    return (
        "/**\n"
        "* @fileoverview Externs built via derived configuration from Rollup or input code.\n"
        f"* This extern contains {contents}.\n"
        "* @externs\n"
        "*/\n"
    )


@dataclass(frozen=True)
class Stage:
    """A named transformation with optional extern, pre and post phases."""

    name: str
    extern: Optional[ExternFn] = None
    pre: Optional[StageFn] = None
    post: Optional[StageFn] = None


@dataclass(frozen=True)
class ExportBinding:
    """One exported name and how to restore it after optimization.

    ``surface_name`` is the identifier the optimizer sees when it differs from
    ``local_name`` (a mangled stub for re-exports).
    """

    local_name: str
    exported_name: str
    closure_kind: str
    range: SyntaxRange
    origin_module: Optional[str] = None
    surface_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.closure_kind not in CLOSURE_KINDS:
            raise ValueError(f"unknown export kind {self.closure_kind!r}")

    @property
    def surface(self) -> str:
        return self.surface_name or self.local_name

    @property
    def is_default(self) -> bool:
        return self.closure_kind in DEFAULT_KINDS or self.exported_name == "default"

    @property
    def is_reexport(self) -> bool:
        return self.origin_module is not None


class ExportRegistry:
    """Bindings of one compilation unit keyed by exported name."""

    def __init__(self) -> None:
        self._bindings: Dict[str, ExportBinding] = {}

    def add(self, binding: ExportBinding) -> None:
        self._bindings[binding.exported_name] = binding

    def get(self, exported_name: str) -> Optional[ExportBinding]:
        return self._bindings.get(exported_name)

    def __contains__(self, exported_name: object) -> bool:
        return exported_name in self._bindings

    def __iter__(self) -> Iterator[ExportBinding]:
        return iter(list(self._bindings.values()))

    def __len__(self) -> int:
        return len(self._bindings)


@dataclass
class Memory:
    """Scratch state stages hand to one another within a unit."""

    # leading "#!" line with its line terminator
    hashbang: Optional[str] = None
    dynamic_import_present: bool = False
    dynamic_import_name: Optional[str] = None
    # origin -> verbatim import statements, in first-appearance order
    import_texts: Dict[str, List[str]] = field(default_factory=dict)
    import_names: List[str] = field(default_factory=list)


__all__ = [
    "CLASS_KINDS",
    "CLOSURE_KINDS",
    "DEFAULT_CLASS",
    "DEFAULT_FUNCTION",
    "DEFAULT_KINDS",
    "ExportBinding",
    "ExportRegistry",
    "ExternFn",
    "FUNCTION_KINDS",
    "Memory",
    "NAMED_CLASS",
    "NAMED_CONSTANT",
    "NAMED_DEFAULT_CLASS",
    "NAMED_DEFAULT_FUNCTION",
    "NAMED_FUNCTION",
    "Stage",
    "StageFn",
    "extern_header",
]
