"""Pipeline options and derivation of the optimizer's compile flags."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .exceptions import ConfigurationConflict
from .mangle import DEFAULT_SEED

LOG = logging.getLogger(__name__)

ESM_FORMATS = ("es", "esm")
FORMATS = ("es", "esm", "cjs", "iife", "umd", "amd", "system")

# Owned by the pipeline; a caller supplied value is ignored.
PROTECTED_FLAGS = ("js", "create_source_map")

VERBOSE_WITHOUT_LANGUAGE_OUT = (
    "Providing the warning_level=VERBOSE compile option also requires a valid "
    "language_out compile option."
)
VERBOSE_WITH_NO_TRANSPILE = (
    "Providing the warning_level=VERBOSE and language_out=NO_TRANSPILE compile "
    "options will remove warnings."
)

External = Union[Sequence[str], Callable[[str], bool], None]


def is_esm_format(fmt: Optional[str]) -> bool:
    return fmt in ESM_FORMATS


@dataclass
class PipelineOptions:
    """Configuration for one compilation unit.

    ``external`` selects which import origins are preserved verbatim: ``None``
    keeps every import still present in the chunk, a sequence names the
    specifiers, and a callable decides per specifier.
    """

    format: str = "es"
    name: Optional[str] = None
    file: Optional[str] = None
    external: External = None
    flags: Dict[str, Any] = field(default_factory=dict)
    mangle_seed: str = DEFAULT_SEED
    debug_dir: Optional[Path] = None
    optimizer_timeout: Optional[float] = None

    def __post_init__(self) -> None:
        if self.format not in FORMATS:
            raise ConfigurationConflict(f"unknown output format {self.format!r}")
        if self.debug_dir is not None and not isinstance(self.debug_dir, Path):
            self.debug_dir = Path(self.debug_dir)

    @property
    def is_esm(self) -> bool:
        return is_esm_format(self.format)

    def is_external(self, origin: str) -> bool:
        if self.external is None:
            return True
        if callable(self.external):
            return bool(self.external(origin))
        return origin in self.external


def validate_flags(flags: Dict[str, Any]) -> None:
    """Reject flag combinations the optimizer cannot honour together."""

    if flags.get("warning_level") != "VERBOSE":
        return
    language_out = flags.get("language_out")
    if not language_out:
        raise ConfigurationConflict(VERBOSE_WITHOUT_LANGUAGE_OUT)
    if language_out == "NO_TRANSPILE":
        raise ConfigurationConflict(VERBOSE_WITH_NO_TRANSPILE)


def split_externs(flags: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Separate user supplied extern paths from the remaining flags.

    ``externs`` may be a bool (``True``/``False`` both mean none supplied), a
    single path or a list of paths.
    """

    remaining = dict(flags)
    externs = remaining.pop("externs", None)
    if externs is None or isinstance(externs, bool):
        return remaining, []
    if isinstance(externs, (str, Path)):
        return remaining, [str(externs)]
    return remaining, [str(item) for item in externs]


def default_flags(options: PipelineOptions, externs: Sequence[str]) -> Dict[str, Any]:
    return {
        "language_out": "NO_TRANSPILE",
        "assume_function_wrapper": options.is_esm,
        "warning_level": "QUIET",
        "module_resolution": "NODE",
        "externs": list(externs),
    }


def resolve_flags(
    options: PipelineOptions,
    input_file: Union[str, Path],
    source_map_file: Union[str, Path],
    extern_files: Sequence[Union[str, Path]] = (),
) -> Dict[str, Any]:
    """Merge requested flags over the defaults for one optimizer run."""

    requested, provided = split_externs(options.flags)
    for name in PROTECTED_FLAGS:
        if name in requested:
            LOG.warning("ignoring compile flag %s; the pipeline supplies it", name)
            requested.pop(name)
    externs = [str(path) for path in extern_files] + provided
    flags = default_flags(options, externs)
    flags.update(requested)
    if not flags["externs"]:
        flags.pop("externs")
    flags["js"] = str(input_file)
    flags["create_source_map"] = str(source_map_file)
    return flags


__all__ = [
    "ESM_FORMATS",
    "FORMATS",
    "PROTECTED_FLAGS",
    "PipelineOptions",
    "default_flags",
    "is_esm_format",
    "resolve_flags",
    "split_externs",
    "validate_flags",
]
