"""Round-trip ES module chunks through Google Closure Compiler."""

from __future__ import annotations

from .exceptions import (
    ClosureBridgeError,
    ConfigurationConflict,
    EditRangeError,
    OptimizerFailure,
    ParseError,
    PipelineStateError,
    StageError,
    UnsupportedSyntaxForm,
)
from .mangle import Mangler
from .options import PipelineOptions
from .pipeline import ChunkCompiler, SourceDescription, compile_chunk, discover_source_exports
from .sourcemap import DecodedMap, recompose

__version__ = "0.1.0"

__all__ = [
    "ChunkCompiler",
    "ClosureBridgeError",
    "ConfigurationConflict",
    "DecodedMap",
    "EditRangeError",
    "Mangler",
    "OptimizerFailure",
    "ParseError",
    "PipelineOptions",
    "PipelineStateError",
    "SourceDescription",
    "StageError",
    "UnsupportedSyntaxForm",
    "compile_chunk",
    "discover_source_exports",
    "recompose",
]
