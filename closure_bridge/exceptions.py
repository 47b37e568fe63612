"""Custom exception hierarchy for the closure bridge."""

from __future__ import annotations

from typing import List, Optional, Tuple


class ClosureBridgeError(Exception):
    """Base class for all errors raised while processing a compilation unit.

    ``transcript`` is filled in by the orchestrator when the error aborts a
    unit, so callers can inspect every intermediate buffer.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.transcript: List[Tuple[str, str]] = []


class ConfigurationConflict(ClosureBridgeError):
    """Raised when requested compile flags cannot be honoured together."""


class UnsupportedSyntaxForm(ClosureBridgeError):
    """Raised when discovery meets a construct with no restoration strategy."""

    def __init__(self, construct: str, file_name: str | None = None) -> None:
        location = f" in {file_name}" if file_name else ""
        super().__init__(f"Unsupported syntax{location}: {construct}")
        self.construct = construct
        self.file_name = file_name


class OptimizerFailure(ClosureBridgeError):
    """Raised when the external optimizer rejects its input."""

    def __init__(self, exit_code: int, stderr: str) -> None:
        super().__init__(f"Google Closure Compiler exit {exit_code}: {stderr}")
        self.exit_code = exit_code
        self.stderr = stderr


class EditRangeError(ClosureBridgeError):
    """Raised when a stage produced an edit outside of, or overlapping in, its buffer."""


class ParseError(ClosureBridgeError):
    """Raised when a buffer a stage needs to analyse does not parse."""

    def __init__(self, file_name: str, offset: Optional[int] = None) -> None:
        where = f" near offset {offset}" if offset is not None else ""
        super().__init__(f"failed to parse {file_name}{where}")
        self.file_name = file_name
        self.offset = offset


class PipelineStateError(ClosureBridgeError):
    """Raised on an illegal transition of a unit's state machine."""


class StageError(ClosureBridgeError):
    """Wraps an unexpected exception escaping a pipeline stage."""

    def __init__(self, stage: str, phase: str, cause: BaseException) -> None:
        super().__init__(f"stage {stage} failed during {phase}: {cause}")
        self.stage = stage
        self.phase = phase


__all__ = [
    "ClosureBridgeError",
    "ConfigurationConflict",
    "EditRangeError",
    "OptimizerFailure",
    "ParseError",
    "PipelineStateError",
    "StageError",
    "UnsupportedSyntaxForm",
]
