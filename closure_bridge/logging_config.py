"""Logging helpers for console output and per-unit transcript dumps."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable, Tuple

__all__ = [
    "close_debug_logger",
    "configure_debug_file_logger",
    "dump_transcript",
    "setup_logging",
    "transcript_path",
]


def setup_logging(level: int = logging.INFO) -> None:
    """Setup console logging for the command line entry point."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.debug("Logging setup complete.")


def configure_debug_file_logger(
    name: str,
    path: Path,
    *,
    level: int = logging.DEBUG,
    formatter: logging.Formatter | None = None,
) -> logging.Logger:
    """Return a logger writing debug traces to ``path``.

    Any previously configured dump handlers on ``name`` are removed so repeated
    invocations replace earlier traces instead of appending to them.  The file
    is opened in text mode with UTF-8 encoding.
    """

    path.parent.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    close_debug_logger(logger)

    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler._transcript_dump = True  # type: ignore[attr-defined]
    if formatter is None:
        formatter = logging.Formatter("%(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    return logger


def close_debug_logger(logger: logging.Logger) -> None:
    """Tear down handlers installed by :func:`configure_debug_file_logger`."""

    for handler in list(logger.handlers):
        if getattr(handler, "_transcript_dump", False):
            logger.removeHandler(handler)
            handler.close()


def transcript_path(debug_dir: Path, file_name: str) -> Path:
    safe = re.sub(r"[^\w.-]+", "_", file_name).strip("_") or "unit"
    return debug_dir / f"{safe}.transcript.txt"


def dump_transcript(transcript: Iterable[Tuple[str, str]], path: Path) -> Path:
    """Write every ``(stage, buffer)`` entry of a transcript to ``path``."""

    logger = configure_debug_file_logger(f"closure_bridge.transcript.{path.stem}", path)
    try:
        for stage, buffer in transcript:
            logger.debug("===== %s =====", stage)
            logger.debug("%s", buffer)
    finally:
        close_debug_logger(logger)
    return path
