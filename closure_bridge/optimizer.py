"""Adapter around the external Google Closure Compiler process."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from .exceptions import OptimizerFailure
from .options import PipelineOptions, resolve_flags
from .sourcemap import DecodedMap

LOG = logging.getLogger(__name__)

DEFAULT_COMMAND = ("google-closure-compiler",)


@dataclass
class OptimizerRequest:
    input_file: Path
    source_map_output_file: Path
    extern_files: List[Path] = field(default_factory=list)
    flags: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OptimizerResponse:
    exit_code: int
    stdout: str
    stderr: str


class Optimizer(Protocol):
    """Anything able to run one optimizer request to completion."""

    def run(self, request: OptimizerRequest, timeout: Optional[float] = None) -> OptimizerResponse: ...


def render_flags(flags: Dict[str, Any]) -> List[str]:
    """Render flags as ``--key=value``; ``True`` becomes ``--key``, lists repeat."""

    argv: List[str] = []
    for key, value in flags.items():
        if value is None or value is False:
            continue
        if value is True:
            argv.append(f"--{key}")
        elif isinstance(value, (list, tuple)):
            argv.extend(f"--{key}={item}" for item in value)
        else:
            argv.append(f"--{key}={value}")
    return argv


class ClosureCompiler:
    """Runs the ``google-closure-compiler`` executable as a subprocess."""

    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND) -> None:
        self.command = list(command)

    def argv(self, request: OptimizerRequest) -> List[str]:
        return self.command + render_flags(request.flags)

    def run(self, request: OptimizerRequest, timeout: Optional[float] = None) -> OptimizerResponse:
        cmd = self.argv(request)
        executable = shutil.which(cmd[0]) or cmd[0]
        LOG.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                [executable] + cmd[1:],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise OptimizerFailure(-1, f"timed out after {timeout}s") from exc
        except FileNotFoundError as exc:
            raise OptimizerFailure(127, f"{cmd[0]} not found") from exc
        return OptimizerResponse(proc.returncode, proc.stdout, proc.stderr)


def check_response(response: OptimizerResponse, flags: Dict[str, Any]) -> None:
    """Raise :class:`OptimizerFailure` unless ``response`` is a clean success."""

    if response.exit_code != 0:
        raise OptimizerFailure(response.exit_code, response.stderr)
    if flags.get("warning_level") == "VERBOSE" and response.stderr:
        raise OptimizerFailure(response.exit_code, response.stderr)


def optimize(
    optimizer: Optimizer,
    code: str,
    externs: Sequence[str],
    options: PipelineOptions,
) -> Tuple[str, DecodedMap]:
    """Stage ``code`` and its extern stubs on disk and run ``optimizer`` once."""

    with tempfile.TemporaryDirectory(prefix="closure_bridge_") as staging:
        root = Path(staging)
        input_file = root / "input.js"
        input_file.write_text(code, encoding="utf-8")
        extern_files: List[Path] = []
        for index, extern in enumerate(externs):
            path = root / f"extern_{index}.js"
            path.write_text(extern, encoding="utf-8")
            extern_files.append(path)
        map_file = root / "output.js.map"

        flags = resolve_flags(options, input_file, map_file, extern_files)
        request = OptimizerRequest(
            input_file=input_file,
            source_map_output_file=map_file,
            extern_files=extern_files,
            flags=flags,
        )
        response = optimizer.run(request, timeout=options.optimizer_timeout)
        check_response(response, flags)
        if response.stderr:
            LOG.warning("optimizer reported: %s", response.stderr.strip())

        if not map_file.exists() or not map_file.read_text(encoding="utf-8").strip():
            raise OptimizerFailure(response.exit_code, "optimizer did not write a source map")
        try:
            optimized_map = DecodedMap.from_dict(
                json.loads(map_file.read_text(encoding="utf-8"))
            )
        except ValueError as exc:
            raise OptimizerFailure(response.exit_code, f"unreadable source map: {exc}") from exc
    return response.stdout, optimized_map


__all__ = [
    "ClosureCompiler",
    "DEFAULT_COMMAND",
    "Optimizer",
    "OptimizerRequest",
    "OptimizerResponse",
    "check_response",
    "optimize",
    "render_flags",
]
