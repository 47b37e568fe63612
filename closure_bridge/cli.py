"""Command line entry point for the closure bridge."""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .exceptions import ClosureBridgeError
from .logging_config import setup_logging
from .mangle import DEFAULT_SEED
from .optimizer import DEFAULT_COMMAND, ClosureCompiler
from .options import FORMATS, PipelineOptions
from .pipeline import ChunkCompiler
from .report import CompileReport

LOG = logging.getLogger(__name__)


def _flag_value(raw: str) -> Any:
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return raw


def parse_flags(entries: List[str]) -> Dict[str, Any]:
    """Turn repeated ``key=value`` arguments into a flag dict.

    A key given more than once collects its values into a list.
    """

    flags: Dict[str, Any] = {}
    for entry in entries:
        key, sep, raw = entry.partition("=")
        key = key.strip().lstrip("-")
        if not key:
            raise ValueError(f"invalid compile flag {entry!r}")
        value = _flag_value(raw) if sep else True
        if key in flags:
            current = flags[key]
            flags[key] = (current if isinstance(current, list) else [current]) + [value]
        else:
            flags[key] = value
    return flags


def default_output(input_path: Path) -> Path:
    return input_path.with_name(f"{input_path.stem}.min{input_path.suffix or '.js'}")


def _run_compile(args: argparse.Namespace) -> Tuple[int, CompileReport | None]:
    input_path = Path(args.input)
    output_path = Path(args.output) if args.output else default_output(input_path)
    try:
        flags = parse_flags(args.flag or [])
    except ValueError as exc:
        LOG.error("%s", exc)
        return 2, None

    options = PipelineOptions(
        format=args.format,
        name=args.name,
        file=output_path.name,
        external=args.external or None,
        flags=flags,
        mangle_seed=args.seed,
        debug_dir=Path(args.debug_dir) if args.debug_dir else None,
        optimizer_timeout=args.timeout,
    )
    reports: List[CompileReport] = []
    compiler = ChunkCompiler(
        options,
        optimizer=ClosureCompiler(shlex.split(args.compiler)),
        on_finished=lambda unit: reports.append(CompileReport.from_unit(unit)),
    )
    code = input_path.read_text(encoding="utf-8")
    file_name = input_path.name

    try:
        description = compiler.compile(file_name, code)
    except ClosureBridgeError as exc:
        LOG.error("%s", exc)
        report = reports[-1] if reports else None
        if report is not None:
            report.errors.append(str(exc))
        return 1, report

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(description.code, encoding="utf-8")
    map_path = output_path.with_name(output_path.name + ".map")
    map_path.write_text(description.map.to_json(), encoding="utf-8")
    LOG.info("wrote %s and %s", output_path, map_path)
    return 0, reports[-1]


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Closure Compiler bridge CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    compile_cmd = sub.add_parser("compile", help="Optimize one rendered chunk")
    compile_cmd.add_argument("input")
    compile_cmd.add_argument("-o", "--output")
    compile_cmd.add_argument("--format", choices=FORMATS, default="es")
    compile_cmd.add_argument("--name", help="Wrapper name for iife output")
    compile_cmd.add_argument(
        "--external", action="append", help="Import specifier to preserve (repeatable)"
    )
    compile_cmd.add_argument(
        "--flag", action="append", metavar="KEY=VALUE", help="Compile flag override (repeatable)"
    )
    compile_cmd.add_argument("--seed", default=DEFAULT_SEED)
    compile_cmd.add_argument("--debug-dir")
    compile_cmd.add_argument("--timeout", type=float, default=None)
    compile_cmd.add_argument("--compiler", default=" ".join(DEFAULT_COMMAND))
    compile_cmd.add_argument("--report", nargs="?", const="text", choices=("text", "json"))

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "compile":
        status, report = _run_compile(args)
        if args.report and report is not None:
            if args.report == "json":
                print(json.dumps(report.to_json(), indent=2))
            else:
                print(report.to_text())
        return status

    parser.error("Unhandled command")
    return 2


if __name__ == "__main__":  # pragma: no cover - CLI wrapper
    sys.exit(main())
