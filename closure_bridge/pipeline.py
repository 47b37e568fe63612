"""Stage-based orchestration around one optimizer invocation per chunk."""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .edits import apply_edits
from .exceptions import ClosureBridgeError, PipelineStateError, StageError
from .logging_config import dump_transcript, transcript_path
from .mangle import Anomaly, Mangler
from .optimizer import ClosureCompiler, Optimizer, optimize
from .options import PipelineOptions, validate_flags
from .parsing import SourceTree, parse
from .sourcemap import DecodedMap, identity_map, recompose
from .stages import asi, cjs, const, exports, hashbang, iife, imports, literal_computed_keys, strict
from .stages.base import ExportBinding, ExportRegistry, Memory, Stage

LOG = logging.getLogger(__name__)

IDLE = "IDLE"
PRE_STAGING = "PRE_STAGING"
OPTIMIZING = "OPTIMIZING"
POST_STAGING = "POST_STAGING"
DONE = "DONE"
FAILED = "FAILED"

_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    IDLE: (PRE_STAGING, FAILED),
    PRE_STAGING: (OPTIMIZING, FAILED),
    OPTIMIZING: (POST_STAGING, FAILED),
    POST_STAGING: (DONE, FAILED),
    DONE: (),
    FAILED: (),
}


@dataclass
class SourceDescription:
    code: str
    map: DecodedMap


@dataclass
class Unit:
    """All state of one compilation unit, discarded once it is done."""

    file_name: str
    code: str
    options: PipelineOptions
    mangler: Mangler
    original: str = ""
    memory: Memory = field(default_factory=Memory)
    exports: ExportRegistry = field(default_factory=ExportRegistry)
    externs: List[str] = field(default_factory=list)
    transcript: List[Tuple[str, str]] = field(default_factory=list)
    fragments: List[DecodedMap] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    timings: List[Tuple[str, str, float]] = field(default_factory=list)
    state: str = IDLE
    result: Optional[SourceDescription] = None
    _tree: Optional[SourceTree] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.original:
            self.original = self.code

    def transition(self, state: str) -> None:
        if state not in _TRANSITIONS.get(self.state, ()):
            raise PipelineStateError(f"illegal transition {self.state} -> {state} for {self.file_name}")
        LOG.debug("%s: %s -> %s", self.file_name, self.state, state)
        self.state = state

    def parse(self) -> SourceTree:
        """Parse the current buffer, reusing the last tree while it is unchanged."""

        if self._tree is None or self._tree.text is not self.code:
            self._tree = parse(self.code, self.file_name)
        return self._tree

    def anomaly(self, kind: str, message: str) -> None:
        record = Anomaly(kind, message)
        self.anomalies.append(record)
        LOG.warning("%s", record)

    def composed_map(self) -> DecodedMap:
        if not self.fragments:
            return identity_map(self.code, self.file_name)
        composed = recompose(self.fragments)
        composed.sources = [self.file_name]
        composed.sources_content = [self.original]
        composed.file = self.options.file or self.file_name
        return composed


class StageRegistry:
    def __init__(self) -> None:
        self._stages: Dict[str, Tuple[Stage, Optional[int], Optional[int]]] = {}

    def register_stage(
        self,
        stage: Stage,
        pre_order: Optional[int] = None,
        post_order: Optional[int] = None,
    ) -> None:
        self._stages[stage.name] = (stage, pre_order, post_order)

    def ordered(self, phase: str) -> List[Stage]:
        """Stages implementing ``phase``; externs are collected in pre order."""

        selected: List[Tuple[int, str, Stage]] = []
        for name, (stage, pre_order, post_order) in self._stages.items():
            order = pre_order if phase in ("pre", "extern") else post_order
            if order is None or getattr(stage, phase) is None:
                continue
            selected.append((order, name, stage))
        selected.sort(key=lambda item: (item[0], item[1]))
        return [stage for _, _, stage in selected]

    def run_stage(self, unit: Unit, stage: Stage, phase: str) -> None:
        fn = getattr(stage, phase)
        if fn is None:
            return
        start = time.perf_counter()
        try:
            edits = fn(unit)
        except ClosureBridgeError:
            raise
        except Exception as exc:
            raise StageError(stage.name, phase, exc) from exc
        if edits:
            unit.code, fragment = apply_edits(edits, unit.code, source=unit.file_name)
            unit.fragments.append(fragment)
        duration = time.perf_counter() - start
        unit.timings.append((stage.name, phase, duration))
        unit.transcript.append((stage.name, unit.code))
        suffix = f" (edits={len(edits)})" if edits else ""
        LOG.info("stage %s %s completed in %.3fs%s", stage.name, phase, duration, suffix)

    def run_phase(self, unit: Unit, phase: str) -> None:
        unit.transcript.append((f"before {phase}", unit.code))
        for stage in self.ordered(phase):
            self.run_stage(unit, stage, phase)
        unit.transcript.append((f"after {phase}", unit.code))

    def collect_externs(self, unit: Unit) -> List[str]:
        externs: List[str] = []
        for stage in self.ordered("extern"):
            try:
                text = stage.extern(unit)
            except ClosureBridgeError:
                raise
            except Exception as exc:
                raise StageError(stage.name, "extern", exc) from exc
            if text:
                externs.append(text)
        return externs


PIPELINE = StageRegistry()


class ChunkCompiler:
    """Drive the pre phase, the optimizer and the post phase for chunks.

    Hosts that run the optimizer themselves call :meth:`pre_compilation` and
    :meth:`post_compilation`; everyone else calls :meth:`compile`.  A single
    instance shares its :class:`Mangler` across every chunk it sees.

    A unit is held in :attr:`units` only while it is in flight. Once it is
    done or failed it is dropped and handed to ``on_finished``.
    """

    def __init__(
        self,
        options: PipelineOptions,
        optimizer: Optional[Optimizer] = None,
        mangler: Optional[Mangler] = None,
        registry: StageRegistry = PIPELINE,
        on_finished: Optional[Callable[[Unit], None]] = None,
    ) -> None:
        self.options = options
        self.optimizer = optimizer if optimizer is not None else ClosureCompiler()
        self.mangler = mangler if mangler is not None else Mangler(options.mangle_seed)
        self.registry = registry
        self.on_finished = on_finished
        self.units: Dict[str, Unit] = {}

    @contextlib.contextmanager
    def _guard(self, unit: Unit) -> Iterator[None]:
        try:
            yield
        except ClosureBridgeError as exc:
            self._fail(unit, exc)
            raise
        except Exception as exc:
            wrapped = StageError("pipeline", unit.state, exc)
            self._fail(unit, wrapped)
            raise wrapped from exc

    def _fail(self, unit: Unit, exc: ClosureBridgeError) -> None:
        LOG.error("%s failed in state %s: %s", unit.file_name, unit.state, exc)
        if unit.state not in (DONE, FAILED):
            unit.state = FAILED
        exc.transcript = list(unit.transcript)
        self._dump(unit)
        self._release(unit)

    def _release(self, unit: Unit) -> None:
        if self.units.get(unit.file_name) is unit:
            del self.units[unit.file_name]
        if self.on_finished is not None:
            self.on_finished(unit)

    def _dump(self, unit: Unit) -> None:
        if self.options.debug_dir is None:
            return
        path = dump_transcript(unit.transcript, transcript_path(self.options.debug_dir, unit.file_name))
        LOG.info("transcript for %s written to %s", unit.file_name, path)

    def pre_compilation(self, file_name: str, code: str) -> SourceDescription:
        validate_flags(self.options.flags)
        unit = Unit(file_name=file_name, code=code, options=self.options, mangler=self.mangler)
        self.units[file_name] = unit
        with self._guard(unit):
            unit.transition(PRE_STAGING)
            self.registry.run_phase(unit, "pre")
            unit.externs = self.registry.collect_externs(unit)
            unit.transition(OPTIMIZING)
        return SourceDescription(unit.code, unit.composed_map())

    def optimize(self, file_name: str) -> Tuple[str, DecodedMap]:
        unit = self.units.get(file_name)
        if unit is None:
            raise PipelineStateError(f"{file_name} is not staged for optimization")
        with self._guard(unit):
            return optimize(self.optimizer, unit.code, unit.externs, self.options)

    def post_compilation(self, file_name: str, code: str, optimizer_map: DecodedMap) -> SourceDescription:
        unit = self.units.get(file_name)
        if unit is None:
            raise PipelineStateError(f"{file_name} has no unit awaiting post_compilation")
        with self._guard(unit):
            unit.transition(POST_STAGING)
            unit.fragments.append(optimizer_map)
            unit.code = code
            unit.transcript.append(("optimizer", code))
            self.registry.run_phase(unit, "post")
            description = SourceDescription(unit.code, unit.composed_map())
            unit.result = description
            unit.transition(DONE)
        self._dump(unit)
        self._release(unit)
        return description

    def compile(self, file_name: str, code: str) -> SourceDescription:
        self.pre_compilation(file_name, code)
        optimized, optimizer_map = self.optimize(file_name)
        return self.post_compilation(file_name, optimized, optimizer_map)


def compile_chunk(
    file_name: str,
    code: str,
    options: PipelineOptions,
    optimizer: Optional[Optimizer] = None,
    mangler: Optional[Mangler] = None,
) -> SourceDescription:
    """Run the whole pre, optimize, post cycle for one chunk."""

    return ChunkCompiler(options, optimizer=optimizer, mangler=mangler).compile(file_name, code)


def discover_source_exports(origin: str, code: str, mangler: Mangler) -> List[ExportBinding]:
    """Register ``origin`` and mangle every name it exports in ``mangler``.

    Runs per source module before bundling so that chunk-level mangling of
    the same names stays consistent across a build.
    """

    tree = parse(code, origin)
    origin_id = mangler.origin_id(origin)
    bindings: List[ExportBinding] = []
    for binding, _ in exports.discover(tree, origin, mangler):
        if binding is None:
            continue
        mangler.mangle(binding.exported_name, origin_id)
        bindings.append(binding)
    return bindings


# ---------------------------------------------------------------------------
# Stage registration

PIPELINE.register_stage(hashbang.STAGE, pre_order=10, post_order=60)
PIPELINE.register_stage(const.STAGE, pre_order=20)
PIPELINE.register_stage(iife.STAGE, pre_order=30)
PIPELINE.register_stage(cjs.STAGE, pre_order=40)
PIPELINE.register_stage(literal_computed_keys.STAGE, post_order=10)
PIPELINE.register_stage(strict.STAGE, post_order=20)
PIPELINE.register_stage(exports.STAGE, pre_order=70, post_order=30)
PIPELINE.register_stage(imports.STAGE, pre_order=80, post_order=40)
PIPELINE.register_stage(asi.STAGE, post_order=50)


__all__ = [
    "ChunkCompiler",
    "DONE",
    "FAILED",
    "IDLE",
    "OPTIMIZING",
    "PIPELINE",
    "POST_STAGING",
    "PRE_STAGING",
    "SourceDescription",
    "StageRegistry",
    "Unit",
    "compile_chunk",
    "discover_source_exports",
]
