"""Structured compile report helpers."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Dict, List

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .pipeline import Unit
    from .sourcemap import DecodedMap


@dataclass
class CompileReport:
    """Summarises a single compilation unit for maintainers."""

    file_name: str
    format: str
    state: str = "IDLE"
    input_length: int = 0
    output_length: int = 0
    exports: List[Dict[str, object]] = field(default_factory=list)
    imports: List[str] = field(default_factory=list)
    dynamic_import: bool = False
    hashbang: str | None = None
    externs: int = 0
    timings: List[Dict[str, object]] = field(default_factory=list)
    mapping_segments: int = 0
    anomalies: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_unit(cls, unit: "Unit", source_map: "DecodedMap | None" = None) -> "CompileReport":
        if source_map is None and unit.result is not None:
            source_map = unit.result.map
        anomalies = [str(anomaly) for anomaly in unit.anomalies]
        anomalies.extend(str(anomaly) for anomaly in unit.mangler.anomalies)
        return cls(
            file_name=unit.file_name,
            format=unit.options.format,
            state=unit.state,
            input_length=len(unit.original),
            output_length=len(unit.code),
            exports=[
                {
                    "exported": binding.exported_name,
                    "local": binding.local_name,
                    "kind": binding.closure_kind,
                    "from": binding.origin_module,
                }
                for binding in unit.exports
            ],
            imports=list(unit.memory.import_texts),
            dynamic_import=unit.memory.dynamic_import_present,
            hashbang=unit.memory.hashbang.rstrip("\r\n") if unit.memory.hashbang else None,
            externs=len(unit.externs),
            timings=[
                {"stage": name, "phase": phase, "seconds": round(duration, 6)}
                for name, phase, duration in unit.timings
            ],
            mapping_segments=source_map.segment_count() if source_map is not None else 0,
            anomalies=anomalies,
        )

    def to_text(self) -> str:
        """Format the report as a human-readable summary."""

        lines: List[str] = []
        lines.append(f"Unit: {self.file_name} (format {self.format}, state {self.state})")
        lines.append(f"Input length: {self.input_length} chars")
        lines.append(f"Final output length: {self.output_length} chars")
        if self.hashbang:
            lines.append(f"Hashbang: {self.hashbang}")
        if self.exports:
            lines.append("Exports:")
            for entry in self.exports:
                origin = f" from {entry['from']}" if entry.get("from") else ""
                lines.append(f"  - {entry['exported']} <- {entry['local']} [{entry['kind']}]{origin}")
        else:
            lines.append("Exports: none")
        if self.imports:
            lines.append("Preserved imports: " + ", ".join(self.imports))
        lines.append("Dynamic import: " + ("yes" if self.dynamic_import else "no"))
        lines.append(f"Extern files: {self.externs}")
        lines.append(f"Source map segments: {self.mapping_segments}")
        if self.timings:
            lines.append("Stage timings:")
            for timing in self.timings:
                lines.append(f"  {timing['phase']} {timing['stage']}: {timing['seconds']:.3f}s")
        if self.anomalies:
            lines.append("Anomalies:")
            lines.extend(f"  - {anomaly}" for anomaly in self.anomalies)
        if self.errors:
            lines.append("Errors:")
            lines.extend(f"  - {error}" for error in self.errors)
        return "\n".join(lines)

    def to_json(self) -> Dict[str, object]:
        """Return a JSON-serialisable representation."""

        return asdict(self)


__all__ = ["CompileReport"]
