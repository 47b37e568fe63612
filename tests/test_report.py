from closure_bridge.options import PipelineOptions
from closure_bridge.pipeline import ChunkCompiler
from closure_bridge.report import CompileReport

from conftest import FakeOptimizer


def _report():
    reports = []
    compiler = ChunkCompiler(
        PipelineOptions(),
        optimizer=FakeOptimizer(),
        on_finished=lambda unit: reports.append(CompileReport.from_unit(unit)),
    )
    compiler.compile("chunk.js", "#!/usr/bin/env node\nexport class A{}\n")
    (report,) = reports
    return report


def test_report_summarises_unit():
    report = _report()
    assert report.state == "DONE"
    assert report.hashbang == "#!/usr/bin/env node"
    assert report.exports == [
        {"exported": "A", "local": "A", "kind": "named-class", "from": None}
    ]
    assert report.externs == 1
    assert report.mapping_segments > 0
    assert {timing["phase"] for timing in report.timings} == {"pre", "post"}


def test_text_rendering():
    text = _report().to_text()
    assert text.splitlines()[0] == "Unit: chunk.js (format es, state DONE)"
    assert "  - A <- A [named-class]" in text
    assert "Dynamic import: no" in text
    assert "Anomalies" not in text


def test_mangle_collisions_surface_as_anomalies():
    finished = []
    compiler = ChunkCompiler(PipelineOptions(), optimizer=FakeOptimizer(), on_finished=finished.append)
    compiler.mangler.mangle("a", compiler.mangler.origin_id("x"))
    compiler.mangler.mangle("a", compiler.mangler.origin_id("y"))
    compiler.compile("chunk.js", "foo();\n")
    report = CompileReport.from_unit(finished[0])
    assert len(report.anomalies) == 1
    assert report.anomalies[0].startswith("MangleCollision")
    assert report.to_json()["anomalies"] == report.anomalies
