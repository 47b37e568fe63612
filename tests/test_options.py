import pytest

from closure_bridge.exceptions import ConfigurationConflict
from closure_bridge.options import (
    PipelineOptions,
    is_esm_format,
    resolve_flags,
    split_externs,
    validate_flags,
)


def test_esm_formats():
    assert is_esm_format("es")
    assert is_esm_format("esm")
    assert not is_esm_format("cjs")
    assert not is_esm_format(None)


def test_unknown_format_is_rejected():
    with pytest.raises(ConfigurationConflict):
        PipelineOptions(format="bogus")


def test_verbose_requires_language_out():
    with pytest.raises(ConfigurationConflict) as excinfo:
        validate_flags({"warning_level": "VERBOSE"})
    assert "requires a valid language_out" in str(excinfo.value)


def test_verbose_with_no_transpile_conflicts():
    with pytest.raises(ConfigurationConflict) as excinfo:
        validate_flags({"warning_level": "VERBOSE", "language_out": "NO_TRANSPILE"})
    assert "will remove warnings" in str(excinfo.value)


def test_verbose_with_language_out_is_accepted():
    validate_flags({"warning_level": "VERBOSE", "language_out": "ECMASCRIPT_2015"})
    validate_flags({"warning_level": "QUIET"})


def test_defaults_for_module_output(tmp_path):
    flags = resolve_flags(PipelineOptions(format="es"), tmp_path / "in.js", tmp_path / "in.map")
    assert flags["language_out"] == "NO_TRANSPILE"
    assert flags["assume_function_wrapper"] is True
    assert flags["warning_level"] == "QUIET"
    assert flags["module_resolution"] == "NODE"
    assert "externs" not in flags
    assert flags["js"] == str(tmp_path / "in.js")
    assert flags["create_source_map"] == str(tmp_path / "in.map")


def test_requested_flags_override_defaults_but_not_js(tmp_path):
    options = PipelineOptions(
        format="iife",
        flags={"compilation_level": "ADVANCED", "language_out": "ECMASCRIPT5", "js": "evil.js"},
    )
    flags = resolve_flags(options, "in.js", "in.map")
    assert flags["assume_function_wrapper"] is False
    assert flags["compilation_level"] == "ADVANCED"
    assert flags["language_out"] == "ECMASCRIPT5"
    assert flags["js"] == "in.js"


@pytest.mark.parametrize(
    "externs, expected",
    [
        (True, []),
        (False, []),
        ("a.externs.js", ["a.externs.js"]),
        (["a.js", "b.js"], ["a.js", "b.js"]),
    ],
)
def test_split_externs_shapes(externs, expected):
    remaining, provided = split_externs({"externs": externs, "debug": True})
    assert provided == expected
    assert remaining == {"debug": True}


def test_generated_externs_precede_provided_ones():
    options = PipelineOptions(flags={"externs": "user.js"})
    flags = resolve_flags(options, "in.js", "in.map", ["stage0.js"])
    assert flags["externs"] == ["stage0.js", "user.js"]


def test_external_selection():
    assert PipelineOptions().is_external("anything")
    listed = PipelineOptions(external=["lit"])
    assert listed.is_external("lit")
    assert not listed.is_external("./local.js")
    predicate = PipelineOptions(external=lambda origin: origin.startswith("@"))
    assert predicate.is_external("@scope/pkg")
    assert not predicate.is_external("pkg")
