from pathlib import Path

import pytest

from closure_bridge.exceptions import OptimizerFailure
from closure_bridge.optimizer import (
    ClosureCompiler,
    OptimizerRequest,
    OptimizerResponse,
    check_response,
    optimize,
    render_flags,
)
from closure_bridge.options import PipelineOptions

from conftest import FakeOptimizer


def test_render_flags_shapes():
    argv = render_flags(
        {
            "js": "in.js",
            "assume_function_wrapper": True,
            "debug": False,
            "externs": ["a.js", "b.js"],
            "skipped": None,
        }
    )
    assert argv == ["--js=in.js", "--assume_function_wrapper", "--externs=a.js", "--externs=b.js"]


def test_argv_prefixes_command():
    request = OptimizerRequest(Path("in.js"), Path("in.map"), flags={"js": "in.js"})
    assert ClosureCompiler(["npx", "google-closure-compiler"]).argv(request) == [
        "npx",
        "google-closure-compiler",
        "--js=in.js",
    ]


def test_nonzero_exit_is_a_failure():
    with pytest.raises(OptimizerFailure) as excinfo:
        check_response(OptimizerResponse(2, "", "ERROR - bad"), {})
    assert excinfo.value.exit_code == 2
    assert excinfo.value.stderr == "ERROR - bad"
    assert str(excinfo.value) == "Google Closure Compiler exit 2: ERROR - bad"


def test_verbose_stderr_is_a_failure():
    check_response(OptimizerResponse(0, "x", "WARNING - w"), {"warning_level": "QUIET"})
    with pytest.raises(OptimizerFailure):
        check_response(OptimizerResponse(0, "x", "WARNING - w"), {"warning_level": "VERBOSE"})


def test_optimize_stages_input_and_externs():
    fake = FakeOptimizer()
    code, mapping = optimize(fake, "foo();\n", ["/** @externs */\nfunction foo(){};"], PipelineOptions())
    assert code == "foo();\n"
    assert mapping.lookup(0, 0) == (0, 0, 0, 0)
    request = fake.requests[0]
    assert request.flags["externs"] == [str(request.extern_files[0])]
    assert fake.externs == [["/** @externs */\nfunction foo(){};"]]
    assert not request.input_file.exists(), "staging directory is removed afterwards"


def test_optimize_raises_on_failure():
    with pytest.raises(OptimizerFailure) as excinfo:
        optimize(FakeOptimizer(exit_code=1, stderr="boom"), "x;", [], PipelineOptions())
    assert excinfo.value.stderr == "boom"


def test_missing_executable_is_reported():
    compiler = ClosureCompiler(["definitely-not-a-closure-compiler-binary"])
    request = OptimizerRequest(Path("in.js"), Path("in.map"))
    with pytest.raises(OptimizerFailure) as excinfo:
        compiler.run(request)
    assert excinfo.value.exit_code == 127


def test_subprocess_adapter_round_trip(fake_compiler_command):
    code, mapping = optimize(
        ClosureCompiler(fake_compiler_command), "console.log(1);\n", [], PipelineOptions()
    )
    assert code == "console.log(1);\n"
    assert mapping.lookup(0, 3) == (0, 0, 0, 0)


def test_subprocess_adapter_exit_code(fake_compiler_command):
    options = PipelineOptions(flags={"fake_exit": "3", "fake_stderr": "ERROR - nope"})
    with pytest.raises(OptimizerFailure) as excinfo:
        optimize(ClosureCompiler(fake_compiler_command), "x;", [], options)
    assert excinfo.value.exit_code == 3
    assert excinfo.value.stderr == "ERROR - nope"
