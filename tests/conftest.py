"""Test configuration ensuring the project is importable and the optimizer is faked."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"
FIXTURES = TESTS / "fixtures"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))

if str(TESTS) in sys.path:
    sys.path.pop(sys.path.index(str(TESTS)))
sys.path.insert(1, str(TESTS))

from closure_bridge.optimizer import OptimizerRequest, OptimizerResponse  # noqa: E402
from closure_bridge.sourcemap import identity_map  # noqa: E402


class FakeOptimizer:
    """Stands in for Google Closure Compiler.

    Echoes its input (optionally through ``transform``) and writes a map
    relating the output to itself, which is exact for the identity transform.
    """

    def __init__(
        self,
        transform: Optional[Callable[[str], str]] = None,
        exit_code: int = 0,
        stderr: str = "",
    ) -> None:
        self.transform = transform
        self.exit_code = exit_code
        self.stderr = stderr
        self.requests: List[OptimizerRequest] = []
        self.inputs: List[str] = []
        self.externs: List[List[str]] = []

    def run(self, request: OptimizerRequest, timeout: Optional[float] = None) -> OptimizerResponse:
        self.requests.append(request)
        code = request.input_file.read_text(encoding="utf-8")
        self.inputs.append(code)
        self.externs.append([path.read_text(encoding="utf-8") for path in request.extern_files])
        if self.exit_code:
            return OptimizerResponse(self.exit_code, "", self.stderr)
        output = self.transform(code) if self.transform else code
        mapping = identity_map(output, str(request.input_file))
        request.source_map_output_file.write_text(mapping.to_json(), encoding="utf-8")
        return OptimizerResponse(0, output, self.stderr)


@pytest.fixture
def fake_optimizer() -> FakeOptimizer:
    return FakeOptimizer()


@pytest.fixture
def fake_compiler_command() -> List[str]:
    """Command line of a stand-alone script mimicking the compiler executable."""

    return [sys.executable, str(FIXTURES / "fake_closure_compiler.py")]
