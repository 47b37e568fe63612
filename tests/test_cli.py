import json
import shlex
from pathlib import Path

from closure_bridge import cli


def _write(tmp_path, code, name="chunk.js"):
    path = tmp_path / name
    path.write_text(code, encoding="utf-8")
    return path


def test_parse_flags_collects_values():
    assert cli.parse_flags(["a=1", "b=true", "a=2", "--flag", "c=False"]) == {
        "a": ["1", "2"],
        "b": True,
        "flag": True,
        "c": False,
    }


def test_default_output_name():
    assert cli.default_output(Path("dist/bundle.mjs")) == Path("dist/bundle.min.mjs")
    assert cli.default_output(Path("bundle")) == Path("bundle.min.js")


def test_compile_writes_code_and_map(tmp_path, fake_compiler_command):
    source = _write(tmp_path, "export function foo(){return 1}\n")
    status = cli.main(["compile", str(source), "--compiler", shlex.join(fake_compiler_command)])
    assert status == 0
    output = tmp_path / "chunk.min.js"
    assert output.read_text(encoding="utf-8").strip() == "export function foo(){return 1}"
    mapping = json.loads((tmp_path / "chunk.min.js.map").read_text(encoding="utf-8"))
    assert mapping["version"] == 3
    assert mapping["sources"] == ["chunk.js"]
    assert mapping["file"] == "chunk.min.js"


def test_json_report(tmp_path, fake_compiler_command, capsys):
    source = _write(tmp_path, "import {a} from 'x';\nexport function foo(){return a}\n")
    output = tmp_path / "out" / "bundle.js"
    status = cli.main(
        [
            "compile",
            str(source),
            "-o",
            str(output),
            "--compiler",
            shlex.join(fake_compiler_command),
            "--report",
            "json",
        ]
    )
    assert status == 0
    assert output.exists()
    report = json.loads(capsys.readouterr().out)
    assert report["state"] == "DONE"
    assert report["imports"] == ["x"]
    assert [entry["exported"] for entry in report["exports"]] == ["foo"]
    assert report["mapping_segments"] > 0


def test_unsupported_input_exits_with_report(tmp_path, fake_compiler_command, capsys):
    source = _write(tmp_path, "export * from 'm';\n")
    status = cli.main(
        ["compile", str(source), "--compiler", shlex.join(fake_compiler_command), "--report"]
    )
    assert status == 1
    out = capsys.readouterr().out
    assert "state FAILED" in out
    assert "Unsupported syntax in chunk.js: export * from 'm'" in out
    assert not (tmp_path / "chunk.min.js").exists()


def test_compiler_exit_code_is_reported(tmp_path, fake_compiler_command, capsys):
    source = _write(tmp_path, "foo();\n")
    status = cli.main(
        [
            "compile",
            str(source),
            "--compiler",
            shlex.join(fake_compiler_command),
            "--flag",
            "fake_exit=4",
            "--flag",
            "fake_stderr=ERROR - broken",
            "--report",
        ]
    )
    assert status == 1
    assert "Google Closure Compiler exit 4: ERROR - broken" in capsys.readouterr().out


def test_invalid_flag_is_a_usage_error(tmp_path):
    source = _write(tmp_path, "foo();\n")
    assert cli.main(["compile", str(source), "--flag", "=oops"]) == 2
