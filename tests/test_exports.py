import pytest

from closure_bridge.edits import SyntaxRange, apply_edits
from closure_bridge.exceptions import UnsupportedSyntaxForm
from closure_bridge.mangle import Mangler
from closure_bridge.options import PipelineOptions
from closure_bridge.parsing import parse
from closure_bridge.pipeline import Unit
from closure_bridge.stages import exports
from closure_bridge.stages.base import NAMED_CONSTANT, ExportBinding


def _discover(code):
    mangler = Mangler()
    found = exports.discover(parse(code), "chunk.js", mangler)
    return [binding for binding, _ in found if binding is not None], mangler


def _kinds(code):
    bindings, _ = _discover(code)
    return [(b.local_name, b.exported_name, b.closure_kind) for b in bindings]


@pytest.mark.parametrize(
    "code, expected",
    [
        ("export function f(){}", [("f", "f", "named-function")]),
        ("export async function f(){}", [("f", "f", "named-function")]),
        ("export function* g(){}", [("g", "g", "named-function")]),
        ("export class C{}", [("C", "C", "named-class")]),
        ("export let a = 1, b;", [("a", "a", "named-constant"), ("b", "b", "named-constant")]),
        ("export {a, b as c};", [("a", "a", "named-constant"), ("b", "c", "named-constant")]),
        ("export default function f(){}", [("f", "default", "named-default-function")]),
        ("export default class C{}", [("C", "default", "named-default-class")]),
        ("export default ident;", [("ident", "default", "named-default-function")]),
    ],
)
def test_discovery_kinds(code, expected):
    assert _kinds(code) == expected


def test_anonymous_defaults_get_synthetic_names():
    bindings, mangler = _discover("export default function(){}")
    synthetic = mangler.mangle("default", mangler.origin_id("chunk.js"))
    assert [(b.local_name, b.closure_kind) for b in bindings] == [(synthetic, "default-function")]
    bindings, mangler = _discover("export default class{}")
    assert [b.closure_kind for b in bindings] == ["default-class"]


def test_reexport_records_origin_and_mangled_surface():
    bindings, mangler = _discover("export {a as b} from './m.js';")
    (binding,) = bindings
    assert binding.origin_module == "./m.js"
    assert binding.surface == mangler.mangle("a", mangler.origin_id("./m.js"))
    assert binding.exported_name == "b"


@pytest.mark.parametrize(
    "code",
    [
        "export * from 'm';",
        "export * as ns from 'm';",
        "export default 1 + 2;",
        "export default () => 1;",
        "export const {a} = o;",
        "export let [x] = xs;",
    ],
)
def test_unsupported_forms_fail_fast(code):
    with pytest.raises(UnsupportedSyntaxForm) as excinfo:
        _discover(code)
    assert "Unsupported syntax" in str(excinfo.value)


def _pre(code, **options):
    unit = Unit(file_name="chunk.js", code=code, options=PipelineOptions(**options), mangler=Mangler())
    unit.code, _ = apply_edits(exports.pre(unit), unit.code)
    return unit


def _post(unit, optimized):
    unit.code = optimized
    unit.code, _ = apply_edits(exports.post(unit), unit.code)
    return unit.code


def test_pre_strips_exports_and_adds_global_references():
    unit = _pre("export function f(){}\nexport {f as g};")
    assert unit.code == "function f(){}\n\nwindow['f'] = f;\nwindow['g'] = f;"
    assert len(unit.exports) == 2


def test_anonymous_default_function_is_named():
    unit = _pre("export default function(){return 1}")
    synthetic = unit.mangler.mangled_name("default")
    assert unit.code == f"function {synthetic}(){{return 1}}\nwindow['default'] = {synthetic};"


def test_pre_is_noop_for_script_formats():
    unit = _pre("export function f(){}", format="cjs")
    assert unit.code == "export function f(){}"
    assert exports.extern(unit) is None


def test_extern_stubs():
    unit = _pre("export function f(){}\nexport {a as b} from 'm';")
    text = exports.extern(unit)
    assert "@externs" in text
    assert "window.f;" in text
    surface = unit.exports.get("b").surface
    assert f"function {surface}(){{}};" in text


def test_post_exports_surviving_declaration():
    unit = _pre("export function f(){return 1}")
    assert _post(unit, "function f(){return 1}window.f=f;") == "export function f(){return 1}"


def test_post_aggregates_renamed_alias():
    unit = _pre("export function foo(){return 1}")
    assert _post(unit, "function a(){return 1}window.foo=a;") == (
        "function a(){return 1}\nexport{a as foo};"
    )


def test_post_function_expression():
    unit = _pre("export function foo(b){return b}")
    assert _post(unit, "window.foo=function(b){return b};") == "export function foo(b){return b}"


def test_post_default_function_expression():
    unit = _pre("export default function(){return 1}")
    assert _post(unit, "window['default']=function(){return 1};") == (
        "export default function(){return 1}"
    )


def test_post_class_expression():
    unit = _pre("export class Foo extends Base{}")
    assert _post(unit, "window.Foo=class extends Base{};") == "export class Foo extends Base{}"


def test_post_other_expressions():
    unit = _pre("export let x = 5;")
    assert _post(unit, "window.x=5;") == "export var x=5;"
    unit = _pre("let foo = 1;\nexport default foo;")
    assert _post(unit, "window['default']=1;") == "export default 1;"


def test_post_reexports_are_prepended():
    unit = _pre("export {a as b, c} from './m.js';")
    surfaces = [binding.surface for binding in unit.exports]
    optimized = f"window.b={surfaces[0]};window.c={surfaces[1]};"
    assert _post(unit, optimized) == "export{a as b,c}from'./m.js';"


def test_post_sequence_of_global_references():
    unit = _pre("export function a(){}\nexport function b(){}")
    assert _post(unit, "function a(){}function b(){}window.a=a,window.b=b;") == (
        "export function a(){}export function b(){}"
    )


def test_post_multi_declarator_variables_use_aggregate():
    unit = _pre("export let a = 1, b = 2;")
    assert _post(unit, "let a=1,b=2;window.a=a;window.b=b;") == "let a=1,b=2;\nexport{a,b};"


def test_missing_binding_is_a_restoration_anomaly(caplog):
    unit = _pre("export function f(){}")
    with caplog.at_level("WARNING"):
        assert _post(unit, "console.log(1);") == "console.log(1);"
    assert [anomaly.kind for anomaly in unit.anomalies] == ["RestorationAnomaly"]
    assert "RestorationAnomaly" in caplog.text


def test_default_alias_of_inlined_value():
    unit = _pre("let x = 5;\nexport { x as default };")
    assert unit.exports.get("default").is_default
    assert _post(unit, "window.default=5;") == "export default 5;"


def test_default_alias_of_surviving_binding():
    unit = _pre("let x = 5;\nexport { x as default };")
    assert _post(unit, "let a=5;window['default']=a;") == "let a=5;\nexport{a as default};"


def test_reserved_export_name_goes_through_fresh_local():
    unit = Unit(file_name="chunk.js", code="", options=PipelineOptions(), mangler=Mangler())
    unit.exports.add(ExportBinding("x", "if", NAMED_CONSTANT, SyntaxRange(0, 0)))
    assert _post(unit, "var __export_0;window['if']=5;") == (
        "var __export_0;var __export_1=5;\nexport{__export_1 as if};"
    )


def test_binding_names():
    assert exports.is_binding_name("foo$1")
    assert not exports.is_binding_name("default")
    assert not exports.is_binding_name("class")
    assert not exports.is_binding_name("a-b")
