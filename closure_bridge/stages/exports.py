"""Preserve ES module exports across an optimizer that does not understand them.

Before optimization every ``export`` is stripped and replaced by a global
reference ``window['<exported>'] = <surface>;`` that keeps the binding alive.
Afterwards the optimized program is re-parsed and each surviving global
reference is turned back into an ``export``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from tree_sitter import Node

from ..edits import Append, AppendBefore, Edit, Overwrite, Remove, SyntaxRange
from ..exceptions import UnsupportedSyntaxForm
from ..mangle import Mangler
from ..parsing import (
    CLASS_EXPRESSIONS,
    FUNCTION_DECLARATIONS,
    FUNCTION_EXPRESSIONS,
    SourceTree,
    string_value,
    walk,
)
from .base import (
    CLASS_KINDS,
    DEFAULT_CLASS,
    DEFAULT_FUNCTION,
    FUNCTION_KINDS,
    NAMED_CLASS,
    NAMED_CONSTANT,
    NAMED_DEFAULT_CLASS,
    NAMED_DEFAULT_FUNCTION,
    NAMED_FUNCTION,
    ExportBinding,
    Stage,
    extern_header,
)

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

LOG = logging.getLogger(__name__)

HEADER = extern_header("top level exported members")
IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
RESERVED_WORDS = frozenset(
    """
    await break case catch class const continue debugger default delete do else enum
    export extends false finally for function if implements import in instanceof
    interface let new null package private protected public return static super
    switch this throw true try typeof var void while with yield
    """.split()
)
FRESH_PREFIX = "__export_"
_VARIABLES = frozenset({"lexical_declaration", "variable_declaration"})

Discovery = List[Tuple[Optional[ExportBinding], List[Edit]]]


def _has_token(node: Node, token: str) -> bool:
    return any(child.type == token for child in node.children)


def _first_child(node: Node, kind: str) -> Optional[Node]:
    for child in node.children:
        if child.type == kind:
            return child
    return None


def _specifier_names(tree: SourceTree, specifier: Node) -> Tuple[str, str]:
    name = specifier.child_by_field_name("name")
    alias = specifier.child_by_field_name("alias")
    if name is None or name.type == "string" or (alias is not None and alias.type == "string"):
        raise UnsupportedSyntaxForm(f"export specifier {tree.source(specifier)}", tree.file_name)
    local = tree.source(name)
    return local, tree.source(alias) if alias is not None else local


def is_binding_name(name: str) -> bool:
    """Whether ``name`` can be declared, not only used as an export name."""

    return bool(IDENTIFIER.match(name)) and name not in RESERVED_WORDS


def synthetic_default_name(file_name: str, mangler: Mangler) -> str:
    return mangler.mangle("default", mangler.origin_id(file_name))


def _prefix(tree: SourceTree, statement: Node, inner: Node) -> SyntaxRange:
    return SyntaxRange(tree.start(statement), tree.start(inner))


def _discover_clause(tree: SourceTree, statement: Node, clause: Node, mangler: Mangler) -> Discovery:
    source = statement.child_by_field_name("source")
    origin = string_value(tree, source)
    found: Discovery = []
    removal: List[Edit] = [Remove(tree.range(statement))]
    for specifier in clause.named_children:
        if specifier.type != "export_specifier":
            continue
        local, exported = _specifier_names(tree, specifier)
        surface = None
        if origin is not None:
            surface = mangler.mangle(local, mangler.origin_id(origin))
        binding = ExportBinding(
            local_name=local,
            exported_name=exported,
            closure_kind=NAMED_CONSTANT,
            range=tree.range(statement),
            origin_module=origin,
            surface_name=surface,
        )
        found.append((binding, removal))
        removal = []
    if removal:
        # empty clause
        found.append((None, removal))
    return found


def _discover_declaration(tree: SourceTree, statement: Node, declaration: Node) -> Discovery:
    prefix: List[Edit] = [Remove(_prefix(tree, statement, declaration))]
    kind = declaration.type
    if kind in FUNCTION_DECLARATIONS or kind == "class_declaration":
        name = declaration.child_by_field_name("name")
        closure_kind = NAMED_CLASS if kind == "class_declaration" else NAMED_FUNCTION
        local = tree.source(name)
        return [(ExportBinding(local, local, closure_kind, tree.range(statement)), prefix)]
    if kind in _VARIABLES:
        found: Discovery = []
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is None or name.type != "identifier":
                raise UnsupportedSyntaxForm(
                    f"destructuring export {tree.source(declarator)}", tree.file_name
                )
            local = tree.source(name)
            found.append((ExportBinding(local, local, NAMED_CONSTANT, tree.range(statement)), prefix))
            prefix = []
        return found
    raise UnsupportedSyntaxForm(f"export {kind}", tree.file_name)


def _discover_default(tree: SourceTree, statement: Node, file_name: str, mangler: Mangler) -> Discovery:
    declaration = statement.child_by_field_name("declaration")
    value = statement.child_by_field_name("value")
    target = declaration if declaration is not None else value
    if target is None:
        raise UnsupportedSyntaxForm(tree.source(statement), tree.file_name)
    statement_range = tree.range(statement)
    kind = target.type
    name = target.child_by_field_name("name") if kind != "identifier" else None

    if kind in FUNCTION_DECLARATIONS or kind == "class_declaration" or (
        kind in FUNCTION_EXPRESSIONS | CLASS_EXPRESSIONS and name is not None
    ):
        is_class = kind in ("class_declaration", "class")
        closure_kind = NAMED_DEFAULT_CLASS if is_class else NAMED_DEFAULT_FUNCTION
        binding = ExportBinding(tree.source(name), "default", closure_kind, statement_range)
        return [(binding, [Remove(_prefix(tree, statement, target))])]

    if kind in FUNCTION_EXPRESSIONS:
        synthetic = synthetic_default_name(file_name, mangler)
        params = target.child_by_field_name("parameters")
        if params is None:
            raise UnsupportedSyntaxForm(tree.source(statement), tree.file_name)
        edits: List[Edit] = [
            Remove(_prefix(tree, statement, target)),
            AppendBefore(tree.range(params), " " + synthetic),
        ]
        return [(ExportBinding(synthetic, "default", DEFAULT_FUNCTION, statement_range), edits)]

    if kind in CLASS_EXPRESSIONS:
        synthetic = synthetic_default_name(file_name, mangler)
        keyword = _first_child(target, "class")
        if keyword is None:
            raise UnsupportedSyntaxForm(tree.source(statement), tree.file_name)
        edits = [
            Remove(_prefix(tree, statement, target)),
            AppendBefore(SyntaxRange(tree.end(keyword), tree.end(keyword)), " " + synthetic),
        ]
        return [(ExportBinding(synthetic, "default", DEFAULT_CLASS, statement_range), edits)]

    if kind == "identifier":
        binding = ExportBinding(tree.source(target), "default", NAMED_DEFAULT_FUNCTION, statement_range)
        return [(binding, [Remove(statement_range)])]

    raise UnsupportedSyntaxForm(f"export default {kind}", tree.file_name)


def discover(tree: SourceTree, file_name: str, mangler: Mangler) -> Discovery:
    """Classify every top-level export and the edits that strip it.

    Raises :class:`UnsupportedSyntaxForm` for wildcard re-exports, default
    exports of arbitrary expressions and destructured declarations.
    """

    found: Discovery = []
    for statement in tree.statements():
        if statement.type != "export_statement":
            continue
        if _has_token(statement, "*") or _first_child(statement, "namespace_export") is not None:
            raise UnsupportedSyntaxForm(tree.source(statement).strip().rstrip(";"), file_name)
        if _has_token(statement, "default"):
            found.extend(_discover_default(tree, statement, file_name, mangler))
            continue
        clause = _first_child(statement, "export_clause")
        if clause is not None:
            found.extend(_discover_clause(tree, statement, clause, mangler))
            continue
        declaration = statement.child_by_field_name("declaration")
        if declaration is None:
            raise UnsupportedSyntaxForm(tree.source(statement), file_name)
        found.extend(_discover_declaration(tree, statement, declaration))
    return found


def pre(unit: "Unit") -> List[Edit]:
    if not unit.options.is_esm:
        return []
    tree = unit.parse()
    edits: List[Edit] = []
    references: List[Edit] = []
    for binding, binding_edits in discover(tree, unit.file_name, unit.mangler):
        edits.extend(binding_edits)
        if binding is None:
            continue
        unit.exports.add(binding)
        references.append(Append(f"\nwindow['{binding.exported_name}'] = {binding.surface};"))
    LOG.debug("discovered %d exports in %s", len(unit.exports), unit.file_name)
    return edits + references


def extern(unit: "Unit") -> Optional[str]:
    if not unit.options.is_esm or not len(unit.exports):
        return None
    lines: List[str] = []
    for binding in unit.exports:
        if binding.is_reexport:
            lines.append(f"function {binding.surface}(){{}};")
        elif IDENTIFIER.match(binding.exported_name):
            lines.append(f"window.{binding.exported_name};")
    if not lines:
        return None
    return HEADER + "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Restoration


def _window_target(tree: SourceTree, expression: Node) -> Optional[Tuple[str, Node]]:
    if expression.type != "assignment_expression":
        return None
    left = expression.child_by_field_name("left")
    right = expression.child_by_field_name("right")
    if left is None or right is None:
        return None
    obj = left.child_by_field_name("object")
    if obj is None or obj.type != "identifier" or tree.source(obj) != "window":
        return None
    if left.type == "member_expression":
        prop = left.child_by_field_name("property")
        if prop is not None and prop.type == "property_identifier":
            return tree.source(prop), right
    elif left.type == "subscript_expression":
        exported = string_value(tree, left.child_by_field_name("index"))
        if exported is not None:
            return exported, right
    return None


def _sequence(expression: Node) -> List[Node]:
    parts: List[Node] = []
    for child in expression.named_children:
        if child.type == "sequence_expression":
            parts.extend(_sequence(child))
        else:
            parts.append(child)
    return parts


def _top_level_declarations(tree: SourceTree, statements: List[Node]) -> Dict[str, Tuple[Node, bool]]:
    declared: Dict[str, Tuple[Node, bool]] = {}
    for statement in statements:
        kind = statement.type
        if kind in FUNCTION_DECLARATIONS or kind == "class_declaration":
            name = statement.child_by_field_name("name")
            if name is not None:
                declared.setdefault(tree.source(name), (statement, True))
        elif kind in _VARIABLES:
            declarators = [c for c in statement.named_children if c.type == "variable_declarator"]
            for declarator in declarators:
                name = declarator.child_by_field_name("name")
                if name is not None and name.type == "identifier":
                    declared.setdefault(tree.source(name), (statement, len(declarators) == 1))
    return declared


def _quote(origin: str) -> str:
    return f'"{origin}"' if "'" in origin else f"'{origin}'"


class _Restorer:
    def __init__(self, unit: "Unit", tree: SourceTree) -> None:
        self.unit = unit
        self.tree = tree
        self.edits: List[Edit] = []
        self.aggregate: List[str] = []
        self.reexports: Dict[str, List[str]] = {}
        self.declarations = _top_level_declarations(tree, tree.statements())
        self.exported_declarations: Set[str] = set()
        self._taken: Optional[Set[str]] = None

    def _fresh_name(self) -> str:
        if self._taken is None:
            self._taken = {
                self.tree.source(node) for node in walk(self.tree.root) if node.type == "identifier"
            }
        index = 0
        while f"{FRESH_PREFIX}{index}" in self._taken:
            index += 1
        name = f"{FRESH_PREFIX}{index}"
        self._taken.add(name)
        return name

    def _drop_semicolon(self, statement: Node) -> None:
        end = self.tree.end(statement)
        if self.unit.code[end - 1] == ";":
            self.edits.append(Remove(SyntaxRange(end - 1, end)))

    def alias(self, binding: ExportBinding, right: Node) -> None:
        tree = self.tree
        name = tree.source(right)
        if binding.is_reexport and name == binding.surface:
            specifier = binding.local_name
            if binding.exported_name != specifier:
                specifier = f"{specifier} as {binding.exported_name}"
            self.reexports.setdefault(binding.origin_module, []).append(specifier)
            return
        declared = self.declarations.get(name)
        if (
            declared is not None
            and declared[1]
            and not binding.is_default
            and name == binding.exported_name
            and name not in self.exported_declarations
        ):
            self.exported_declarations.add(name)
            declaration = declared[0]
            self.edits.append(AppendBefore(tree.range(declaration), "export "))
            return
        if name == binding.exported_name:
            self.aggregate.append(name)
        else:
            self.aggregate.append(f"{name} as {binding.exported_name}")

    def restore(self, binding: ExportBinding, statement: Node, right: Node) -> None:
        tree = self.tree
        exported = binding.exported_name
        kind = right.type
        prefix = SyntaxRange(tree.start(statement), tree.start(right))
        if kind == "identifier":
            self.edits.append(Remove(tree.range(statement)))
            self.alias(binding, right)
            return
        anonymous = right.child_by_field_name("name") is None
        if kind in FUNCTION_EXPRESSIONS and anonymous and binding.closure_kind in FUNCTION_KINDS:
            if binding.is_default:
                self.edits.append(Overwrite(prefix, "export default "))
            else:
                params = right.child_by_field_name("parameters")
                self.edits.append(Overwrite(prefix, "export "))
                if params is not None:
                    self.edits.append(AppendBefore(tree.range(params), " " + exported))
            self._drop_semicolon(statement)
            return
        if kind in CLASS_EXPRESSIONS and anonymous and binding.closure_kind in CLASS_KINDS:
            if binding.is_default:
                self.edits.append(Overwrite(prefix, "export default "))
            else:
                keyword = _first_child(right, "class")
                self.edits.append(Overwrite(prefix, "export "))
                if keyword is not None:
                    at = tree.end(keyword)
                    self.edits.append(AppendBefore(SyntaxRange(at, at), " " + exported))
            self._drop_semicolon(statement)
            return
        if binding.is_default:
            self.edits.append(Overwrite(prefix, "export default "))
        elif is_binding_name(exported):
            self.edits.append(Overwrite(prefix, f"export var {exported}="))
        else:
            local = self._fresh_name()
            self.edits.append(Overwrite(prefix, f"var {local}="))
            self.aggregate.append(f"{local} as {exported}")

    def finish(self) -> List[Edit]:
        edits = list(self.edits)
        if self.reexports:
            header = "".join(
                f"export{{{','.join(specifiers)}}}from{_quote(origin)};"
                for origin, specifiers in self.reexports.items()
            )
            edits.append(AppendBefore(SyntaxRange(0, 0), header))
        if self.aggregate:
            lead = "" if self.unit.code.endswith("\n") or not self.unit.code else "\n"
            edits.append(Append(f"{lead}export{{{','.join(self.aggregate)}}};"))
        return edits


def post(unit: "Unit") -> List[Edit]:
    if not unit.options.is_esm or not len(unit.exports):
        return []
    tree = unit.parse()
    restorer = _Restorer(unit, tree)
    matched: Set[str] = set()

    for statement in tree.statements():
        if statement.type != "expression_statement" or statement.named_child_count != 1:
            continue
        expression = statement.named_children[0]
        if expression.type == "sequence_expression":
            parts = [_window_target(tree, part) for part in _sequence(expression)]
            if not parts or any(part is None for part in parts):
                continue
            bindings = [unit.exports.get(exported) for exported, _ in parts]
            if any(b is None for b in bindings) or any(p[1].type != "identifier" for p in parts):
                continue
            restorer.edits.append(Remove(tree.range(statement)))
            for binding, (exported, right) in zip(bindings, parts):
                matched.add(exported)
                restorer.alias(binding, right)
            continue
        target = _window_target(tree, expression)
        if target is None:
            continue
        exported, right = target
        binding = unit.exports.get(exported)
        if binding is None or exported in matched:
            continue
        matched.add(exported)
        restorer.restore(binding, statement, right)

    for binding in unit.exports:
        if binding.exported_name not in matched:
            unit.anomaly(
                "RestorationAnomaly",
                f"export {binding.exported_name} of {unit.file_name} was not found after optimization",
            )
    return restorer.finish()


STAGE = Stage("exports", extern=extern, pre=pre, post=post)

__all__ = [
    "HEADER",
    "IDENTIFIER",
    "RESERVED_WORDS",
    "STAGE",
    "discover",
    "extern",
    "is_binding_name",
    "post",
    "pre",
    "synthetic_default_name",
]
