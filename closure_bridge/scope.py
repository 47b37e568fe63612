"""Lexical scope analysis used to find free references to module-level names."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Set, Tuple

from tree_sitter import Node

from .parsing import FUNCTION_EXPRESSIONS, SourceTree

FUNCTION_SCOPES = frozenset(
    {
        "function_declaration",
        "generator_function_declaration",
        "function",
        "function_expression",
        "generator_function",
        "arrow_function",
        "method_definition",
    }
)
_BLOCKS = frozenset({"statement_block", "switch_body", "class_static_block"})


@dataclass(frozen=True)
class Reference:
    """An identifier occurrence that resolves to a module-level binding."""

    node: Node
    name: str
    shorthand: bool = False


def _text(node: Node) -> str:
    return node.text.decode("utf-8")


def pattern_names(node: Optional[Node]) -> List[str]:
    """Names bound by a binding pattern (identifier or destructuring)."""

    if node is None:
        return []
    kind = node.type
    if kind in ("identifier", "shorthand_property_identifier_pattern"):
        return [_text(node)]
    if kind == "pair_pattern":
        return pattern_names(node.child_by_field_name("value"))
    if kind in ("assignment_pattern", "object_assignment_pattern"):
        return pattern_names(node.child_by_field_name("left"))
    if kind in ("object_pattern", "array_pattern", "rest_pattern"):
        names: List[str] = []
        for child in node.named_children:
            names.extend(pattern_names(child))
        return names
    return []


def declarator_names(declaration: Node) -> List[str]:
    names: List[str] = []
    for child in declaration.named_children:
        if child.type == "variable_declarator":
            names.extend(pattern_names(child.child_by_field_name("name")))
    return names


def _statements(block: Node) -> Iterable[Node]:
    for child in block.named_children:
        if child.type in ("switch_case", "switch_default"):
            yield from child.named_children
        else:
            yield child


def block_declarations(block: Node) -> Set[str]:
    """Block-scoped names: ``let``/``const``, classes and function declarations."""

    names: Set[str] = set()
    for statement in _statements(block):
        kind = statement.type
        if kind == "lexical_declaration":
            names.update(declarator_names(statement))
        elif kind in ("class_declaration", "function_declaration", "generator_function_declaration"):
            name = statement.child_by_field_name("name")
            if name is not None:
                names.add(_text(name))
    return names


def hoisted_vars(body: Optional[Node]) -> Set[str]:
    """``var`` names declared anywhere in ``body`` outside nested functions."""

    names: Set[str] = set()
    if body is None:
        return names
    stack = list(body.named_children)
    while stack:
        node = stack.pop()
        kind = node.type
        if kind in FUNCTION_SCOPES or kind in ("class", "class_declaration"):
            continue
        if kind == "variable_declaration":
            names.update(declarator_names(node))
        elif kind == "for_in_statement":
            keyword = node.child_by_field_name("kind")
            if keyword is not None and _text(keyword) == "var":
                names.update(pattern_names(node.child_by_field_name("left")))
        stack.extend(node.named_children)
    return names


def _parameter_names(node: Node) -> List[str]:
    single = node.child_by_field_name("parameter")
    if single is not None:
        return pattern_names(single)
    params = node.child_by_field_name("parameters")
    names: List[str] = []
    if params is not None:
        for child in params.named_children:
            names.extend(pattern_names(child))
    return names


def scope_declarations(node: Node) -> Set[str]:
    """Names that ``node`` introduces into a new scope for its descendants."""

    kind = node.type
    if kind in FUNCTION_SCOPES:
        names = set(_parameter_names(node))
        body = node.child_by_field_name("body")
        if body is not None and body.type == "statement_block":
            names |= hoisted_vars(body)
        if kind in FUNCTION_EXPRESSIONS:
            name = node.child_by_field_name("name")
            if name is not None:
                names.add(_text(name))
        return names
    if kind in _BLOCKS:
        return block_declarations(node)
    if kind == "for_statement":
        names = set()
        for child in node.named_children:
            if child.type == "lexical_declaration":
                names.update(declarator_names(child))
        return names
    if kind == "for_in_statement":
        keyword = node.child_by_field_name("kind")
        if keyword is not None and _text(keyword) in ("let", "const"):
            return set(pattern_names(node.child_by_field_name("left")))
        return set()
    if kind == "catch_clause":
        return set(pattern_names(node.child_by_field_name("parameter")))
    if kind == "class":
        name = node.child_by_field_name("name")
        return {_text(name)} if name is not None else set()
    return set()


def free_references(
    tree: SourceTree,
    names: Iterable[str],
    skip: Tuple[str, ...] = ("import_statement",),
) -> List[Reference]:
    """Return every unshadowed reference to one of ``names``, in source order."""

    tracked: FrozenSet[str] = frozenset(names)
    if not tracked:
        return []
    found: List[Reference] = []
    stack: List[Tuple[Node, FrozenSet[str]]] = [(tree.root, frozenset())]
    while stack:
        node, shadowed = stack.pop()
        kind = node.type
        if kind in skip:
            continue
        if kind in ("identifier", "shorthand_property_identifier"):
            name = _text(node)
            if name in tracked and name not in shadowed:
                found.append(Reference(node, name, kind == "shorthand_property_identifier"))
            continue
        local = scope_declarations(node) & tracked
        if local:
            shadowed = shadowed | local
        for child in reversed(node.children):
            stack.append((child, shadowed))
    found.sort(key=lambda ref: ref.node.start_byte)
    return found


__all__ = [
    "FUNCTION_SCOPES",
    "Reference",
    "block_declarations",
    "declarator_names",
    "free_references",
    "hoisted_vars",
    "pattern_names",
    "scope_declarations",
]
