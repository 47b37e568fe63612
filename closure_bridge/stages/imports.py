"""Preserve external imports and dynamic ``import()`` calls.

The optimizer rejects import declarations, so external ones are lifted out
verbatim before optimization.  The names they bind are mangled to globally
unique identifiers declared in an extern so they survive renaming, and are
restored once the declarations are put back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from tree_sitter import Node

from ..edits import AppendBefore, Edit, Overwrite, Remove, SyntaxRange
from ..parsing import SourceTree, string_value, walk
from ..scope import free_references
from .base import Stage, extern_header

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from ..pipeline import Unit

LOG = logging.getLogger(__name__)

HEADER = extern_header("the external import names, to prevent compilation failures")
DYNAMIC_IMPORT_KEYWORD = "import"
DYNAMIC_IMPORT_ORIGIN = "<dynamic-import>"

DYNAMIC_IMPORT_EXTERN = """
/**
 * @param {{string}} path
 * @return {{!Promise<?>}}
 */
function {name}(path) {{ return Promise.resolve(path) }};
window['{name}'] = {name};"""


def import_local_names(tree: SourceTree, statement: Node) -> List[str]:
    """Names an import declaration binds in module scope."""

    names: List[str] = []
    for clause in statement.named_children:
        if clause.type != "import_clause":
            continue
        for child in clause.named_children:
            if child.type == "identifier":
                names.append(tree.source(child))
            elif child.type == "namespace_import":
                names.extend(
                    tree.source(inner) for inner in child.named_children if inner.type == "identifier"
                )
            elif child.type == "named_imports":
                for specifier in child.named_children:
                    if specifier.type != "import_specifier":
                        continue
                    local = specifier.child_by_field_name("alias") or specifier.child_by_field_name("name")
                    if local is not None:
                        names.append(tree.source(local))
    return names


def dynamic_import_name(unit: "Unit") -> str:
    mangler = unit.mangler
    return mangler.mangle(DYNAMIC_IMPORT_KEYWORD, mangler.origin_id(DYNAMIC_IMPORT_ORIGIN))


def pre(unit: "Unit") -> List[Edit]:
    tree = unit.parse()
    memory = unit.memory
    edits: List[Edit] = []
    mangled: Dict[str, str] = {}

    for statement in tree.statements():
        if statement.type != "import_statement":
            continue
        origin = string_value(tree, statement.child_by_field_name("source"))
        if origin is None or not unit.options.is_external(origin):
            continue
        memory.import_texts.setdefault(origin, []).append(tree.source(statement))
        edits.append(Remove(tree.range(statement)))
        origin_id = unit.mangler.origin_id(origin)
        for local in import_local_names(tree, statement):
            mangled[local] = unit.mangler.mangle(local, origin_id)
            if mangled[local] not in memory.import_names:
                memory.import_names.append(mangled[local])

    for reference in free_references(tree, mangled):
        replacement = mangled[reference.name]
        if reference.shorthand:
            replacement = f"{reference.name}: {replacement}"
        edits.append(Overwrite(tree.range(reference.node), replacement))

    for node in walk(tree.root):
        if node.type != "call_expression":
            continue
        callee = node.child_by_field_name("function")
        if callee is None or callee.type != DYNAMIC_IMPORT_KEYWORD:
            continue
        if memory.dynamic_import_name is None:
            memory.dynamic_import_name = dynamic_import_name(unit)
        memory.dynamic_import_present = True
        edits.append(Overwrite(tree.range(callee), memory.dynamic_import_name))

    if memory.import_texts:
        LOG.debug(
            "lifted imports of %s from %s", ", ".join(memory.import_texts), unit.file_name
        )
    return edits


def extern(unit: "Unit") -> Optional[str]:
    memory = unit.memory
    text = HEADER
    for name in memory.import_names:
        text += f"function {name}(){{}};\n"
    if memory.dynamic_import_present and memory.dynamic_import_name:
        text += DYNAMIC_IMPORT_EXTERN.format(name=memory.dynamic_import_name)
    return None if text == HEADER else text


def post(unit: "Unit") -> List[Edit]:
    memory = unit.memory
    if not memory.import_texts and not memory.dynamic_import_present:
        return []
    tree = unit.parse()
    edits: List[Edit] = []
    restorable = set(memory.import_names)

    for node in walk(tree.root):
        if node.type not in ("identifier", "shorthand_property_identifier"):
            continue
        name = tree.source(node)
        if name == memory.dynamic_import_name:
            edits.append(Overwrite(tree.range(node), DYNAMIC_IMPORT_KEYWORD))
            continue
        if name not in restorable:
            continue
        original = unit.mangler.resolve(name)
        if original is None:
            continue
        if node.type == "shorthand_property_identifier":
            edits.append(Overwrite(tree.range(node), f"{name}:{original}"))
        else:
            edits.append(Overwrite(tree.range(node), original))

    if memory.import_texts:
        block = "".join(
            "".join(text + "\n" for text in texts) for texts in memory.import_texts.values()
        )
        edits.append(AppendBefore(SyntaxRange(0, 0), block))
    return edits


STAGE = Stage("imports", extern=extern, pre=pre, post=post)

__all__ = [
    "DYNAMIC_IMPORT_KEYWORD",
    "DYNAMIC_IMPORT_ORIGIN",
    "HEADER",
    "STAGE",
    "dynamic_import_name",
    "extern",
    "import_local_names",
    "post",
    "pre",
]
