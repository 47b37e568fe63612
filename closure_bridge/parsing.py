"""Thin facade over tree-sitter for the JavaScript buffers stages inspect."""

from __future__ import annotations

import logging
import threading
from typing import Iterator, List, Optional

from tree_sitter import Language, Node, Parser
from tree_sitter_language_pack import get_language

from .edits import SyntaxRange
from .exceptions import ParseError

LOG = logging.getLogger(__name__)

JAVASCRIPT: Language = get_language("javascript")

FUNCTION_EXPRESSIONS = frozenset({"function", "function_expression", "generator_function"})
FUNCTION_DECLARATIONS = frozenset({"function_declaration", "generator_function_declaration"})
CLASS_EXPRESSIONS = frozenset({"class"})

_local = threading.local()


def _parser() -> Parser:
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = Parser()
        parser.language = JAVASCRIPT
        _local.parser = parser
    return parser


class SourceTree:
    """A parsed buffer with helpers speaking character offsets.

    tree-sitter reports UTF-8 byte offsets; every range handed to stages is
    converted so that it indexes the Python string directly.
    """

    def __init__(self, text: str, file_name: str = "<input>") -> None:
        self.text = text
        self.file_name = file_name
        encoded = text.encode("utf-8")
        self._ascii = len(encoded) == len(text)
        self._char_of_byte: Optional[List[int]] = None
        if not self._ascii:
            table: List[int] = []
            for index, char in enumerate(text):
                table.extend([index] * len(char.encode("utf-8")))
            table.append(len(text))
            self._char_of_byte = table
        self.tree = _parser().parse(encoded)

    @property
    def root(self) -> Node:
        return self.tree.root_node

    def offset(self, byte_offset: int) -> int:
        if self._char_of_byte is None:
            return byte_offset
        return self._char_of_byte[byte_offset]

    def start(self, node: Node) -> int:
        return self.offset(node.start_byte)

    def end(self, node: Node) -> int:
        return self.offset(node.end_byte)

    def range(self, node: Node) -> SyntaxRange:
        return SyntaxRange(self.start(node), self.end(node))

    def source(self, node: Node) -> str:
        return self.text[self.start(node):self.end(node)]

    def statements(self) -> List[Node]:
        """Top-level statements, comments and the hashbang line excluded."""

        return [
            child
            for child in self.root.named_children
            if child.type not in ("comment", "hash_bang_line")
        ]

    def first_error(self) -> Optional[Node]:
        for node in walk(self.root):
            if node.type == "ERROR" or node.is_missing:
                return node
        return None


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and its descendants in source order."""

    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def string_value(tree: SourceTree, node: Optional[Node]) -> Optional[str]:
    """Return the contents of a string literal node, quotes stripped."""

    if node is None or node.type != "string":
        return None
    raw = tree.source(node)
    return raw[1:-1]


def parse(text: str, file_name: str = "<input>", strict: bool = True) -> SourceTree:
    """Parse ``text``; raise :class:`ParseError` on syntax errors when ``strict``."""

    tree = SourceTree(text, file_name)
    if tree.root.has_error:
        error = tree.first_error()
        offset = tree.start(error) if error is not None else None
        if strict:
            raise ParseError(file_name, offset)
        LOG.debug("tolerating syntax error in %s near offset %s", file_name, offset)
    return tree


__all__ = [
    "CLASS_EXPRESSIONS",
    "FUNCTION_DECLARATIONS",
    "FUNCTION_EXPRESSIONS",
    "JAVASCRIPT",
    "SourceTree",
    "parse",
    "string_value",
    "walk",
]
