"""Syntax ranges and the edit primitives stages use to rewrite a buffer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .exceptions import EditRangeError
from .sourcemap import DecodedMap, LineIndex, MappingLines, is_token_boundary


@dataclass(frozen=True)
class SyntaxRange:
    """Half-open ``[start, end)`` character offsets into one buffer snapshot."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.start > self.end:
            raise EditRangeError(f"invalid range [{self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class Remove:
    range: SyntaxRange


@dataclass(frozen=True)
class Overwrite:
    range: SyntaxRange
    content: str


@dataclass(frozen=True)
class Append:
    content: str


@dataclass(frozen=True)
class AppendBefore:
    range: SyntaxRange
    content: str


Edit = Union[Remove, Overwrite, Append, AppendBefore]


class _Writer:
    """Accumulates output text together with its boundary-resolution mappings."""

    def __init__(self, buffer: str) -> None:
        self.buffer = buffer
        self.index = LineIndex(buffer)
        self.parts: List[str] = []
        self.lines: MappingLines = [[]]
        self.line = 0
        self.column = 0

    def _advance(self, text: str) -> None:
        for char in text:
            if char == "\n":
                self.line += 1
                self.column = 0
                self.lines.append([])
            else:
                self.column += 1

    def copy(self, start: int, end: int) -> None:
        if start >= end:
            return
        buffer = self.buffer
        for offset in range(start, end):
            char = buffer[offset]
            if offset == start or is_token_boundary(buffer, offset):
                if not char.isspace() or offset == start:
                    source_line, source_column = self.index.position(offset)
                    self.lines[self.line].append(
                        (self.column, 0, source_line, source_column)
                    )
            if char == "\n":
                self.line += 1
                self.column = 0
                self.lines.append([])
            else:
                self.column += 1
        self.parts.append(buffer[start:end])

    def insert(self, content: str, origin: Optional[int] = None) -> None:
        if not content:
            return
        if origin is None:
            self.lines[self.line].append((self.column,))
        else:
            source_line, source_column = self.index.position(origin)
            self.lines[self.line].append((self.column, 0, source_line, source_column))
        self.parts.append(content)
        self._advance(content)

    def text(self) -> str:
        return "".join(self.parts)


def _check_range(edit_range: SyntaxRange, length: int) -> None:
    if edit_range.end > length:
        raise EditRangeError(
            f"range [{edit_range.start}, {edit_range.end}) exceeds buffer of {length} characters"
        )


def apply_edits(
    edits: Iterable[Edit],
    buffer: str,
    source: Optional[str] = None,
) -> Tuple[str, DecodedMap]:
    """Apply ``edits`` to ``buffer`` and return the new text and its map fragment.

    Every range refers to ``buffer`` as given.  Insertions at the same position
    keep the order in which they were supplied.  Overwritten content maps to
    the start of the range it replaces; other inserted text is unmapped.
    """

    length = len(buffer)
    cuts: List[Tuple[int, int, int, Optional[str]]] = []
    inserts: Dict[int, List[str]] = {}
    tail: List[str] = []

    for order, edit in enumerate(edits):
        if isinstance(edit, Append):
            tail.append(edit.content)
        elif isinstance(edit, AppendBefore):
            _check_range(edit.range, length)
            inserts.setdefault(edit.range.start, []).append(edit.content)
        elif isinstance(edit, Remove):
            _check_range(edit.range, length)
            if len(edit.range):
                cuts.append((edit.range.start, edit.range.end, order, None))
        elif isinstance(edit, Overwrite):
            _check_range(edit.range, length)
            if len(edit.range):
                cuts.append((edit.range.start, edit.range.end, order, edit.content))
            else:
                inserts.setdefault(edit.range.start, []).append(edit.content)
        else:
            raise TypeError(f"unknown edit {edit!r}")

    cuts.sort()
    writer = _Writer(buffer)
    points = sorted(inserts)
    point = 0
    cursor = 0

    def copy_to(target: int) -> None:
        nonlocal cursor, point
        while point < len(points) and points[point] <= target:
            position = points[point]
            if position < cursor:
                raise EditRangeError(
                    f"insertion at {position} falls inside a removed range"
                )
            writer.copy(cursor, position)
            cursor = position
            for content in inserts[position]:
                writer.insert(content)
            point += 1
        writer.copy(cursor, target)
        cursor = target

    for start, end, _, content in cuts:
        if start < cursor:
            raise EditRangeError(
                f"range [{start}, {end}) overlaps an earlier edit ending at {cursor}"
            )
        copy_to(start)
        if content:
            writer.insert(content, origin=start)
        cursor = end
    copy_to(length)
    for content in tail:
        writer.insert(content)

    fragment = DecodedMap(
        mappings=writer.lines,
        sources=[source],
        sources_content=[buffer],
        file=source,
    )
    return writer.text(), fragment


__all__ = [
    "Append",
    "AppendBefore",
    "Edit",
    "Overwrite",
    "Remove",
    "SyntaxRange",
    "apply_edits",
]
