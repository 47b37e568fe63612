"""Decoded source maps, the VLQ codec, and chaining of per-stage map fragments.

Every stage that edits the buffer produces a :class:`DecodedMap` relating its
output to its input.  The optimizer contributes its own map.  :func:`recompose`
folds the whole chain into a single map from the original chunk to the final
output by tracing each generated segment of the newest map back through every
earlier map.

Segments follow the source map v3 layout, one list per generated line:

* ``(generated_column,)`` for an explicitly unmapped position;
* ``(generated_column, source_index, original_line, original_column)``;
* the same with a trailing ``name_index``.
"""

from __future__ import annotations

import json
from bisect import bisect_right
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

Segment = Tuple[int, ...]
MappingLines = List[List[Segment]]

_BASE64 = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_BASE64_VALUES = {char: index for index, char in enumerate(_BASE64)}
_VLQ_SHIFT = 5
_VLQ_CONTINUATION = 1 << _VLQ_SHIFT
_VLQ_MASK = _VLQ_CONTINUATION - 1


class LineIndex:
    """Translate between character offsets and zero-based line/column pairs."""

    def __init__(self, text: str) -> None:
        self._starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                self._starts.append(index + 1)
        self._length = len(text)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def position(self, offset: int) -> Tuple[int, int]:
        line = bisect_right(self._starts, offset) - 1
        return line, offset - self._starts[line]

    def offset(self, line: int, column: int) -> int:
        if line >= len(self._starts):
            return self._length
        return min(self._starts[line] + column, self._length)


# ---------------------------------------------------------------------------
# VLQ codec


def _encode_vlq(value: int) -> str:
    vlq = (-value << 1) | 1 if value < 0 else value << 1
    out: List[str] = []
    while True:
        digit = vlq & _VLQ_MASK
        vlq >>= _VLQ_SHIFT
        if vlq:
            digit |= _VLQ_CONTINUATION
        out.append(_BASE64[digit])
        if not vlq:
            return "".join(out)


def _decode_segment(text: str) -> Segment:
    values: List[int] = []
    shift = 0
    accumulated = 0
    for char in text:
        try:
            digit = _BASE64_VALUES[char]
        except KeyError as exc:
            raise ValueError(f"invalid base64 digit {char!r} in mappings") from exc
        accumulated += (digit & _VLQ_MASK) << shift
        if digit & _VLQ_CONTINUATION:
            shift += _VLQ_SHIFT
            continue
        negative = accumulated & 1
        accumulated >>= 1
        values.append(-accumulated if negative else accumulated)
        accumulated = 0
        shift = 0
    if shift:
        raise ValueError(f"truncated VLQ segment {text!r}")
    return tuple(values)


def encode_mappings(lines: MappingLines) -> str:
    """Encode decoded mapping lines into the v3 ``mappings`` string."""

    source = original_line = original_column = name = 0
    encoded_lines: List[str] = []
    for segments in lines:
        generated_column = 0
        parts: List[str] = []
        for segment in segments:
            piece = _encode_vlq(segment[0] - generated_column)
            generated_column = segment[0]
            if len(segment) >= 4:
                piece += _encode_vlq(segment[1] - source)
                piece += _encode_vlq(segment[2] - original_line)
                piece += _encode_vlq(segment[3] - original_column)
                source, original_line, original_column = segment[1], segment[2], segment[3]
                if len(segment) == 5:
                    piece += _encode_vlq(segment[4] - name)
                    name = segment[4]
            parts.append(piece)
        encoded_lines.append(",".join(parts))
    return ";".join(encoded_lines)


def decode_mappings(mappings: str) -> MappingLines:
    """Decode a v3 ``mappings`` string into absolute segments per line."""

    source = original_line = original_column = name = 0
    lines: MappingLines = []
    for raw_line in mappings.split(";"):
        generated_column = 0
        segments: List[Segment] = []
        for raw_segment in raw_line.split(","):
            if not raw_segment:
                continue
            fields = _decode_segment(raw_segment)
            if len(fields) not in (1, 4, 5):
                raise ValueError(f"segment with {len(fields)} fields in mappings")
            generated_column += fields[0]
            if len(fields) == 1:
                segments.append((generated_column,))
                continue
            source += fields[1]
            original_line += fields[2]
            original_column += fields[3]
            if len(fields) == 5:
                name += fields[4]
                segments.append((generated_column, source, original_line, original_column, name))
            else:
                segments.append((generated_column, source, original_line, original_column))
        segments.sort(key=lambda seg: seg[0])
        lines.append(segments)
    return lines


# ---------------------------------------------------------------------------
# Decoded maps


@dataclass
class DecodedMap:
    """A source map whose mappings are kept as absolute segment tuples."""

    mappings: MappingLines = field(default_factory=list)
    sources: List[Optional[str]] = field(default_factory=list)
    sources_content: List[Optional[str]] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    file: Optional[str] = None
    _columns: Dict[int, List[int]] = field(default_factory=dict, repr=False, compare=False)

    def lookup(self, line: int, column: int) -> Optional[Segment]:
        """Return the segment covering ``line``/``column`` or ``None``.

        The covering segment is the last one on ``line`` whose generated
        column is not greater than ``column``.
        """

        if line < 0 or line >= len(self.mappings):
            return None
        segments = self.mappings[line]
        if not segments:
            return None
        columns = self._columns.get(line)
        if columns is None:
            columns = [segment[0] for segment in segments]
            self._columns[line] = columns
        index = bisect_right(columns, column) - 1
        if index < 0:
            return None
        return segments[index]

    def segment_count(self) -> int:
        return sum(len(line) for line in self.mappings)

    def position_pairs(self) -> List[Tuple[Tuple[int, int], Optional[Tuple[int, int, int]]]]:
        """List every ``(generated, original)`` pair, ``None`` when unmapped."""

        pairs: List[Tuple[Tuple[int, int], Optional[Tuple[int, int, int]]]] = []
        for line, segments in enumerate(self.mappings):
            for segment in segments:
                original = None if len(segment) == 1 else (segment[1], segment[2], segment[3])
                pairs.append(((line, segment[0]), original))
        return pairs

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "version": 3,
            "sources": [source or "" for source in self.sources],
            "names": list(self.names),
            "mappings": encode_mappings(self.mappings),
        }
        if self.file is not None:
            data["file"] = self.file
        if any(content is not None for content in self.sources_content):
            data["sourcesContent"] = [content or "" for content in self.sources_content]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecodedMap":
        if data.get("version") not in (3, "3", None):
            raise ValueError(f"unsupported source map version {data.get('version')!r}")
        if "sections" in data:
            raise ValueError("indexed source maps are not supported")
        sources = list(data.get("sources") or [])
        root = data.get("sourceRoot") or ""
        if root:
            sources = [f"{root.rstrip('/')}/{source}" if source else source for source in sources]
        contents = list(data.get("sourcesContent") or [None] * len(sources))
        return cls(
            mappings=decode_mappings(data.get("mappings") or ""),
            sources=sources,
            sources_content=contents,
            names=list(data.get("names") or []),
            file=data.get("file"),
        )

    @classmethod
    def from_json(cls, payload: Union[str, Path]) -> "DecodedMap":
        if isinstance(payload, Path):
            payload = payload.read_text(encoding="utf-8")
        return cls.from_dict(json.loads(payload))


def is_token_boundary(text: str, index: int) -> bool:
    """Return ``True`` when ``text[index]`` starts a token worth mapping."""

    char = text[index]
    if char.isspace():
        return False
    if index == 0:
        return True
    previous = text[index - 1]
    if previous.isspace():
        return True
    word = char.isalnum() or char in "_$"
    if not word:
        return True
    return not (previous.isalnum() or previous in "_$")


def identity_map(code: str, source: Optional[str] = None) -> DecodedMap:
    """Build a boundary-resolution map relating ``code`` to itself."""

    lines: MappingLines = [[]]
    line = column = 0
    for index, char in enumerate(code):
        if is_token_boundary(code, index):
            lines[line].append((column, 0, line, column))
        if char == "\n":
            line += 1
            column = 0
            lines.append([])
        else:
            column += 1
    return DecodedMap(
        mappings=lines,
        sources=[source],
        sources_content=[code],
        file=source,
    )


def _trace(
    maps: Sequence[DecodedMap],
    index: int,
    segment: Segment,
    name: Optional[str],
) -> Optional[Tuple[int, int, int, Optional[str]]]:
    while True:
        if len(segment) == 1:
            return None
        current = maps[index]
        if len(segment) == 5 and segment[4] < len(current.names):
            name = current.names[segment[4]]
        if index == 0:
            return segment[1], segment[2], segment[3], name
        index -= 1
        found = maps[index].lookup(segment[2], segment[3])
        if found is None:
            return None
        segment = found


def recompose(maps: Sequence[DecodedMap]) -> DecodedMap:
    """Chain ``maps`` (oldest first) into one map from first input to last output.

    Untraceable segments of the newest map are kept as unmapped segments so
    that chaining stays associative: recomposing ``[f1, f2, f3]`` yields the
    same position pairs as recomposing ``[recompose([f1, f2]), f3]``.
    """

    if not maps:
        raise ValueError("recompose requires at least one map")
    if len(maps) == 1:
        only = maps[0]
        return DecodedMap(
            mappings=[list(line) for line in only.mappings],
            sources=list(only.sources),
            sources_content=list(only.sources_content),
            names=list(only.names),
            file=only.file,
        )

    newest = len(maps) - 1
    names: List[str] = []
    name_index: Dict[str, int] = {}
    lines: MappingLines = []
    for segments in maps[newest].mappings:
        traced_line: List[Segment] = []
        for segment in segments:
            traced = _trace(maps, newest, segment, None)
            if traced is None:
                traced_line.append((segment[0],))
                continue
            source, original_line, original_column, name = traced
            if name is None:
                traced_line.append((segment[0], source, original_line, original_column))
                continue
            if name not in name_index:
                name_index[name] = len(names)
                names.append(name)
            traced_line.append(
                (segment[0], source, original_line, original_column, name_index[name])
            )
        lines.append(traced_line)

    first = maps[0]
    return DecodedMap(
        mappings=lines,
        sources=list(first.sources),
        sources_content=list(first.sources_content),
        names=names,
        file=maps[newest].file,
    )


__all__ = [
    "DecodedMap",
    "LineIndex",
    "MappingLines",
    "Segment",
    "decode_mappings",
    "encode_mappings",
    "identity_map",
    "is_token_boundary",
    "recompose",
]
