import pytest

from closure_bridge.edits import Append, AppendBefore, Overwrite, Remove, SyntaxRange, apply_edits
from closure_bridge.exceptions import EditRangeError


def test_syntax_range_rejects_inverted_bounds():
    with pytest.raises(EditRangeError):
        SyntaxRange(5, 2)


def test_remove_overwrite_and_append():
    code, _ = apply_edits(
        [
            Remove(SyntaxRange(0, 7)),
            Overwrite(SyntaxRange(20, 25), "let"),
            Append("\ntail();"),
        ],
        "export function f(){const x=1}",
    )
    assert code == "function f(){let x=1}\ntail();"


def test_insertions_at_same_position_keep_given_order():
    code, _ = apply_edits(
        [
            AppendBefore(SyntaxRange(0, 0), "a"),
            AppendBefore(SyntaxRange(0, 0), "b"),
            AppendBefore(SyntaxRange(3, 3), "!"),
        ],
        "xyz",
    )
    assert code == "abxyz!"


def test_insertion_at_start_of_removed_range_precedes_replacement():
    code, _ = apply_edits(
        [Overwrite(SyntaxRange(0, 3), "new"), AppendBefore(SyntaxRange(0, 0), "> ")],
        "old value",
    )
    assert code == "> new value"


def test_overlapping_edits_are_rejected():
    with pytest.raises(EditRangeError):
        apply_edits([Remove(SyntaxRange(0, 4)), Remove(SyntaxRange(2, 6))], "abcdefgh")


def test_out_of_bounds_edit_is_rejected():
    with pytest.raises(EditRangeError):
        apply_edits([Remove(SyntaxRange(2, 40))], "short")


def test_insertion_inside_removed_range_is_rejected():
    with pytest.raises(EditRangeError):
        apply_edits([Remove(SyntaxRange(0, 4)), AppendBefore(SyntaxRange(2, 2), "x")], "abcdef")


def test_fragment_maps_copied_tokens_to_input_positions():
    source = "export const a = 1;\nfoo(a);\n"
    code, fragment = apply_edits([Remove(SyntaxRange(0, 7))], source, "chunk.js")
    assert code == "const a = 1;\nfoo(a);\n"
    # "foo" on the second line is untouched
    assert fragment.lookup(1, 0) == (0, 0, 1, 0)
    # "a" on the first line moved left by seven columns
    assert fragment.lookup(0, 6) == (6, 0, 0, 13)
    assert fragment.sources == ["chunk.js"]
    assert fragment.sources_content == [source]


def test_inserted_text_is_unmapped():
    code, fragment = apply_edits([Append("\nwindow['a'] = a;")], "let a;", "chunk.js")
    assert code == "let a;\nwindow['a'] = a;"
    assert fragment.lookup(1, 3) is None
    assert fragment.lookup(0, 6) == (6,)
