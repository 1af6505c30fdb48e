"""Tests for conflict marker detection and parsing."""

import pytest

from deconflict.markers import has_conflict_markers, parse


def test_has_markers_at_line_start():
    content = """intro
<<<<<<< notes.md
mine
=======
theirs
>>>>>>> notes.sync-conflict.md
"""
    assert has_conflict_markers(content)


def test_markers_inside_text_do_not_count():
    """Quoted markers in prose are not unresolved conflicts."""
    content = "Git writes `<<<<<<<` at the start of a conflict.\n"

    assert not has_conflict_markers(content)


def test_clean_file_has_no_markers():
    assert not has_conflict_markers("one\ntwo\n")
    assert not has_conflict_markers("")


def test_parse_simple_conflict():
    content = """line 1
<<<<<<< notes.md
our change
=======
their change
>>>>>>> notes.sync-conflict-20240501-120000-ABC1234.md
line 2
"""
    regions = parse(content)

    assert len(regions) == 1
    region = regions[0]
    assert region.ours_content == "our change"
    assert region.theirs_content == "their change"
    assert region.base_content is None
    assert region.ours_label == "notes.md"
    assert region.theirs_label == (
        "notes.sync-conflict-20240501-120000-ABC1234.md"
    )
    assert region.start_line == 2


def test_parse_diff3_format():
    content = """<<<<<<< ours
our change
||||||| base
original
=======
their change
>>>>>>> theirs
"""
    region, = parse(content)

    assert region.ours_content == "our change"
    assert region.base_content == "original"
    assert region.theirs_content == "their change"


def test_parse_multiple_conflicts():
    content = """<<<<<<< ours
one
=======
uno
>>>>>>> theirs
middle
<<<<<<< ours
two
=======
dos
>>>>>>> theirs
"""
    regions = parse(content)

    assert [r.ours_content for r in regions] == ["one", "two"]
    assert [r.theirs_content for r in regions] == ["uno", "dos"]
    assert regions[1].start_line == 7


def test_parse_multiline_sides():
    content = """<<<<<<< ours
a
b
=======
c
>>>>>>> theirs
"""
    region, = parse(content)

    assert region.ours_content == "a\nb"
    assert region.theirs_content == "c"


def test_parse_no_conflicts():
    assert parse("nothing to see\n") == []


def test_parse_missing_separator():
    with pytest.raises(ValueError, match="no separator found"):
        parse("<<<<<<< ours\nmine\n>>>>>>> theirs\n")


def test_parse_missing_end_marker():
    with pytest.raises(ValueError, match="no end marker found"):
        parse("<<<<<<< ours\nmine\n=======\ntheirs\n")
