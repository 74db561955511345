"""Tests for IPL line classification."""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ipl_sections import categorise_lines, split_line
from rw_errors import MalformedLine


SAMPLE = """# IPL generated from Max file downtown.max
inst
1860, doontoon03, 0, -445.4862671, 1280.132813, 42.78390503, 1, 1, 1, 0, 0, 0, 1
1861, doontoon04, 0, -303.8299866, 1394.506836, 6.610000134, 1, 1, 1, 0, 0, 0, 1
end
cull
end
pick
end
path
end
"""


def test_categorise_sections():
    """Should group data lines under their section tag."""
    sections = categorise_lines(SAMPLE)

    assert set(sections) == {"inst", "cull", "pick", "path"}
    assert len(sections["inst"]) == 2
    assert sections["cull"] == []
    assert sections["inst"][0].text.startswith("1860, doontoon03")


def test_categorise_keeps_line_numbers():
    """Data lines should remember where they came from."""
    sections = categorise_lines(SAMPLE)

    assert [line.number for line in sections["inst"]] == [3, 4]


def test_categorise_ignores_comments_and_blank_lines():
    text = "inst\n\n# a comment\n   \n1, a, 0, 0, 0, 0, 1, 1, 1, 0, 0, 0, 1\nend\n"
    sections = categorise_lines(text)

    assert len(sections["inst"]) == 1


def test_categorise_ignores_lines_outside_sections():
    text = "stray, data, line\ninst\nend\n"
    sections = categorise_lines(text)

    assert sections == {"inst": []}


def test_categorise_is_case_insensitive():
    sections = categorise_lines("INST\n1, a\nEND\n")

    assert "inst" in sections
    assert len(sections["inst"]) == 1


def test_categorise_keeps_unknown_sections():
    """Unknown tags are not an error and stay in the mapping."""
    sections = categorise_lines("zone\nsomething, 1, 2\nend\ninst\nend\n")

    assert sections["zone"][0].text == "something, 1, 2"


def test_categorise_merges_repeated_sections():
    sections = categorise_lines("inst\n1, a\nend\ninst\n2, b\nend\n")

    assert [line.text for line in sections["inst"]] == ["1, a", "2, b"]


def test_categorise_unclosed_section_raises():
    """A section still open at end of input is malformed."""
    with pytest.raises(MalformedLine) as excinfo:
        categorise_lines("cull\nend\ninst\n1, a, 0\n")

    assert excinfo.value.line_number == 3


def test_categorise_tolerates_crlf():
    sections = categorise_lines("inst\r\n1, a\r\nend\r\n")

    assert sections["inst"][0].text == "1, a"


def test_categorise_tag_and_end_with_trailing_comment():
    sections = categorise_lines("inst # instances\n1, a\nend # of inst\ncull\nend\n")

    assert [line.text for line in sections["inst"]] == ["1, a"]
    assert sections["cull"] == []


def test_split_line_trims_fields():
    fields = split_line("1860,  doontoon03 ,0,  -445.4862671")

    assert fields == ["1860", "doontoon03", "0", "-445.4862671"]


def test_split_line_preserves_empty_fields():
    assert split_line("a,,b") == ["a", "", "b"]


def test_split_line_drops_trailing_comment():
    assert split_line("1, a # note") == ["1", "a"]
