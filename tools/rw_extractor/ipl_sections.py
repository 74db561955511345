"""Line classification for IPL placement lists.

An IPL file is a sequence of sections. Each section opens with a bare tag
line (``inst``, ``cull``, ``pick``, ``path``, ...) and closes with ``end``:

    # IPL generated from Max file downtown.max
    inst
    1860, doontoon03, 0, -445.4862671, 1280.132813, 42.78390503, 1, 1, 1, 0, 0, 0, 1
    end
    cull
    end

Nothing here knows what the fields mean.
"""
import re
from dataclasses import dataclass
from typing import Dict, List

from rw_errors import MalformedLine

SECTION_END = "end"
COMMENT_PREFIX = "#"

_TAG_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class IplLine:
    """One data line together with its 1-based position in the file."""

    number: int
    text: str


def categorise_lines(text: str) -> Dict[str, List[IplLine]]:
    """Group the data lines of an IPL file by section tag.

    Args:
        text: Full text of the placement list

    Returns:
        Mapping of lower-cased section tag to its data lines, in file order.
        Sections that appear more than once are merged.

    Raises:
        MalformedLine: If a section is still open at end of input
    """
    sections: Dict[str, List[IplLine]] = {}
    current = None
    opened_at = None

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(COMMENT_PREFIX):
            continue

        # Tag and terminator lines may carry a trailing comment
        word = line.split(COMMENT_PREFIX, 1)[0].strip().lower()

        if current is None:
            # Outside a section only tag lines matter
            if _TAG_PATTERN.match(word) and word != SECTION_END:
                current = sections.setdefault(word, [])
                opened_at = IplLine(number, line)
            continue

        if word == SECTION_END:
            current = None
            opened_at = None
            continue

        current.append(IplLine(number, line))

    if opened_at is not None:
        raise MalformedLine(opened_at.number, opened_at.text, "section is never closed with 'end'")

    return sections


def split_line(line: str) -> List[str]:
    """Split a data line into its comma separated, trimmed fields."""
    line = line.split(COMMENT_PREFIX, 1)[0]
    return [field.strip() for field in line.split(",")]
