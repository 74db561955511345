"""Parser for GTA IPL item placement lists.

Only the ``inst`` section is decoded. Each instance line has 13 fields:

    id, model_name, interior, px, py, pz, sx, sy, sz, rx, ry, rz, rw

The game stores positions and scales Z-up; records are converted to Y-up:
position ``(a, b, c)`` becomes ``(a, c, -b)`` and scale ``(a, b, c)``
becomes ``(a, c, b)``. The quaternion is passed through as read.
"""
import logging
import math
import re
import struct
from typing import List, Sequence, Union

from ipl_sections import IplLine, categorise_lines, split_line
from rw_errors import MalformedLine, MissingRequiredSection
from rw_types import PlacementList, PlacementRecord, Quat, Vec3

logger = logging.getLogger(__name__)

INSTANCE_SECTION = "inst"
INSTANCE_FIELD_COUNT = 13
MAX_INTERIOR_ID = 0xFFFFFFFF

_FLOAT32 = struct.Struct("<f")
_INTEGER_PATTERN = re.compile(r"^[+-]?[0-9]+\Z")


def to_float32(value: float) -> float:
    """Round a Python float to the nearest IEEE-754 single precision value."""
    return _FLOAT32.unpack(_FLOAT32.pack(value))[0]


def convert_position(a: float, b: float, c: float) -> Vec3:
    """Convert a Z-up position to the Y-up target space."""
    return (a, c, -b)


def convert_scale(a: float, b: float, c: float) -> Vec3:
    """Convert a Z-up scale to the Y-up target space (no sign flip)."""
    return (a, c, b)


def _parse_float(line: IplLine, value: str) -> float:
    try:
        number = to_float32(float(value))
    except (ValueError, OverflowError):
        raise MalformedLine(line.number, line.text, f"invalid number {value!r}") from None
    if not math.isfinite(number):
        raise MalformedLine(line.number, line.text, f"non-finite number {value!r}")
    return number


def _parse_int(line: IplLine, value: str) -> int:
    # ASCII digits with an optional sign only
    if not _INTEGER_PATTERN.match(value):
        raise MalformedLine(line.number, line.text, f"invalid integer {value!r}")
    return int(value)


def parse_instance(line: IplLine) -> PlacementRecord:
    """Decode one ``inst`` data line.

    Args:
        line: Data line from the instance section

    Returns:
        PlacementRecord in target coordinate space

    Raises:
        MalformedLine: On too few fields or a field that is not a number
    """
    fields = split_line(line.text)
    if len(fields) < INSTANCE_FIELD_COUNT:
        raise MalformedLine(
            line.number,
            line.text,
            f"expected {INSTANCE_FIELD_COUNT} fields, got {len(fields)}",
        )

    _parse_int(line, fields[0])  # object id, validated but not kept
    model_name = fields[1]
    if not model_name:
        raise MalformedLine(line.number, line.text, "empty model name")

    interior_id = _parse_int(line, fields[2])
    if interior_id < 0:
        raise MalformedLine(line.number, line.text, f"negative interior id {interior_id}")
    if interior_id > MAX_INTERIOR_ID:
        raise MalformedLine(line.number, line.text, f"interior id {interior_id} out of range")

    px, py, pz = (_parse_float(line, v) for v in fields[3:6])
    sx, sy, sz = (_parse_float(line, v) for v in fields[6:9])
    rotation: Quat = tuple(_parse_float(line, v) for v in fields[9:13])

    return PlacementRecord(
        model_name=model_name,
        interior_id=interior_id,
        position=convert_position(px, py, pz),
        scale=convert_scale(sx, sy, sz),
        rotation=rotation,
    )


def parse_ipl(data: Union[str, bytes]) -> PlacementList:
    """Parse an IPL placement list.

    Args:
        data: File contents as text or raw bytes

    Returns:
        PlacementList with one record per ``inst`` line, in file order

    Raises:
        MissingRequiredSection: If the file has no ``inst`` section
        MalformedLine: If any instance line is malformed
    """
    if isinstance(data, (bytes, bytearray)):
        # IPL files are 8-bit text; latin-1 maps every byte
        data = bytes(data).decode("latin-1")

    sections = categorise_lines(data)
    lines: Sequence[IplLine] = sections.get(INSTANCE_SECTION)
    if lines is None:
        raise MissingRequiredSection(INSTANCE_SECTION)

    records: List[PlacementRecord] = [parse_instance(line) for line in lines]
    logger.debug("Parsed %d instances from %d sections", len(records), len(sections))

    return PlacementList(
        records,
        sections={tag: [line.text for line in body] for tag, body in sections.items()},
    )
