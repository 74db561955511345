"""Chunk reader for RenderWare binary streams (DFF, TXD, ...).

Every chunk starts with a 12 byte little-endian header:

    +0: type (uint32)
    +4: payload size in bytes (uint32)
    +8: library version stamp (uint32)

Some chunk types hold nothing but further chunks; these are listed in
``CONTAINER_TYPES`` and are descended into. Any other chunk, known or not,
is handed out as opaque payload bytes.
"""
import struct
from enum import IntEnum
from typing import Iterator, List, Optional, Tuple

from rw_config import DEFAULT_MAX_CHUNK_DEPTH
from rw_errors import ChunkNestingTooDeep, TruncatedChunk
from rw_types import Chunk, ChunkHeader

HEADER_FORMAT = "<III"
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)


class ChunkType(IntEnum):
    """RenderWare chunk type ids used by DFF files."""
    STRUCT = 0x01
    STRING = 0x02
    EXTENSION = 0x03
    CAMERA = 0x05
    TEXTURE = 0x06
    MATERIAL = 0x07
    MATERIAL_LIST = 0x08
    FRAME_LIST = 0x0E
    GEOMETRY = 0x0F
    CLUMP = 0x10
    LIGHT = 0x12
    ATOMIC = 0x14
    GEOMETRY_LIST = 0x1A
    BIN_MESH_PLG = 0x50E
    NODE_NAME = 0x0253F2FE


CONTAINER_TYPES = frozenset({
    ChunkType.EXTENSION,
    ChunkType.TEXTURE,
    ChunkType.MATERIAL,
    ChunkType.MATERIAL_LIST,
    ChunkType.FRAME_LIST,
    ChunkType.GEOMETRY,
    ChunkType.CLUMP,
    ChunkType.LIGHT,
    ChunkType.ATOMIC,
    ChunkType.GEOMETRY_LIST,
})


def decode_library_version(stamp: int) -> Tuple[int, int]:
    """Unpack a library version stamp.

    Old files (GTA III) store the version shifted right by 8 bits; later
    ones pack version and build number into one word.

    Args:
        stamp: Raw version field from a chunk header

    Returns:
        (version, build), e.g. (0x33002, 0xFFFF) for Vice City
    """
    if stamp & 0xFFFF0000:
        version = (((stamp >> 14) & 0x3FF00) + 0x30000) | ((stamp >> 16) & 0x3F)
        return version, stamp & 0xFFFF
    return stamp << 8, 0


def read_chunk_header(data: bytes, offset: int = 0, end: Optional[int] = None) -> ChunkHeader:
    """Read the chunk header at ``offset`` and check its payload fits.

    Args:
        data: Buffer holding the chunk
        offset: Position of the header in ``data``
        end: End of the enclosing region (defaults to ``len(data)``)

    Returns:
        ChunkHeader describing the chunk

    Raises:
        TruncatedChunk: If the header or the declared payload run past ``end``
    """
    if end is None:
        end = len(data)

    available = end - offset
    if available < HEADER_SIZE:
        raise TruncatedChunk(offset, HEADER_SIZE, max(available, 0))

    kind, size, stamp = struct.unpack_from(HEADER_FORMAT, data, offset)
    if size > available - HEADER_SIZE:
        raise TruncatedChunk(offset, size, available - HEADER_SIZE, kind=kind)

    return ChunkHeader(kind=kind, byte_length=size, library_stamp=stamp, offset=offset)


def iter_chunks(data: bytes, offset: int = 0, end: Optional[int] = None) -> Iterator[ChunkHeader]:
    """Yield consecutive sibling chunk headers between ``offset`` and ``end``.

    Each step moves strictly forward past header and payload. The generator
    stops at ``end`` and raises TruncatedChunk on the first chunk that does
    not fit.
    """
    if end is None:
        end = len(data)
    while offset < end:
        header = read_chunk_header(data, offset, end)
        yield header
        offset = header.end_offset


def walk_chunks(
    data: bytes,
    max_depth: int = DEFAULT_MAX_CHUNK_DEPTH,
) -> Iterator[Tuple[int, bytes, int]]:
    """Walk every chunk in ``data`` in document (pre-)order.

    Container payloads are walked with an explicit stack of sibling
    iterators, so corrupt nesting cannot exhaust the Python stack.

    Yields:
        (kind, payload bytes, depth) tuples, depth 0 for top-level chunks

    Raises:
        TruncatedChunk: If any chunk overruns its parent
        ChunkNestingTooDeep: If containers nest deeper than ``max_depth``
    """
    view = memoryview(data)
    stack: List[Iterator[ChunkHeader]] = [iter_chunks(data)]

    while stack:
        header = next(stack[-1], None)
        if header is None:
            stack.pop()
            continue

        depth = len(stack) - 1
        yield header.kind, bytes(view[header.payload_offset:header.end_offset]), depth

        if header.kind in CONTAINER_TYPES:
            if depth + 1 > max_depth:
                raise ChunkNestingTooDeep(depth + 1, max_depth)
            stack.append(iter_chunks(data, header.payload_offset, header.end_offset))


def read_chunk_tree(data: bytes, max_depth: int = DEFAULT_MAX_CHUNK_DEPTH) -> List[Chunk]:
    """Decode ``data`` into a tree of Chunk nodes.

    Args:
        data: Complete RenderWare stream
        max_depth: Deepest container nesting accepted

    Returns:
        List of top-level chunks; container chunks have ``children`` filled in

    Raises:
        TruncatedChunk: If any chunk overruns its parent
        ChunkNestingTooDeep: If containers nest deeper than ``max_depth``
    """
    view = memoryview(data)
    roots: List[Chunk] = []
    # Work list of (sibling iterator, list the siblings are appended to)
    stack: List[Tuple[Iterator[ChunkHeader], List[Chunk]]] = [(iter_chunks(data), roots)]

    while stack:
        siblings, target = stack[-1]
        header = next(siblings, None)
        if header is None:
            stack.pop()
            continue

        depth = len(stack) - 1
        is_container = header.kind in CONTAINER_TYPES
        # Container bytes live on only as children
        payload = b"" if is_container else bytes(view[header.payload_offset:header.end_offset])
        node = Chunk(
            kind=header.kind,
            byte_length=header.byte_length,
            library_stamp=header.library_stamp,
            payload=payload,
            depth=depth,
        )
        target.append(node)

        if is_container:
            if depth + 1 > max_depth:
                raise ChunkNestingTooDeep(depth + 1, max_depth)
            stack.append((iter_chunks(data, header.payload_offset, header.end_offset), node.children))

    return roots
