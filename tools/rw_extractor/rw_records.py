"""Fixed-layout record decoders for RenderWare DFF chunk payloads.

All records are little-endian and have no variable-length fields. Each
record class exposes ``STRUCT_FORMAT``/``STRUCT_SIZE`` and a ``from_bytes``
classmethod; short input raises InsufficientRecordBytes and nothing is
skipped silently.
"""
import struct
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Type, TypeVar

from rw_errors import DecodeError, InsufficientRecordBytes

R = TypeVar("R", bound="Record")

# RenderWare 3.4 dropped the per-geometry surface properties
SURFACE_PROPERTIES_CUTOFF = 0x34000
# Materials carry surface properties from 3.0.4 onwards
MATERIAL_SURFACE_VERSION = 0x30400


class GeometryFlags:
    """Bits of the geometry format word."""
    TRISTRIP = 0x01
    POSITIONS = 0x02
    TEXTURED = 0x04
    PRELIT = 0x08
    NORMALS = 0x10
    LIGHT = 0x20
    MODULATE_MATERIAL_COLOR = 0x40
    TEXTURED2 = 0x80


class Record:
    """Base for fixed-width little-endian records."""

    STRUCT_FORMAT = ""
    STRUCT_SIZE = 0

    @classmethod
    def from_values(cls: Type[R], values: Tuple) -> R:
        return cls(*values)

    @classmethod
    def from_bytes(cls: Type[R], data: bytes, offset: int = 0) -> R:
        """Decode one record starting at ``offset``.

        Raises:
            InsufficientRecordBytes: If fewer than STRUCT_SIZE bytes remain
        """
        available = len(data) - offset
        if available < cls.STRUCT_SIZE:
            raise InsufficientRecordBytes(cls.__name__, cls.STRUCT_SIZE, max(available, 0))
        return cls.from_values(struct.unpack_from(cls.STRUCT_FORMAT, data, offset))


def decode_array(record_cls: Type[R], data: bytes, count: int, offset: int = 0) -> Tuple[List[R], int]:
    """Decode ``count`` consecutive records.

    Args:
        record_cls: Record type to decode
        data: Payload bytes
        count: Number of records
        offset: Position of the first record

    Returns:
        (records, offset just past the last record)

    Raises:
        InsufficientRecordBytes: If the payload is too short for all records
    """
    if count < 0:
        raise DecodeError(f"Negative {record_cls.__name__} count: {count}")

    needed = count * record_cls.STRUCT_SIZE
    available = len(data) - offset
    if available < needed:
        raise InsufficientRecordBytes(
            f"{count} x {record_cls.__name__}", needed, max(available, 0)
        )

    records = []
    if needed:
        chunk = data[offset:offset + needed]
        records = [record_cls.from_values(v) for v in struct.iter_unpack(record_cls.STRUCT_FORMAT, chunk)]
    return records, offset + needed


@dataclass(frozen=True)
class Triangle(Record):
    """Triangle face with its material index.

    The file stores ``vertex2, vertex1, material_id, vertex3``; this is the
    order that gives the game's front-face winding and must be kept.
    """

    vertex1: int
    vertex2: int
    vertex3: int
    material_id: int

    STRUCT_FORMAT = "<4H"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @classmethod
    def from_values(cls, values: Tuple) -> "Triangle":
        vertex2, vertex1, material_id, vertex3 = values
        return cls(
            vertex1=vertex1,
            vertex2=vertex2,
            vertex3=vertex3,
            material_id=material_id,
        )

    @property
    def indices(self) -> Tuple[int, int, int]:
        return (self.vertex1, self.vertex2, self.vertex3)


@dataclass(frozen=True)
class Vertex(Record):
    x: float
    y: float
    z: float

    STRUCT_FORMAT = "<3f"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass(frozen=True)
class Normal(Record):
    x: float
    y: float
    z: float

    STRUCT_FORMAT = "<3f"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass(frozen=True)
class TexCoord(Record):
    u: float
    v: float

    STRUCT_FORMAT = "<2f"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass(frozen=True)
class Color(Record):
    """8-bit RGBA colour."""

    r: int
    g: int
    b: int
    a: int

    STRUCT_FORMAT = "<4B"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    def as_floats(self) -> Tuple[float, float, float, float]:
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0, self.a / 255.0)


@dataclass(frozen=True)
class SurfaceProperties(Record):
    ambient: float
    specular: float
    diffuse: float

    STRUCT_FORMAT = "<3f"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass(frozen=True)
class GeometryHeader(Record):
    """Geometry struct header (16 bytes)."""

    flags: int
    uv_set_count: int
    native_flags: int
    triangle_count: int
    vertex_count: int
    morph_target_count: int

    STRUCT_FORMAT = "<HBBiii"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @property
    def is_native(self) -> bool:
        return bool(self.native_flags & 0x01)

    @property
    def texture_set_count(self) -> int:
        # Old files leave the count at zero and only set the flag bits
        if self.uv_set_count:
            return self.uv_set_count
        if self.flags & GeometryFlags.TEXTURED2:
            return 2
        if self.flags & GeometryFlags.TEXTURED:
            return 1
        return 0


@dataclass(frozen=True)
class MorphTargetHeader(Record):
    """Bounding sphere and presence flags that precede morph target data."""

    sphere: Tuple[float, float, float, float]
    has_vertices: bool
    has_normals: bool

    STRUCT_FORMAT = "<4fii"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @classmethod
    def from_values(cls, values: Tuple) -> "MorphTargetHeader":
        return cls(
            sphere=tuple(values[:4]),
            has_vertices=bool(values[4]),
            has_normals=bool(values[5]),
        )


@dataclass(frozen=True)
class MaterialHeader(Record):
    """Material struct up to (not including) the surface properties."""

    flags: int
    color: Color
    is_textured: bool

    STRUCT_FORMAT = "<i4Bii"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @classmethod
    def from_values(cls, values: Tuple) -> "MaterialHeader":
        flags, r, g, b, a, _unused, textured = values
        return cls(flags=flags, color=Color(r, g, b, a), is_textured=textured != 0)


@dataclass(frozen=True)
class TextureHeader(Record):
    """Texture sampler settings."""

    filter_mode: int
    addressing: int
    flags: int

    STRUCT_FORMAT = "<BBH"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @property
    def address_u(self) -> int:
        return self.addressing & 0x0F

    @property
    def address_v(self) -> int:
        return (self.addressing >> 4) & 0x0F

    @property
    def has_mipmaps(self) -> bool:
        return bool(self.flags & 0x01)


@dataclass(frozen=True)
class Int32(Record):
    value: int

    STRUCT_FORMAT = "<i"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass(frozen=True)
class FrameRecord(Record):
    """Frame list entry: 3x3 rotation (right, up, at), position, parent."""

    rotation: Tuple[float, ...]
    position: Tuple[float, float, float]
    parent: int
    flags: int

    STRUCT_FORMAT = "<12fii"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)

    @classmethod
    def from_values(cls, values: Tuple) -> "FrameRecord":
        return cls(
            rotation=tuple(values[:9]),
            position=tuple(values[9:12]),
            parent=values[12],
            flags=values[13],
        )


@dataclass(frozen=True)
class AtomicRecord(Record):
    """Atomic struct linking a frame to a geometry."""

    frame_index: int
    geometry_index: int
    flags: int
    unused: int

    STRUCT_FORMAT = "<iiii"
    STRUCT_SIZE = struct.calcsize(STRUCT_FORMAT)


@dataclass
class MorphTarget:
    sphere: Tuple[float, float, float, float]
    vertices: List[Vertex] = field(default_factory=list)
    normals: List[Normal] = field(default_factory=list)


@dataclass
class GeometryData:
    """Everything stored in a geometry's Struct chunk."""

    header: GeometryHeader
    surface: Optional[SurfaceProperties] = None
    colors: List[Color] = field(default_factory=list)
    uv_sets: List[List[TexCoord]] = field(default_factory=list)
    triangles: List[Triangle] = field(default_factory=list)
    morph_targets: List[MorphTarget] = field(default_factory=list)


def decode_string(payload: bytes) -> str:
    """Decode a String chunk: NUL-terminated 8-bit text padded to 4 bytes."""
    return payload.split(b"\x00", 1)[0].decode("latin-1")


def decode_material_list(payload: bytes) -> List[int]:
    """Decode a MaterialList struct into its instance index table.

    ``-1`` marks a material stored in the list; any other value re-uses the
    material at that index.
    """
    count = Int32.from_bytes(payload).value
    entries, _ = decode_array(Int32, payload, count, Int32.STRUCT_SIZE)
    return [entry.value for entry in entries]


def decode_frame_list(payload: bytes) -> List[FrameRecord]:
    """Decode a FrameList struct."""
    count = Int32.from_bytes(payload).value
    frames, _ = decode_array(FrameRecord, payload, count, Int32.STRUCT_SIZE)
    return frames


def decode_material_struct(payload: bytes, version: int) -> Tuple[MaterialHeader, Optional[SurfaceProperties]]:
    """Decode a Material struct and, when the version has them, its surface properties."""
    header = MaterialHeader.from_bytes(payload)
    surface = None
    if version > MATERIAL_SURFACE_VERSION:
        surface = SurfaceProperties.from_bytes(payload, MaterialHeader.STRUCT_SIZE)
    return header, surface


def decode_geometry_struct(payload: bytes, version: int) -> GeometryData:
    """Decode a Geometry struct.

    Args:
        payload: Struct chunk payload
        version: Decoded library version of the geometry chunk

    Returns:
        GeometryData with vertex colours, texture coordinates, triangles and
        morph targets. Native (platform-specific) geometry only yields the
        header and morph target spheres.

    Raises:
        InsufficientRecordBytes: If any part of the struct is cut short
    """
    header = GeometryHeader.from_bytes(payload)
    offset = GeometryHeader.STRUCT_SIZE
    geometry = GeometryData(header=header)

    if version < SURFACE_PROPERTIES_CUTOFF:
        geometry.surface = SurfaceProperties.from_bytes(payload, offset)
        offset += SurfaceProperties.STRUCT_SIZE

    if not header.is_native:
        if header.flags & GeometryFlags.PRELIT:
            geometry.colors, offset = decode_array(Color, payload, header.vertex_count, offset)

        for _ in range(header.texture_set_count):
            uvs, offset = decode_array(TexCoord, payload, header.vertex_count, offset)
            geometry.uv_sets.append(uvs)

        geometry.triangles, offset = decode_array(Triangle, payload, header.triangle_count, offset)

    for _ in range(header.morph_target_count):
        target_header = MorphTargetHeader.from_bytes(payload, offset)
        offset += MorphTargetHeader.STRUCT_SIZE
        target = MorphTarget(sphere=target_header.sphere)
        if target_header.has_vertices:
            target.vertices, offset = decode_array(Vertex, payload, header.vertex_count, offset)
        if target_header.has_normals:
            target.normals, offset = decode_array(Normal, payload, header.vertex_count, offset)
        geometry.morph_targets.append(target)

    return geometry
