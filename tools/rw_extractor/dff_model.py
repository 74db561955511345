"""Model assembly for RenderWare DFF clumps.

A DFF file is a chunk tree rooted at a Clump:

    Clump
      Struct            atomic count
      FrameList
        Struct          frames
        Extension*      one per frame (node names)
      GeometryList
        Struct          geometry count
        Geometry*
          Struct        vertices, triangles, morph targets
          MaterialList
            Struct      material instance table
            Material*
              Struct    colour, textured flag
              Texture?
                Struct, String (name), String (mask)
          Extension
      Atomic*
        Struct          frame index, geometry index

Unknown chunk kinds are skipped. Cross references such as a triangle's
material id are not checked here.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from rw_chunks import ChunkType, decode_library_version, read_chunk_tree
from rw_config import DEFAULT_CONFIG, ExtractorConfig
from rw_errors import DecodeError
from rw_records import (
    AtomicRecord,
    Color,
    GeometryData,
    Normal,
    SurfaceProperties,
    TexCoord,
    TextureHeader,
    Triangle,
    Vertex,
    decode_frame_list,
    decode_geometry_struct,
    decode_material_list,
    decode_material_struct,
    decode_string,
)
from rw_types import Chunk

logger = logging.getLogger(__name__)

_KNOWN_KINDS = frozenset(int(kind) for kind in ChunkType)


def _rebase(index: int, base: int, count: int, total: int) -> int:
    """Shift a per-geometry index into the concatenated collection.

    Out-of-range indices land past ``total`` by the same amount they
    overshoot ``count``.
    """
    if index < count:
        return index + base
    return total + (index - count)


@dataclass(frozen=True)
class TextureReference:
    """Name of a texture in the model's texture dictionary (not a loaded image)."""

    name: str
    mask_name: str = ""
    sampler: Optional[TextureHeader] = None


@dataclass(frozen=True)
class Material:
    color: Color
    texture: Optional[TextureReference] = None
    surface: Optional[SurfaceProperties] = None


@dataclass(frozen=True)
class Frame:
    rotation: Tuple[float, ...]
    position: Tuple[float, float, float]
    parent: int
    name: str = ""


@dataclass(frozen=True)
class Geometry:
    """One mesh of a clump, with its own vertex table and materials."""

    flags: int
    vertices: Tuple[Vertex, ...] = ()
    normals: Tuple[Normal, ...] = ()
    uv_sets: Tuple[Tuple[TexCoord, ...], ...] = ()
    colors: Tuple[Color, ...] = ()
    triangles: Tuple[Triangle, ...] = ()
    materials: Tuple[Material, ...] = ()

    @property
    def uvs(self) -> Tuple[TexCoord, ...]:
        """First texture coordinate set, or empty."""
        return self.uv_sets[0] if self.uv_sets else ()


@dataclass(frozen=True)
class Model:
    """Decoded DFF clump."""

    geometries: Tuple[Geometry, ...] = ()
    frames: Tuple[Frame, ...] = ()
    atomics: Tuple[AtomicRecord, ...] = ()

    @property
    def vertices(self) -> List[Vertex]:
        """Vertices of all geometries, concatenated in document order."""
        return [v for g in self.geometries for v in g.vertices]

    @property
    def triangles(self) -> List[Triangle]:
        """Triangles of all geometries as one list.

        Vertex and material indices are re-based so they address
        ``vertices`` and ``materials``. An index outside its own geometry
        stays outside the concatenated collections, so it cannot alias
        another geometry's data. For a single geometry the triangles come
        back unchanged.
        """
        vertex_total = sum(len(g.vertices) for g in self.geometries)
        material_total = sum(len(g.materials) for g in self.geometries)

        result: List[Triangle] = []
        vertex_base = 0
        material_base = 0
        for geometry in self.geometries:
            vertex_count = len(geometry.vertices)
            material_count = len(geometry.materials)
            for tri in geometry.triangles:
                result.append(Triangle(
                    vertex1=_rebase(tri.vertex1, vertex_base, vertex_count, vertex_total),
                    vertex2=_rebase(tri.vertex2, vertex_base, vertex_count, vertex_total),
                    vertex3=_rebase(tri.vertex3, vertex_base, vertex_count, vertex_total),
                    material_id=_rebase(tri.material_id, material_base, material_count, material_total),
                ))
            vertex_base += vertex_count
            material_base += material_count
        return result

    @property
    def materials(self) -> List[Material]:
        return [m for g in self.geometries for m in g.materials]

    @property
    def texture_names(self) -> List[str]:
        """Distinct texture names in first-use order."""
        names: List[str] = []
        for material in self.materials:
            if material.texture and material.texture.name not in names:
                names.append(material.texture.name)
        return names

    def bounds(self) -> Tuple[List[float], List[float]]:
        """Compute min/max bounds over all vertices."""
        vertices = self.vertices
        if not vertices:
            return [0.0, 0.0, 0.0], [0.0, 0.0, 0.0]

        min_bounds = [float("inf")] * 3
        max_bounds = [float("-inf")] * 3
        for v in vertices:
            for i, value in enumerate((v.x, v.y, v.z)):
                min_bounds[i] = min(min_bounds[i], value)
                max_bounds[i] = max(max_bounds[i], value)
        return min_bounds, max_bounds


def _version(chunk: Chunk) -> int:
    return decode_library_version(chunk.library_stamp)[0]


def _require_struct(chunk: Chunk) -> Chunk:
    struct_chunk = chunk.find(ChunkType.STRUCT)
    if struct_chunk is None:
        raise DecodeError(f"Chunk 0x{chunk.kind:X} has no Struct child")
    return struct_chunk


class DffAssembler:
    """Folds a decoded chunk tree into a Model."""

    def __init__(self):
        self.geometries: List[Geometry] = []
        self.frames: List[Frame] = []
        self.atomics: List[AtomicRecord] = []

    def assemble(self, roots: List[Chunk]) -> Model:
        """Walk the tree in document order and build the model.

        Args:
            roots: Top-level chunks from ``read_chunk_tree``

        Returns:
            Assembled Model
        """
        handlers = {
            ChunkType.FRAME_LIST: self._add_frames,
            ChunkType.GEOMETRY: self._add_geometry,
            ChunkType.ATOMIC: self._add_atomic,
        }

        for chunk in self._iter_unhandled(roots, handlers):
            if chunk.kind not in _KNOWN_KINDS:
                logger.debug("Skipping unknown chunk 0x%X (%d bytes)", chunk.kind, chunk.byte_length)

        return Model(
            geometries=tuple(self.geometries),
            frames=tuple(self.frames),
            atomics=tuple(self.atomics),
        )

    def _iter_unhandled(self, roots: List[Chunk], handlers) -> Iterator[Chunk]:
        """Dispatch handled chunks, yield every other one in pre-order."""
        stack = list(reversed(roots))
        while stack:
            chunk = stack.pop()
            handler = handlers.get(chunk.kind)
            if handler is not None:
                handler(chunk)
                continue
            yield chunk
            stack.extend(reversed(chunk.children))

    def _add_frames(self, chunk: Chunk) -> None:
        records = decode_frame_list(_require_struct(chunk).payload)
        names = [self._frame_name(ext) for ext in chunk.find_all(ChunkType.EXTENSION)]
        for index, record in enumerate(records):
            self.frames.append(Frame(
                rotation=record.rotation,
                position=record.position,
                parent=record.parent,
                name=names[index] if index < len(names) else "",
            ))

    @staticmethod
    def _frame_name(extension: Chunk) -> str:
        node_name = extension.find(ChunkType.NODE_NAME)
        if node_name is None:
            return ""
        # Node names are not NUL-terminated; the chunk size is the length
        return node_name.payload.decode("latin-1")

    def _add_atomic(self, chunk: Chunk) -> None:
        self.atomics.append(AtomicRecord.from_bytes(_require_struct(chunk).payload))

    def _add_geometry(self, chunk: Chunk) -> None:
        data: GeometryData = decode_geometry_struct(_require_struct(chunk).payload, _version(chunk))

        vertices: List[Vertex] = []
        normals: List[Normal] = []
        if data.morph_targets:
            vertices = data.morph_targets[0].vertices
            normals = data.morph_targets[0].normals

        material_list = chunk.find(ChunkType.MATERIAL_LIST)
        materials = self._materials(material_list) if material_list is not None else []

        self.geometries.append(Geometry(
            flags=data.header.flags,
            vertices=tuple(vertices),
            normals=tuple(normals),
            uv_sets=tuple(tuple(uvs) for uvs in data.uv_sets),
            colors=tuple(data.colors),
            triangles=tuple(data.triangles),
            materials=tuple(materials),
        ))
        logger.debug(
            "Geometry %d: %d vertices, %d triangles, %d materials",
            len(self.geometries) - 1, len(vertices), len(data.triangles), len(materials),
        )

    def _materials(self, chunk: Chunk) -> List[Material]:
        instances = decode_material_list(_require_struct(chunk).payload)
        stored = iter(chunk.find_all(ChunkType.MATERIAL))

        materials: List[Material] = []
        for index, instance in enumerate(instances):
            if instance < 0:
                material_chunk = next(stored, None)
                if material_chunk is None:
                    raise DecodeError(f"Material list entry {index} has no Material chunk")
                materials.append(self._material(material_chunk))
            elif instance < len(materials):
                materials.append(materials[instance])
            else:
                raise DecodeError(f"Material list entry {index} re-uses unknown material {instance}")
        return materials

    def _material(self, chunk: Chunk) -> Material:
        header, surface = decode_material_struct(_require_struct(chunk).payload, _version(chunk))
        texture_chunk = chunk.find(ChunkType.TEXTURE) if header.is_textured else None
        texture = self._texture(texture_chunk) if texture_chunk is not None else None
        return Material(color=header.color, texture=texture, surface=surface)

    @staticmethod
    def _texture(chunk: Chunk) -> TextureReference:
        struct_chunk = chunk.find(ChunkType.STRUCT)
        sampler = TextureHeader.from_bytes(struct_chunk.payload) if struct_chunk is not None else None
        names = [decode_string(s.payload) for s in chunk.find_all(ChunkType.STRING)]
        if not names:
            raise DecodeError("Texture chunk has no name")
        return TextureReference(
            name=names[0],
            mask_name=names[1] if len(names) > 1 else "",
            sampler=sampler,
        )


def parse_dff(data: bytes, config: Optional[ExtractorConfig] = None) -> Model:
    """Decode a DFF file into a Model.

    Args:
        data: Complete file contents
        config: Extractor settings (only the chunk depth budget is used)

    Returns:
        Assembled Model

    Raises:
        TruncatedChunk: If a chunk overruns its parent
        ChunkNestingTooDeep: If containers nest deeper than allowed
        InsufficientRecordBytes: If a record inside a chunk is cut short
        DecodeError: If required child chunks are missing
    """
    config = config or DEFAULT_CONFIG
    roots = read_chunk_tree(data, max_depth=config.max_chunk_depth)
    return DffAssembler().assemble(roots)
