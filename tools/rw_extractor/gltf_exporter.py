"""glTF exporter for decoded DFF models."""
import struct
from pathlib import Path
from typing import BinaryIO, Dict, List, Optional, Tuple, Union

from pygltflib import (
    GLTF2,
    Accessor,
    Asset,
    Attributes,
    Buffer,
    BufferView,
    Image,
    Material as GLTFMaterial,
    Mesh,
    Node,
    PbrMetallicRoughness,
    Primitive,
    Sampler,
    Scene,
    Texture,
    TextureInfo,
)

from dff_model import Geometry, Material, Model, parse_dff
from ipl_parser import convert_position
from rw_config import DEFAULT_CONFIG, ExtractorConfig

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963
UNSIGNED_BYTE = 5121
UNSIGNED_SHORT = 5123
FLOAT = 5126
TRIANGLES = 4


class GLTFExporter:
    """Exports DFF model data to glTF/GLB format.

    Positions and normals are converted from the game's Z-up space with the
    same axis swap used for IPL placements.
    """

    def __init__(self, source: Union[Model, str, Path, BinaryIO], config: Optional[ExtractorConfig] = None):
        """Initialize exporter with a decoded model, a DFF path or file object.

        Args:
            source: Model, path to DFF file or file-like object
            config: Naming conventions for texture URIs
        """
        self.source = source
        self.config = config or DEFAULT_CONFIG
        self._model: Optional[Model] = source if isinstance(source, Model) else None

    def _load_model(self) -> Model:
        """Decode the source once and cache the result."""
        if self._model is None:
            if isinstance(self.source, (str, Path)):
                data = Path(self.source).read_bytes()
            else:
                self.source.seek(0)
                data = self.source.read()
            self._model = parse_dff(data, self.config)
        return self._model

    def _compute_bounds(self, positions: List[Tuple[float, float, float]]) -> Tuple[List[float], List[float]]:
        """Compute min/max bounds for vertices."""
        if not positions:
            return [0, 0, 0], [0, 0, 0]

        min_bounds = [float("inf")] * 3
        max_bounds = [float("-inf")] * 3

        for v in positions:
            for i in range(3):
                min_bounds[i] = min(min_bounds[i], v[i])
                max_bounds[i] = max(max_bounds[i], v[i])

        return min_bounds, max_bounds

    @staticmethod
    def _append(buffer_data: bytearray, data: bytes) -> int:
        """Append ``data`` 4-byte aligned and return its offset."""
        if len(buffer_data) % 4:
            buffer_data.extend(b"\x00" * (4 - len(buffer_data) % 4))
        offset = len(buffer_data)
        buffer_data.extend(data)
        return offset

    def _add_view(self, gltf: GLTF2, buffer_data: bytearray, data: bytes, target: Optional[int] = None) -> int:
        offset = self._append(buffer_data, data)
        gltf.bufferViews.append(
            BufferView(buffer=0, byteOffset=offset, byteLength=len(data), target=target)
        )
        return len(gltf.bufferViews) - 1

    def _add_accessor(self, gltf: GLTF2, accessor: Accessor) -> int:
        gltf.accessors.append(accessor)
        return len(gltf.accessors) - 1

    def _add_material(self, gltf: GLTF2, material: Material, textures: Dict[str, int]) -> int:
        """Add a glTF material, sharing textures by name."""
        pbr = PbrMetallicRoughness(
            baseColorFactor=list(material.color.as_floats()),
            metallicFactor=0.0,
            roughnessFactor=1.0,
        )

        if material.texture is not None:
            name = material.texture.name
            if name not in textures:
                gltf.images.append(Image(uri=self.config.texture_asset_path(name), name=name))
                gltf.textures.append(Texture(source=len(gltf.images) - 1, sampler=0))
                textures[name] = len(gltf.textures) - 1
            pbr.baseColorTexture = TextureInfo(index=textures[name])

        gltf.materials.append(GLTFMaterial(
            pbrMetallicRoughness=pbr,
            alphaMode="BLEND" if material.color.a < 255 else "OPAQUE",
            doubleSided=False,
        ))
        return len(gltf.materials) - 1

    def _add_geometry(
        self,
        gltf: GLTF2,
        buffer_data: bytearray,
        geometry: Geometry,
        material_indices: List[int],
    ) -> Mesh:
        """Pack one geometry as a mesh with one primitive per material."""
        positions = [convert_position(v.x, v.y, v.z) for v in geometry.vertices]
        min_bounds, max_bounds = self._compute_bounds(positions)

        attributes = {}
        vertex_data = b"".join(struct.pack("<fff", *p) for p in positions)
        attributes["POSITION"] = self._add_accessor(gltf, Accessor(
            bufferView=self._add_view(gltf, buffer_data, vertex_data, ARRAY_BUFFER),
            componentType=FLOAT,
            count=len(positions),
            type="VEC3",
            max=max_bounds,
            min=min_bounds,
        ))

        if positions and len(geometry.normals) == len(positions):
            normal_data = b"".join(
                struct.pack("<fff", *convert_position(n.x, n.y, n.z)) for n in geometry.normals
            )
            attributes["NORMAL"] = self._add_accessor(gltf, Accessor(
                bufferView=self._add_view(gltf, buffer_data, normal_data, ARRAY_BUFFER),
                componentType=FLOAT,
                count=len(positions),
                type="VEC3",
            ))

        if positions and len(geometry.uvs) == len(positions):
            uv_data = b"".join(struct.pack("<ff", uv.u, uv.v) for uv in geometry.uvs)
            attributes["TEXCOORD_0"] = self._add_accessor(gltf, Accessor(
                bufferView=self._add_view(gltf, buffer_data, uv_data, ARRAY_BUFFER),
                componentType=FLOAT,
                count=len(positions),
                type="VEC2",
            ))

        if positions and len(geometry.colors) == len(positions):
            color_data = b"".join(struct.pack("<4B", c.r, c.g, c.b, c.a) for c in geometry.colors)
            attributes["COLOR_0"] = self._add_accessor(gltf, Accessor(
                bufferView=self._add_view(gltf, buffer_data, color_data, ARRAY_BUFFER),
                componentType=UNSIGNED_BYTE,
                normalized=True,
                count=len(positions),
                type="VEC4",
            ))

        # Group faces by material, keeping first-use order
        faces: Dict[int, List[int]] = {}
        for tri in geometry.triangles:
            faces.setdefault(tri.material_id, []).extend(tri.indices)

        primitives = []
        for material_id, indices in faces.items():
            index_data = struct.pack(f"<{len(indices)}H", *indices)
            primitive = Primitive(
                attributes=Attributes(**attributes),
                indices=self._add_accessor(gltf, Accessor(
                    bufferView=self._add_view(gltf, buffer_data, index_data, ELEMENT_ARRAY_BUFFER),
                    componentType=UNSIGNED_SHORT,
                    count=len(indices),
                    type="SCALAR",
                )),
                mode=TRIANGLES,
            )
            # Out-of-range material ids are left without a material
            if 0 <= material_id < len(material_indices):
                primitive.material = material_indices[material_id]
            primitives.append(primitive)

        return Mesh(primitives=primitives)

    def build(self) -> Tuple[GLTF2, bytes]:
        """Build the glTF document and its binary buffer.

        Raises:
            ValueError: If no geometry has both vertices and triangles
        """
        model = self._load_model()
        # A mesh needs both a vertex table and faces to be valid glTF
        meshes = [
            (index, geometry)
            for index, geometry in enumerate(model.geometries)
            if geometry.triangles and geometry.vertices
        ]
        if not meshes:
            raise ValueError("No mesh data found in DFF model")

        gltf = GLTF2()
        gltf.asset = Asset(version="2.0", generator="RW Extractor")
        gltf.samplers = [Sampler()]
        buffer_data = bytearray()
        textures: Dict[str, int] = {}

        nodes = []
        for index, geometry in meshes:
            material_indices = [self._add_material(gltf, m, textures) for m in geometry.materials]
            gltf.meshes.append(self._add_geometry(gltf, buffer_data, geometry, material_indices))
            nodes.append(Node(mesh=len(gltf.meshes) - 1, name=f"geometry_{index}"))

        if not gltf.textures:
            gltf.samplers = []

        gltf.nodes = nodes
        gltf.scenes = [Scene(nodes=list(range(len(nodes))))]
        gltf.scene = 0

        if len(buffer_data) % 4:
            buffer_data.extend(b"\x00" * (4 - len(buffer_data) % 4))
        gltf.buffers = [Buffer(byteLength=len(buffer_data))]
        return gltf, bytes(buffer_data)

    def export(self, output_path: str):
        """Export the model to a GLB file.

        Args:
            output_path: Path for output .glb file

        Raises:
            ValueError: If no mesh data found in the model
        """
        gltf, buffer_data = self.build()
        gltf.set_binary_blob(buffer_data)
        gltf.save(output_path)
