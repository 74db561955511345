"""Tests for glTF exporter."""
import io
import os
import tempfile
import pytest
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dff_builder import QUAD_VERTICES, TRIANGLE_VERTICES, clump, geometry_chunk, material_chunk
from dff_model import Geometry, Model, parse_dff
from gltf_exporter import GLTFExporter
from rw_records import Triangle


def test_export_basic_mesh():
    """Should export a DFF model to a valid GLB file."""
    model = parse_dff(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])]))

    with tempfile.TemporaryDirectory() as tmpdir:
        output_path = os.path.join(tmpdir, "test.glb")

        exporter = GLTFExporter(model)
        exporter.export(output_path)

        assert os.path.exists(output_path)
        assert os.path.getsize(output_path) > 100

        # Verify it's valid glTF
        from pygltflib import GLTF2
        gltf = GLTF2.load(output_path)
        assert len(gltf.meshes) == 1
        assert gltf.accessors[0].count == 3


def test_export_converts_to_y_up():
    """Positions are swapped into Y-up space like placements."""
    vertices = [(0.0, 0.0, 0.0), (1.0, 2.0, 3.0), (0.0, 1.0, 0.0)]
    model = parse_dff(clump([geometry_chunk(vertices, [(0, 1, 2, 0)])]))

    gltf, _ = GLTFExporter(model).build()

    position = gltf.accessors[gltf.meshes[0].primitives[0].attributes.POSITION]
    assert position.max == [1.0, 3.0, 0.0]
    assert position.min == [0.0, 0.0, -2.0]


def test_export_primitive_per_material():
    materials = [material_chunk((255, 0, 0, 255)), material_chunk((0, 0, 255, 128))]
    model = parse_dff(clump([
        geometry_chunk(QUAD_VERTICES, [(0, 1, 2, 0), (0, 2, 3, 1)], materials=materials)
    ]))

    gltf, _ = GLTFExporter(model).build()

    primitives = gltf.meshes[0].primitives
    assert len(primitives) == 2
    assert [gltf.accessors[p.indices].count for p in primitives] == [3, 3]
    assert gltf.materials[primitives[1].material].alphaMode == "BLEND"
    assert gltf.materials[0].pbrMetallicRoughness.baseColorFactor == [1.0, 0.0, 0.0, 1.0]


def test_export_texture_reference():
    materials = [material_chunk(texture="Wall")]
    model = parse_dff(clump([
        geometry_chunk(
            TRIANGLE_VERTICES,
            [(0, 1, 2, 0)],
            materials=materials,
            uvs=[(0.0, 0.0), (1.0, 0.0), (0.0, 1.0)],
        )
    ]))

    gltf, _ = GLTFExporter(model).build()

    assert [image.uri for image in gltf.images] == ["textures/wall.png"]
    assert gltf.materials[0].pbrMetallicRoughness.baseColorTexture.index == 0
    assert gltf.meshes[0].primitives[0].attributes.TEXCOORD_0 is not None


def test_export_buffer_is_aligned():
    model = parse_dff(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])]))

    gltf, blob = GLTFExporter(model).build()

    assert len(blob) % 4 == 0
    assert gltf.buffers[0].byteLength == len(blob)
    assert all(view.byteOffset % 4 == 0 for view in gltf.bufferViews)


def test_export_from_file_object():
    data = clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])])

    gltf, _ = GLTFExporter(io.BytesIO(data)).build()

    assert len(gltf.meshes) == 1


def test_export_no_mesh_raises():
    """Should raise when no mesh data found."""
    model = parse_dff(b"")

    with tempfile.TemporaryDirectory() as tmpdir:
        output_path = os.path.join(tmpdir, "empty.glb")

        exporter = GLTFExporter(model)
        with pytest.raises(ValueError, match="No mesh data"):
            exporter.export(output_path)


def test_export_skips_geometry_without_vertices():
    """Faces with no vertex table would give a zero-length POSITION accessor."""
    empty = Geometry(flags=0, triangles=(Triangle(vertex1=0, vertex2=1, vertex3=2, material_id=0),))
    solid = parse_dff(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])])).geometries[0]

    gltf, _ = GLTFExporter(Model(geometries=(empty, solid))).build()

    assert len(gltf.meshes) == 1
    assert [node.name for node in gltf.nodes] == ["geometry_1"]
    assert all(accessor.count > 0 for accessor in gltf.accessors)


def test_export_only_vertexless_geometry_raises():
    empty = Geometry(flags=0, triangles=(Triangle(vertex1=0, vertex2=1, vertex3=2, material_id=0),))

    with pytest.raises(ValueError, match="No mesh data"):
        GLTFExporter(Model(geometries=(empty,))).build()
