"""Tests for the asset conversion CLI."""
import json
import os
import subprocess
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dff_builder import TRIANGLE_VERTICES, clump, geometry_chunk

TOOL_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

IPL_DATA = """# IPL generated from Max file downtown.max
inst
1860, doontoon03, 0, -445.4862671, 1280.132813, 42.78390503, 1, 1, 1, 0, 0, 0, 1
1861, LODtoon03, 0, -445.4862671, 1280.132813, 42.78390503, 1, 1, 1, 0, 0, 0, 1
end
cull
end
"""


def run_cli(*args):
    return subprocess.run(
        [sys.executable, "extract_assets.py", *args],
        capture_output=True,
        text=True,
        cwd=TOOL_DIR,
    )


def test_cli_help():
    """CLI should show help."""
    result = run_cli("--help")

    assert result.returncode == 0
    assert "usage" in result.stdout.lower()


def test_cli_extract_dff():
    """CLI should convert a single DFF file to GLB."""
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "test.dff")
        with open(input_path, "wb") as f:
            f.write(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])]))

        output_dir = os.path.join(tmpdir, "output")
        result = run_cli(input_path, "-o", output_dir)

        assert result.returncode == 0
        assert os.path.exists(os.path.join(output_dir, "test.glb"))


def test_cli_extract_ipl():
    """CLI should dump IPL placements as JSON."""
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "downtown.ipl")
        with open(input_path, "w") as f:
            f.write(IPL_DATA)

        output_dir = os.path.join(tmpdir, "output")
        result = run_cli(input_path, "-o", output_dir)

        assert result.returncode == 0
        with open(os.path.join(output_dir, "downtown.json")) as f:
            document = json.load(f)

        assert len(document["instances"]) == 2
        first = document["instances"][0]
        assert first["model_name"] == "doontoon03"
        assert first["model_path"] == "models/gta3/doontoon03.dff"
        assert first["rotation"] == [0.0, 0.0, 0.0, 1.0]


def test_cli_skip_lod():
    with tempfile.TemporaryDirectory() as tmpdir:
        input_path = os.path.join(tmpdir, "downtown.ipl")
        with open(input_path, "w") as f:
            f.write(IPL_DATA)

        output_dir = os.path.join(tmpdir, "output")
        result = run_cli(input_path, "-o", output_dir, "--skip-lod")

        assert result.returncode == 0
        with open(os.path.join(output_dir, "downtown.json")) as f:
            document = json.load(f)

        assert [i["model_name"] for i in document["instances"]] == ["doontoon03"]


def test_cli_extract_directory():
    """CLI should convert every DFF and IPL below a directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        input_dir = os.path.join(tmpdir, "maps")
        os.makedirs(os.path.join(input_dir, "downtown"))

        for name in ["model1.dff", "model2.dff"]:
            with open(os.path.join(input_dir, name), "wb") as f:
                f.write(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])]))
        with open(os.path.join(input_dir, "downtown", "downtown.ipl"), "w") as f:
            f.write(IPL_DATA)
        with open(os.path.join(input_dir, "readme.txt"), "w") as f:
            f.write("not an asset")

        output_dir = os.path.join(tmpdir, "output")
        result = run_cli(input_dir, "-o", output_dir)

        assert result.returncode == 0
        assert os.path.exists(os.path.join(output_dir, "model1.glb"))
        assert os.path.exists(os.path.join(output_dir, "model2.glb"))
        assert os.path.exists(os.path.join(output_dir, "downtown.json"))


def test_cli_reports_bad_file_and_continues():
    """A corrupt file fails on its own without stopping the others."""
    with tempfile.TemporaryDirectory() as tmpdir:
        input_dir = os.path.join(tmpdir, "models")
        os.makedirs(input_dir)

        with open(os.path.join(input_dir, "good.dff"), "wb") as f:
            f.write(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])]))
        with open(os.path.join(input_dir, "bad.dff"), "wb") as f:
            f.write(clump([geometry_chunk(TRIANGLE_VERTICES, [(0, 1, 2, 0)])])[:-10])

        output_dir = os.path.join(tmpdir, "output")
        result = run_cli(input_dir, "-o", output_dir)

        assert result.returncode == 1
        assert "bad.dff" in result.stderr
        assert os.path.exists(os.path.join(output_dir, "good.glb"))


def test_cli_missing_input():
    result = run_cli("/nonexistent/path.dff")

    assert result.returncode == 1
    assert "not found" in result.stderr
