#!/usr/bin/env python3
"""Convert GTA RenderWare assets to portable formats.

DFF models are written as glTF binaries, IPL placement lists as JSON.

Usage:
    python extract_assets.py <input> [-o <output>] [--skip-lod] [-v]

Examples:
    # Convert a single model
    python extract_assets.py models/gta3/doontoon03.dff -o ./output

    # Convert everything below a directory
    python extract_assets.py ./data/maps/ -o ./output --skip-lod
"""
import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path

from dff_model import parse_dff
from gltf_exporter import GLTFExporter
from ipl_parser import parse_ipl
from logging_config import setup_logging
from rw_config import DEFAULT_CONFIG, asset_kind
from rw_errors import DecodeError

logger = logging.getLogger("extract_assets")


def convert_ipl(path: Path, output_dir: Path, skip_lod: bool = False) -> Path:
    """Decode an IPL file and dump its placements as JSON."""
    placements = parse_ipl(path.read_bytes())
    records = DEFAULT_CONFIG.instanceable(placements) if skip_lod else list(placements)

    output_file = output_dir / f"{path.stem}.json"
    document = {
        "source": path.name,
        "instances": [
            dict(asdict(record), model_path=DEFAULT_CONFIG.model_asset_path(record.model_name))
            for record in records
        ],
    }
    output_file.write_text(json.dumps(document, indent=2), encoding="utf-8")
    logger.info("%s: %d instances -> %s", path, len(records), output_file)
    return output_file


def convert_dff(path: Path, output_dir: Path) -> Path:
    """Decode a DFF model and export it as GLB."""
    model = parse_dff(path.read_bytes())

    output_file = output_dir / f"{path.stem}.glb"
    GLTFExporter(model).export(str(output_file))
    logger.info(
        "%s: %d geometries, %d triangles -> %s",
        path, len(model.geometries), len(model.triangles), output_file,
    )
    return output_file


def main():
    parser = argparse.ArgumentParser(
        description="Convert GTA DFF models to glTF and IPL placements to JSON"
    )
    parser.add_argument(
        "input",
        help="Input .dff/.ipl file or directory containing them",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--skip-lod",
        action="store_true",
        help="Leave LOD placements out of IPL output",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    # Ensure output directory exists
    os.makedirs(args.output, exist_ok=True)
    output_dir = Path(args.output)

    # Collect input files
    input_path = Path(args.input)
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = sorted(p for p in input_path.glob("**/*") if p.is_file() and asset_kind(p))
        if not files:
            print(f"No DFF or IPL files found in {input_path}", file=sys.stderr)
            return 1
    else:
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    success_count = 0
    fail_count = 0

    for path in files:
        kind = asset_kind(path)
        try:
            if kind == "ipl":
                convert_ipl(path, output_dir, skip_lod=args.skip_lod)
            elif kind == "dff":
                convert_dff(path, output_dir)
            else:
                print(f"Unsupported file type: {path}", file=sys.stderr)
                fail_count += 1
                continue
            success_count += 1
        except (DecodeError, ValueError, OSError) as e:
            logger.error("Failed: %s - %s", path, e)
            fail_count += 1

    # Summary
    total = success_count + fail_count
    print(f"\nConverted {success_count}/{total} files to {args.output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
