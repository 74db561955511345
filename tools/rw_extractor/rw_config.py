"""Extractor settings and asset naming conventions.

The decoders themselves never touch the file system. These helpers describe
how a host maps names found in placement lists onto model and texture files
on disk, and which extensions select which decoder.
"""
import os
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, List, Optional, Union

IPL_EXTENSION = ".ipl"
DFF_EXTENSION = ".dff"

DEFAULT_MODEL_DIR = "models/gta3"
DEFAULT_TEXTURE_DIR = "textures"
DEFAULT_TEXTURE_EXTENSION = ".png"
DEFAULT_LOD_PREFIX = "lod"

# Real clumps nest five or six containers deep (Clump > GeometryList >
# Geometry > MaterialList > Material > Texture > Extension).
DEFAULT_MAX_CHUNK_DEPTH = 16


@dataclass(frozen=True)
class ExtractorConfig:
    """Settings shared by the decoders and the command line tool."""

    model_dir: str = DEFAULT_MODEL_DIR
    texture_dir: str = DEFAULT_TEXTURE_DIR
    texture_extension: str = DEFAULT_TEXTURE_EXTENSION
    lod_prefix: str = DEFAULT_LOD_PREFIX
    max_chunk_depth: int = DEFAULT_MAX_CHUNK_DEPTH

    def model_asset_path(self, model_name: str) -> str:
        """Return the asset path of the DFF a placement refers to.

        Args:
            model_name: Model name field of a placement record

        Returns:
            Path such as ``models/gta3/doontoon03.dff``
        """
        return str(PurePosixPath(self.model_dir) / f"{model_name.lower()}{DFF_EXTENSION}")

    def texture_asset_path(self, texture_name: str) -> str:
        """Return the asset path of an extracted texture."""
        return str(
            PurePosixPath(self.texture_dir)
            / f"{texture_name.lower()}{self.texture_extension}"
        )

    def is_lod_model(self, model_name: str) -> bool:
        """Check whether a model name is a low-detail stand-in.

        The game places ``LOD*`` models next to their full-detail
        counterparts; hosts usually skip them when instantiating.
        """
        prefix = self.lod_prefix.lower()
        return len(model_name) > len(prefix) and model_name.lower().startswith(prefix)

    def instanceable(self, placements: Iterable) -> List:
        """Filter placement records down to the ones a host should spawn."""
        return [p for p in placements if not self.is_lod_model(p.model_name)]


DEFAULT_CONFIG = ExtractorConfig()


def asset_kind(path: Union[str, os.PathLike]) -> Optional[str]:
    """Pick a decoder for a file by its extension.

    Returns:
        ``"ipl"``, ``"dff"`` or None when the extension is not handled
    """
    suffix = os.path.splitext(os.fspath(path))[1].lower()
    if suffix == IPL_EXTENSION:
        return "ipl"
    if suffix == DFF_EXTENSION:
        return "dff"
    return None
