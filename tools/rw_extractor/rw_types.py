"""Type definitions shared by the IPL and DFF decoders."""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

Vec3 = Tuple[float, float, float]
Quat = Tuple[float, float, float, float]


@dataclass(frozen=True)
class PlacementRecord:
    """One instanced model from an IPL ``inst`` section.

    Position and scale are already in the Y-up target space. Rotation is the
    raw ``(x, y, z, w)`` quaternion from the file and is not normalised.
    """

    model_name: str
    interior_id: int
    position: Vec3
    scale: Vec3
    rotation: Quat


class PlacementList(Sequence[PlacementRecord]):
    """Ordered, read-only collection of placements from one IPL file."""

    def __init__(self, records: Sequence[PlacementRecord], sections: Optional[Dict[str, List[str]]] = None):
        self._records: Tuple[PlacementRecord, ...] = tuple(records)
        self._sections: Dict[str, Tuple[str, ...]] = {
            tag: tuple(lines) for tag, lines in (sections or {}).items()
        }

    def __getitem__(self, index):
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[PlacementRecord]:
        return iter(self._records)

    def __eq__(self, other) -> bool:
        if isinstance(other, PlacementList):
            return self._records == other._records
        return NotImplemented

    def __repr__(self) -> str:
        return f"PlacementList({list(self._records)!r})"

    @property
    def sections(self) -> Dict[str, Tuple[str, ...]]:
        """Raw data lines of every section in the file, keyed by tag.

        Only ``inst`` is decoded; the other sections are kept as text.
        """
        return dict(self._sections)

    def by_interior(self) -> Dict[int, List[PlacementRecord]]:
        """Group placements by interior id, keeping file order."""
        groups: Dict[int, List[PlacementRecord]] = OrderedDict()
        for record in self._records:
            groups.setdefault(record.interior_id, []).append(record)
        return groups


@dataclass(frozen=True)
class ChunkHeader:
    """RenderWare chunk header (12 bytes).

    ``offset`` is where the header starts in the buffer it was read from.
    """

    kind: int
    byte_length: int
    library_stamp: int
    offset: int = 0

    @property
    def payload_offset(self) -> int:
        return self.offset + 12

    @property
    def end_offset(self) -> int:
        return self.payload_offset + self.byte_length


@dataclass
class Chunk:
    """Node of a decoded chunk tree.

    Container chunks have their payload split into ``children`` and keep an
    empty ``payload``; every other chunk keeps its bytes opaque.
    """

    kind: int
    byte_length: int
    library_stamp: int
    payload: bytes
    depth: int = 0
    children: List["Chunk"] = field(default_factory=list)

    def find(self, kind: int) -> Optional["Chunk"]:
        """Return the first direct child of the given kind."""
        return next((c for c in self.children if c.kind == kind), None)

    def find_all(self, kind: int) -> List["Chunk"]:
        """Return every direct child of the given kind, in order."""
        return [c for c in self.children if c.kind == kind]
