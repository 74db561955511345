"""Exceptions raised while decoding IPL and DFF assets.

Every error is fatal to the decode call that raised it. They all derive
from ``ValueError`` so callers that only care about "bad input" can catch
that.
"""
from typing import Optional


class DecodeError(ValueError):
    """Base class for IPL/DFF decode failures."""


class MissingRequiredSection(DecodeError):
    """Placement list lacks a section that must be present."""

    def __init__(self, section: str):
        self.section = section
        super().__init__(f"Required section missing: {section!r}")


class MalformedLine(DecodeError):
    """A placement list line has the wrong shape or a bad number."""

    def __init__(self, line_number: int, line: str, reason: str):
        self.line_number = line_number
        self.line = line
        self.reason = reason
        super().__init__(f"Line {line_number}: {reason}: {line!r}")


class TruncatedChunk(DecodeError):
    """Chunk header or payload runs past the end of its enclosing buffer."""

    def __init__(self, offset: int, declared: int, available: int, kind: Optional[int] = None):
        self.offset = offset
        self.kind = kind
        self.declared = declared
        self.available = available
        what = "header" if kind is None else f"chunk 0x{kind:X}"
        super().__init__(
            f"Truncated {what} at offset {offset}: "
            f"needs {declared} bytes, {available} available"
        )


class InsufficientRecordBytes(DecodeError):
    """A fixed-width record was given fewer bytes than its layout needs."""

    def __init__(self, record: str, expected: int, available: int):
        self.record = record
        self.expected = expected
        self.available = available
        super().__init__(
            f"{record} needs {expected} bytes, only {available} available"
        )


class ChunkNestingTooDeep(DecodeError):
    """Container chunks are nested deeper than the configured budget."""

    def __init__(self, depth: int, limit: int):
        self.depth = depth
        self.limit = limit
        super().__init__(f"Chunk nesting depth {depth} exceeds limit {limit}")
