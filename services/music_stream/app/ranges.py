"""HTTP ``Range`` header resolution for single byte ranges."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import RangeNotSatisfiable

_RANGE_RE = re.compile(r"bytes=([0-9]+)-([0-9]*)")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total_length: int) -> str:
        return f"bytes {self.start}-{self.end}/{total_length}"


def resolve_range(header: str | None, total_length: int) -> ByteRange | None:
    """Resolve ``header`` against a resource of ``total_length`` bytes.

    Returns ``None`` when the whole resource should be served: no header,
    or one that does not match ``bytes=<start>-[<end>]`` with
    ``end >= start``. An end past the resource is clamped to the last
    byte. Raises :class:`RangeNotSatisfiable` when ``start`` lies beyond
    the resource.
    """

    if not header:
        return None
    match = _RANGE_RE.fullmatch(header.strip())
    if match is None:
        return None
    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else None
    if end is not None and end < start:
        return None
    if start >= total_length:
        raise RangeNotSatisfiable(total_length)
    if end is None or end >= total_length:
        end = total_length - 1
    return ByteRange(start, end)
