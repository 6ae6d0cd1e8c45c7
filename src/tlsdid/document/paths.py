"""Attribute paths addressing leaves of a DID Document draft.

A path is a ``/``-separated list of segments. A segment is either a field
name or a field name followed by an array index::

    parent/child
    arrayA[0]/element
    arrayB[0]
    assertionMethod[0]/publicKeyBase58

Indices are canonical non-negative integers (``0``, ``1``, ``12``; never
``01``, ``-1`` or ``+1``). Anything else is rejected with :class:`ParseError`
instead of being guessed at.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from tlsdid.core.exceptions import ParseError

SEPARATOR = "/"

_SEGMENT_RE = re.compile(r"^(?P<name>[^\[\]/]+)(?:\[(?P<index>0|[1-9][0-9]*)\])?$")


@dataclass(frozen=True)
class PathSegment:
    """One step of an attribute path.

    Attributes:
        name: Field name in the enclosing object.
        index: Position in the array stored under ``name``, or ``None`` for a
            plain field.
    """

    name: str
    index: int | None = None

    @property
    def is_array(self) -> bool:
        return self.index is not None

    def __str__(self) -> str:
        if self.index is None:
            return self.name
        return f"{self.name}[{self.index}]"


@dataclass(frozen=True)
class AttributePath:
    """A parsed attribute path; ``str()`` gives back the canonical string."""

    segments: tuple[PathSegment, ...]

    def __str__(self) -> str:
        return SEPARATOR.join(str(s) for s in self.segments)

    def __len__(self) -> int:
        return len(self.segments)


@dataclass(frozen=True)
class PatchOperation:
    """Assignment of a string value to the leaf addressed by ``path``."""

    path: AttributePath
    value: str

    @classmethod
    def from_strings(cls, path: str, value: str) -> PatchOperation:
        return cls(path=parse(path), value=value)


def _parse_segment(raw: str, path: str) -> PathSegment:
    if not raw:
        raise ParseError(f"Empty segment in attribute path {path!r}", path=path)
    if raw.count("[") != raw.count("]"):
        raise ParseError(f"Unbalanced brackets in segment {raw!r} of {path!r}", path=path)
    match = _SEGMENT_RE.match(raw)
    if match is None:
        if "[" in raw:
            raise ParseError(
                f"Invalid array index in segment {raw!r} of {path!r}; expected name[<non-negative integer>]",
                path=path,
            )
        raise ParseError(f"Malformed segment {raw!r} in attribute path {path!r}", path=path)
    index = match.group("index")
    return PathSegment(name=match.group("name"), index=int(index) if index is not None else None)


def parse(path: str) -> AttributePath:
    """Parse an attribute path string.

    Args:
        path: Path such as ``"arrayA[0]/element"``.

    Returns:
        The parsed :class:`AttributePath`.

    Raises:
        ParseError: If the path is empty, has an empty segment, unbalanced
            brackets, or a non-integer / negative / non-canonical index.
    """
    if not isinstance(path, str) or not path:
        raise ParseError("Attribute path must be a non-empty string", path=path if isinstance(path, str) else None)
    return AttributePath(segments=tuple(_parse_segment(raw, path) for raw in path.split(SEPARATOR)))
