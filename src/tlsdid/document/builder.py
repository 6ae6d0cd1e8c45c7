"""Accumulate attribute patches into a nested DID Document draft.

The draft is plain JSON-shaped data: ``dict`` for objects, ``list`` for
arrays, ``str`` for leaves. Applying a patch never changes the shape of
anything that already exists: objects stay objects, arrays stay arrays and
leaves stay leaves. Array elements are introduced in order; an index equal to
the current length appends, a smaller one reuses the element, a larger one is
a gap and is rejected.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any

from tlsdid.core.exceptions import ShapeError
from tlsdid.document.paths import PatchOperation, PathSegment

Draft = dict[str, Any]


def _kind(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    return "value"


def _array_slot(container: dict, segment: PathSegment, index: int, path: str) -> list:
    existing = container.get(segment.name)
    if existing is None:
        existing = container[segment.name] = []
    elif not isinstance(existing, list):
        raise ShapeError(
            f"{segment.name!r} is an {_kind(existing)}, not an array",
            path=path,
            segment=str(segment),
        )
    if index > len(existing):
        raise ShapeError(
            f"Index {index} of {segment.name!r} skips elements (length {len(existing)})",
            path=path,
            segment=str(segment),
        )
    return existing


def _descend(container: dict, segment: PathSegment, path: str) -> dict:
    """Return the object addressed by a non-terminal segment, creating it if absent."""
    if segment.index is None:
        child = container.get(segment.name)
        if child is None:
            child = container[segment.name] = {}
    else:
        array = _array_slot(container, segment, segment.index, path)
        if segment.index == len(array):
            array.append({})
        child = array[segment.index]
    if not isinstance(child, dict):
        raise ShapeError(
            f"Segment {str(segment)!r} holds an {_kind(child)}, not an object",
            path=path,
            segment=str(segment),
        )
    return child


def _assign(container: dict, segment: PathSegment, value: str, path: str) -> None:
    if segment.index is None:
        existing = container.get(segment.name)
        if isinstance(existing, (dict, list)):
            raise ShapeError(
                f"Cannot overwrite {_kind(existing)} {segment.name!r} with a value",
                path=path,
                segment=str(segment),
            )
        container[segment.name] = value
        return

    array = _array_slot(container, segment, segment.index, path)
    if segment.index == len(array):
        array.append(value)
        return
    if isinstance(array[segment.index], (dict, list)):
        raise ShapeError(
            f"Cannot overwrite {_kind(array[segment.index])} at {str(segment)!r} with a value",
            path=path,
            segment=str(segment),
        )
    array[segment.index] = value


def apply_operation(draft: Draft, operation: PatchOperation) -> Draft:
    """Apply one patch and return the resulting draft.

    The input draft is left untouched, so a failing patch leaves no partial
    structure behind.

    Raises:
        ShapeError: If the path conflicts with the existing structure.
    """
    result = copy.deepcopy(draft)
    path = str(operation.path)
    *parents, leaf = operation.path.segments
    container = result
    for segment in parents:
        container = _descend(container, segment, path)
    _assign(container, leaf, operation.value, path)
    return result


class DocumentBuilder:
    """Mutable holder for a draft built from a sequence of patches.

    Example::

        builder = DocumentBuilder()
        builder.apply(PatchOperation.from_strings("parent/child", "value"))
        builder.draft  # {"parent": {"child": "value"}}
    """

    def __init__(self, draft: Draft | None = None) -> None:
        self._draft: Draft = copy.deepcopy(draft) if draft else {}

    @property
    def draft(self) -> Draft:
        return copy.deepcopy(self._draft)

    def apply(self, operation: PatchOperation) -> Draft:
        self._draft = apply_operation(self._draft, operation)
        return self.draft

    def apply_all(self, operations: Iterable[PatchOperation]) -> Draft:
        for operation in operations:
            self.apply(operation)
        return self.draft

    def check(self, operation: PatchOperation) -> None:
        """Raise :class:`ShapeError` if ``operation`` would not apply, without applying it."""
        apply_operation(self._draft, operation)


def build_document(operations: Iterable[PatchOperation]) -> Draft:
    """Build a draft from scratch."""
    return DocumentBuilder().apply_all(operations)
