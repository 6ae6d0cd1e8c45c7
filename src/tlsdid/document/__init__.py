"""DID Document drafting: attribute paths and the patch builder."""

from tlsdid.document.builder import DocumentBuilder, apply_operation, build_document
from tlsdid.document.paths import AttributePath, PatchOperation, PathSegment, parse

__all__ = [
    "AttributePath",
    "DocumentBuilder",
    "PatchOperation",
    "PathSegment",
    "apply_operation",
    "build_document",
    "parse",
]
