# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Exception hierarchy for the TLS-DID flow.

Every error a caller can observe derives from :class:`TLSDIDException`.
Collaborator failures (registry transport, resolver) are raised by the
clients as :class:`CollaboratorError` subclasses and wrapped by the identity
lifecycle into the kinds below, so callers only depend on this module.
"""

from __future__ import annotations

from typing import Any


class TLSDIDException(Exception):  # noqa: N818
    """Base exception for all TLS-DID errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ParseError(TLSDIDException):
    """Raised when an attribute path string is malformed.

    Raised when:
    - The path or one of its segments is empty
    - A segment has unbalanced brackets
    - An index is not a non-negative integer
    """

    def __init__(self, message: str, path: str | None = None):
        details = {}
        if path is not None:
            details["path"] = path
        super().__init__(message, details)
        self.path = path


class ShapeError(TLSDIDException):
    """Raised when a patch conflicts with the existing document structure.

    Raised when:
    - A scalar or array sits where an object is needed, or vice versa
    - An array index would leave a gap
    """

    def __init__(self, message: str, path: str | None = None, segment: str | None = None):
        details = {}
        if path is not None:
            details["path"] = path
        if segment is not None:
            details["segment"] = segment
        super().__init__(message, details)
        self.path = path
        self.segment = segment


class ConfigError(TLSDIDException):
    """Raised when registry or RPC configuration is missing or malformed."""

    def __init__(self, message: str, invalid_settings: list[str] | None = None):
        details = {}
        if invalid_settings:
            details["invalid_settings"] = invalid_settings
        super().__init__(message, details)
        self.invalid_settings = invalid_settings or []


class RegistrationError(TLSDIDException):
    """Raised when the registry refuses a claim for a domain."""


class ChainError(TLSDIDException):
    """Raised when a certificate chain is empty or not PEM-parseable."""


class SubmissionError(TLSDIDException):
    """Raised when the registry rejects a write for a registered identity."""


class ExpiryError(TLSDIDException):
    """Raised when an expiry timestamp is not in the future."""


class ResolutionError(TLSDIDException):
    """Raised when a DID cannot be resolved to a document."""

    def __init__(self, message: str, did: str | None = None):
        details = {}
        if did is not None:
            details["did"] = did
        super().__init__(message, details)
        self.did = did


class LifecycleError(TLSDIDException):
    """Raised for operations on a deleted or out-of-order identity."""

    def __init__(self, message: str, state: str | None = None, operation: str | None = None):
        details: dict[str, Any] = {}
        if state is not None:
            details["state"] = state
        if operation is not None:
            details["operation"] = operation
        super().__init__(message, details)
        self.state = state
        self.operation = operation


# ---------------------------------------------------------------------------
# Collaborator errors (wrapped before they reach callers)
# ---------------------------------------------------------------------------


class CollaboratorError(Exception):
    """Base for failures reported by an external collaborator."""


class RegistryClientError(CollaboratorError):
    """Registry transport failure or on-chain rejection.

    ``rejected`` is true when the registry answered and refused the call, as
    opposed to the call never completing.
    """

    def __init__(self, message: str, rejected: bool = False, code: int | None = None):
        self.rejected = rejected
        self.code = code
        super().__init__(message)


class ResolverClientError(CollaboratorError):
    """Resolver failure: unknown domain, invalid chain or signature mismatch."""
