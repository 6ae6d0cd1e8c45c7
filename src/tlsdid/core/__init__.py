"""Core infrastructure: settings, error taxonomy, logging."""

from tlsdid.core.config import TLSDIDSettings, load_settings
from tlsdid.core.exceptions import (
    ChainError,
    CollaboratorError,
    ConfigError,
    ExpiryError,
    LifecycleError,
    ParseError,
    RegistrationError,
    RegistryClientError,
    ResolutionError,
    ResolverClientError,
    ShapeError,
    SubmissionError,
    TLSDIDException,
)

__all__ = [
    "ChainError",
    "CollaboratorError",
    "ConfigError",
    "ExpiryError",
    "LifecycleError",
    "ParseError",
    "RegistrationError",
    "RegistryClientError",
    "ResolutionError",
    "ResolverClientError",
    "ShapeError",
    "SubmissionError",
    "TLSDIDException",
    "TLSDIDSettings",
    "load_settings",
]
