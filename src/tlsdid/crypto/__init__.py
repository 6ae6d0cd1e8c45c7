"""Signing and key material for TLS-DID documents."""

from tlsdid.crypto.keys import FileKeyMaterial, KeyMaterialSource, split_pem_chain
from tlsdid.crypto.signing import (
    PemSigningService,
    SigningService,
    canonical_bytes,
    verify_signature,
)

__all__ = [
    "FileKeyMaterial",
    "KeyMaterialSource",
    "PemSigningService",
    "SigningService",
    "canonical_bytes",
    "split_pem_chain",
    "verify_signature",
]
