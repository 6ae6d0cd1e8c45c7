"""Document signing with a TLS private key.

The signed message is the document in JSON Canonicalization Scheme form
(RFC 8785): compact UTF-8 with keys ordered by UTF-16 code units. Supported
keys are the ones TLS certificates carry: RSA (PKCS#1 v1.5, SHA-256), EC
(ECDSA, SHA-256) and Ed25519. Signatures are base64 strings.
"""

from __future__ import annotations

import base64
from typing import Any, Protocol

import rfc8785
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa


class SigningService(Protocol):
    """Produces a signature over a document."""

    def sign(self, document: dict[str, Any], private_key_pem: str) -> str: ...


def canonical_bytes(document: dict[str, Any]) -> bytes:
    """RFC 8785 (JCS) serialization used as the signed message."""
    return rfc8785.dumps(document)


def load_private_key(private_key_pem: str, password: bytes | None = None) -> Any:
    """Load a PEM private key.

    Raises:
        ValueError: If the PEM cannot be loaded or the key type is unsupported.
    """
    try:
        key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=password)
    except (TypeError, UnsupportedAlgorithm) as e:
        raise ValueError(f"Cannot load private key: {e}") from e
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
        raise ValueError(f"Unsupported private key type: {type(key).__name__}")
    return key


class PemSigningService:
    """:class:`SigningService` over PEM-encoded TLS private keys."""

    def sign(self, document: dict[str, Any], private_key_pem: str) -> str:
        key = load_private_key(private_key_pem)
        message = canonical_bytes(document)
        if isinstance(key, rsa.RSAPrivateKey):
            signature = key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(key, ec.EllipticCurvePrivateKey):
            signature = key.sign(message, ec.ECDSA(hashes.SHA256()))
        else:
            signature = key.sign(message)
        return base64.b64encode(signature).decode("ascii")


def verify_signature(document: dict[str, Any], signature: str, certificate_pem: str) -> bool:
    """Check ``signature`` over ``document`` against a certificate's public key."""
    try:
        certificate = x509.load_pem_x509_certificate(certificate_pem.encode("utf-8"))
        raw = base64.b64decode(signature, validate=True)
    except ValueError:
        return False
    public_key = certificate.public_key()
    message = canonical_bytes(document)
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(raw, message, padding.PKCS1v15(), hashes.SHA256())
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(raw, message, ec.ECDSA(hashes.SHA256()))
        elif isinstance(public_key, ed25519.Ed25519PublicKey):
            public_key.verify(raw, message)
        else:
            return False
    except InvalidSignature:
        return False
    return True
