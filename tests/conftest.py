"""Global test fixtures for the tlsdid test suite."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from tlsdid.clients.registry import InMemoryRegistry
from tlsdid.clients.resolver import RegistryResolver
from tlsdid.core.config import TLSDIDSettings
from tlsdid.crypto.signing import PemSigningService
from tlsdid.flow import TLSDIDFlow

REGISTRY_ADDRESS = "0x" + "ab" * 20
RPC_URL = "http://localhost:8545"
DOMAIN = "tls-did.de"

# ============================================================================
# Certificate chain
# ============================================================================


@dataclass
class PKIBundle:
    """Throwaway root -> intermediate -> leaf chain for ``DOMAIN``."""

    root_pem: str
    intermediate_pem: str
    leaf_pem: str
    leaf_key_pem: str

    @property
    def chain(self) -> list[str]:
        """Leaf-first chain without the root, as published."""
        return [self.leaf_pem, self.intermediate_pem]

    @property
    def full_chain(self) -> list[str]:
        return [self.leaf_pem, self.intermediate_pem, self.root_pem]


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _certificate(subject: str, issuer: str, public_key, signing_key, ca: bool) -> x509.Certificate:
    now = datetime.now(UTC)
    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(subject))
        .issuer_name(_name(issuer))
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if not ca:
        builder = builder.add_extension(x509.SubjectAlternativeName([x509.DNSName(subject)]), critical=False)
    return builder.sign(signing_key, hashes.SHA256())


def _pem(certificate: x509.Certificate) -> str:
    return certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


def _key_pem(key) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")


def make_pki(domain: str = DOMAIN) -> PKIBundle:
    root_key = ec.generate_private_key(ec.SECP256R1())
    intermediate_key = ec.generate_private_key(ec.SECP256R1())
    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    root = _certificate("Test Root CA", "Test Root CA", root_key.public_key(), root_key, ca=True)
    intermediate = _certificate("Test Intermediate CA", "Test Root CA", intermediate_key.public_key(), root_key, ca=True)
    leaf = _certificate(domain, "Test Intermediate CA", leaf_key.public_key(), intermediate_key, ca=False)
    return PKIBundle(
        root_pem=_pem(root),
        intermediate_pem=_pem(intermediate),
        leaf_pem=_pem(leaf),
        leaf_key_pem=_key_pem(leaf_key),
    )


@pytest.fixture(scope="session")
def pki() -> PKIBundle:
    return make_pki()


# ============================================================================
# Settings and collaborators
# ============================================================================


@pytest.fixture()
def settings() -> TLSDIDSettings:
    return TLSDIDSettings(registry_address=REGISTRY_ADDRESS, rpc_url=RPC_URL, _env_file=None)


@pytest.fixture()
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture()
def resolver(registry: InMemoryRegistry) -> RegistryResolver:
    return RegistryResolver(registry)


@pytest.fixture()
def signer() -> PemSigningService:
    return PemSigningService()


class StaticKeyMaterial:
    """Key material held in memory."""

    def __init__(self, pki: PKIBundle) -> None:
        self._pki = pki

    def get_cert_chain(self) -> list[str]:
        return list(self._pki.chain)

    def get_private_key(self) -> str:
        return self._pki.leaf_key_pem


@pytest.fixture()
def flow(settings, registry, signer, resolver, pki) -> TLSDIDFlow:
    return TLSDIDFlow(
        settings,
        registry=registry,
        signer=signer,
        resolver=resolver,
        key_material=StaticKeyMaterial(pki),
    )
