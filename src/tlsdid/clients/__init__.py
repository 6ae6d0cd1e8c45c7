"""External collaborators: registry and resolver clients."""

from tlsdid.clients.registry import (
    Claim,
    InMemoryRegistry,
    RegistryClient,
    TxResult,
    Web3RegistryClient,
    load_abi,
)
from tlsdid.clients.resolver import (
    DIDResolver,
    HttpDIDResolver,
    RegistryResolver,
    did_for_domain,
    parse_did,
)

__all__ = [
    "Claim",
    "DIDResolver",
    "HttpDIDResolver",
    "InMemoryRegistry",
    "RegistryClient",
    "RegistryResolver",
    "TxResult",
    "Web3RegistryClient",
    "did_for_domain",
    "load_abi",
    "parse_did",
]
