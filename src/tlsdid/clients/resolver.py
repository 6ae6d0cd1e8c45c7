"""DID resolvers for the ``did:tls`` method.

- :class:`HttpDIDResolver` asks a universal resolver
  (``GET {base}/1.0/identifiers/{did}``).
- :class:`RegistryResolver` resolves against an :class:`InMemoryRegistry`
  without network access. It picks the single claim on the domain whose
  signature verifies against its leaf certificate and that has not expired;
  it does not check the chain against a trust store.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol
from urllib.parse import quote

import httpx

from tlsdid.core.exceptions import ConfigError, ResolverClientError
from tlsdid.crypto.signing import verify_signature
from tlsdid.document.paths import PatchOperation
from tlsdid.identity.records import DID_METHOD_PREFIX, signed_payload

if TYPE_CHECKING:
    from tlsdid.clients.registry import Claim, InMemoryRegistry
    from tlsdid.core.config import TLSDIDSettings

logger = logging.getLogger(__name__)

DID_CONTEXT = "https://www.w3.org/ns/did/v1"


class DIDResolver(Protocol):
    """Resolves a DID string to its DID Document."""

    async def resolve(self, did: str) -> dict[str, Any]: ...


def did_for_domain(domain: str) -> str:
    return f"{DID_METHOD_PREFIX}{domain}"


def parse_did(did: str) -> str:
    """Return the domain of a ``did:tls:<domain>`` identifier.

    Raises:
        ResolverClientError: If ``did`` is not a ``did:tls`` identifier.
    """
    if not did.startswith(DID_METHOD_PREFIX) or len(did) == len(DID_METHOD_PREFIX):
        raise ResolverClientError(f"Not a did:tls identifier: {did!r}")
    return did[len(DID_METHOD_PREFIX) :]


# ---------------------------------------------------------------------------
# Universal resolver over HTTP
# ---------------------------------------------------------------------------


class HttpDIDResolver:
    """Resolver client for a universal-resolver style HTTP endpoint."""

    def __init__(self, base_url: str, timeout: float = 30.0, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: TLSDIDSettings) -> HttpDIDResolver:
        if not settings.resolver_url:
            raise ConfigError("No resolver URL configured (TLSDID_RESOLVER_URL)", invalid_settings=["resolver_url"])
        return cls(settings.resolver_url, timeout=settings.request_timeout)

    def _url(self, did: str) -> str:
        return f"{self.base_url}/1.0/identifiers/{quote(did, safe=':')}"

    async def resolve(self, did: str) -> dict[str, Any]:
        parse_did(did)
        url = self._url(did)
        try:
            if self._client is not None:
                resp = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(url)
        except httpx.TimeoutException as e:
            raise ResolverClientError(f"Resolving {did} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ResolverClientError(f"Cannot reach resolver at {self.base_url}: {e}") from e

        if resp.status_code == 404:
            raise ResolverClientError(f"{did} not found")
        if resp.status_code >= 400:
            raise ResolverClientError(f"Resolver returned HTTP {resp.status_code} for {did}: {resp.text[:200]}")
        try:
            body = resp.json()
        except json.JSONDecodeError as e:
            raise ResolverClientError(f"Resolver returned a non-JSON response for {did}") from e

        metadata = body.get("didResolutionMetadata") or {}
        if metadata.get("error"):
            raise ResolverClientError(f"Resolution of {did} failed: {metadata['error']}")
        document = body.get("didDocument", body)
        if not isinstance(document, dict) or not document:
            raise ResolverClientError(f"Resolver returned no document for {did}")
        return document


# ---------------------------------------------------------------------------
# Offline resolver over the in-memory registry
# ---------------------------------------------------------------------------


def claim_payload(claim: Claim) -> dict[str, Any]:
    """The document state a claimant signs for ``claim``."""
    return signed_payload(
        claim.domain,
        claim.expiry,
        claim.chain,
        (PatchOperation.from_strings(p, v) for p, v in claim.attributes),
    )


class RegistryResolver:
    """Resolver reading claims straight from an :class:`InMemoryRegistry`."""

    def __init__(self, registry: InMemoryRegistry) -> None:
        self._registry = registry

    def _is_valid(self, claim: Claim, now: datetime) -> bool:
        if not claim.signature or not claim.chain:
            return False
        if claim.expiry is not None and claim.expiry <= now:
            return False
        return verify_signature(claim_payload(claim), claim.signature, claim.chain[0])

    async def resolve(self, did: str) -> dict[str, Any]:
        domain = parse_did(did)
        claims = self._registry.claims(domain)
        if not claims:
            raise ResolverClientError(f"No claim registered for {domain}")

        now = datetime.now(UTC)
        valid = [c for c in claims if self._is_valid(c, now)]
        logger.debug(f"{len(valid)} of {len(claims)} claims on {domain} are valid")
        if not valid:
            raise ResolverClientError(f"No valid claim for {domain}: signatures missing, invalid or expired")
        if len(valid) > 1:
            raise ResolverClientError(f"Ambiguous resolution for {domain}: {len(valid)} valid claims")

        attributes = claim_payload(valid[0])["attributes"]
        return {"@context": DID_CONTEXT, **attributes, "id": did}
