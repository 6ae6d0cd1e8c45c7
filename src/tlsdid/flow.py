# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""TLS-DID flow: the operations callers use.

Wires settings, key material and the registry / signer / resolver
collaborators together and exposes:

- :meth:`TLSDIDFlow.create_and_publish_identity`
- :meth:`TLSDIDFlow.resolve_identity`
- :meth:`TLSDIDFlow.delete_identity`
- :meth:`TLSDIDFlow.run_benchmark`
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from tlsdid.clients.resolver import did_for_domain
from tlsdid.core.exceptions import LifecycleError
from tlsdid.core.logging import truncate_secret
from tlsdid.identity.lifecycle import IdentityLifecycle, resolve_did

if TYPE_CHECKING:
    from tlsdid.benchmark import ResolutionTiming
    from tlsdid.clients.registry import RegistryClient
    from tlsdid.clients.resolver import DIDResolver
    from tlsdid.core.config import TLSDIDSettings
    from tlsdid.crypto.keys import KeyMaterialSource
    from tlsdid.crypto.signing import SigningService
    from tlsdid.identity.records import IdentityRecord

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "tls-did.de"
DEFAULT_EXPIRY = datetime(2040, 12, 12, tzinfo=UTC)


def demo_attributes(domain: str) -> list[tuple[str, str]]:
    """Attributes the example and benchmark add to every document."""
    did = did_for_domain(domain)
    return [
        # {parent: {child: value}}
        ("parent/child", "value"),
        # {arrayA: [{element: value}]}
        ("arrayA[0]/element", "value"),
        # {arrayB: [value]}
        ("arrayB[0]", "value"),
        ("assertionMethod[0]/id", f"{did}#keys-2"),
        ("assertionMethod[0]/type", "Ed25519VerificationKey2018"),
        ("assertionMethod[0]/controller", did),
        ("assertionMethod[0]/publicKeyBase58", "H3C2AVvLMv6gmMNam3uVAjZpfkcJCwDwnZn6z3wXmqPV"),
    ]


class TLSDIDFlow:
    """Creates, publishes, resolves and deletes TLS-DID identities.

    Args:
        settings: Registry and RPC configuration.
        registry: Registry collaborator.
        signer: Signing collaborator.
        resolver: Resolver collaborator.
        key_material: Source of the certificate chain and TLS private key,
            used when a call does not pass them explicitly.
    """

    def __init__(
        self,
        settings: TLSDIDSettings,
        *,
        registry: RegistryClient,
        signer: SigningService,
        resolver: DIDResolver,
        key_material: KeyMaterialSource | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.signer = signer
        self.resolver = resolver
        self.key_material = key_material
        self._lifecycles: dict[str, IdentityLifecycle] = {}

    @property
    def identities(self) -> list[IdentityRecord]:
        """Records created through this flow and not yet deleted."""
        return [lc.record for lc in self._lifecycles.values()]

    def _require_key_material(self) -> KeyMaterialSource:
        if self.key_material is None:
            raise LifecycleError("No key material configured for this flow")
        return self.key_material

    async def create_and_publish_identity(
        self,
        domain: str,
        key_ref: str,
        cert_chain: list[str] | None = None,
        attributes: Iterable[tuple[str, str]] = (),
        expiry: datetime = DEFAULT_EXPIRY,
        sign: bool = True,
        private_key_pem: str | None = None,
    ) -> IdentityRecord:
        """Run register, chain, attributes, expiry and (optionally) signing.

        An identity created with ``sign=False`` stays resolvable on the
        registry but carries no signature, so resolvers treat it as invalid.

        Raises:
            ConfigError, RegistrationError, ChainError, ParseError, ShapeError,
            SubmissionError, ExpiryError: From the failing step; the identity
            stays tracked in :attr:`identities` for cleanup.
        """
        lifecycle = IdentityLifecycle.create(
            domain,
            key_ref,
            self.settings,
            registry=self.registry,
            signer=self.signer,
            resolver=self.resolver,
        )
        self._lifecycles[lifecycle.record.record_id] = lifecycle

        if cert_chain is None:
            cert_chain = self._require_key_material().get_cert_chain()

        await lifecycle.register()
        await lifecycle.publish_chain(cert_chain)
        for path, value in attributes:
            await lifecycle.add_attribute(path, value)
        await lifecycle.set_expiry(expiry)
        if sign:
            if private_key_pem is None:
                private_key_pem = self._require_key_material().get_private_key()
            await lifecycle.sign(private_key_pem)
        return lifecycle.record

    async def resolve_identity(self, domain: str) -> dict[str, Any]:
        """Resolve ``did:tls:<domain>``.

        Raises:
            ResolutionError: If the resolver fails for any reason.
        """
        return await resolve_did(self.resolver, did_for_domain(domain))

    async def delete_identity(self, record: IdentityRecord) -> None:
        """Delete an identity created by this flow.

        Raises:
            LifecycleError: If the record is unknown to this flow or already deleted.
            SubmissionError: If the registry rejects the deletion.
        """
        lifecycle = self._lifecycles.get(record.record_id)
        if lifecycle is None:
            if record.is_deleted:
                raise LifecycleError("already deleted", state=record.state.value, operation="delete")
            raise LifecycleError(f"Identity {record.record_id} was not created by this flow", operation="delete")
        await lifecycle.delete()
        del self._lifecycles[record.record_id]

    async def run_benchmark(self, domain: str, key_refs: Sequence[str]) -> list[ResolutionTiming]:
        """Time resolution of ``domain`` while the number of claims on it grows.

        See :class:`~tlsdid.benchmark.BenchmarkRunner`.
        """
        from tlsdid.benchmark import BenchmarkRunner

        return await BenchmarkRunner(self).run(domain, key_refs)

    def log_configuration(self) -> None:
        logger.info(f"REGISTRY: {self.settings.registry_address}")
        logger.info(f"Json Rpc Url: {self.settings.rpc_url}")
        if self.settings.private_key:
            logger.info(f"Claimant key: {truncate_secret(self.settings.private_key, 10)}")
