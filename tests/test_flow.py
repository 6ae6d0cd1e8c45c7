"""Tests for the caller-facing TLS-DID flow."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from tlsdid.core.exceptions import ChainError, LifecycleError, ResolutionError
from tlsdid.flow import DEFAULT_EXPIRY, TLSDIDFlow, demo_attributes
from tlsdid.identity.records import IdentityRecord, LifecycleState, RegistrationStatus

DOMAIN = "tls-did.de"
CLAIMANT = "0x" + "11" * 32


class TestDemoAttributes:
    def test_assertion_method_uses_domain(self):
        attributes = dict(demo_attributes("example.org"))
        assert attributes["assertionMethod[0]/id"] == "did:tls:example.org#keys-2"
        assert attributes["assertionMethod[0]/controller"] == "did:tls:example.org"
        assert attributes["parent/child"] == "value"

    def test_default_expiry(self):
        assert DEFAULT_EXPIRY == datetime(2040, 12, 12, tzinfo=UTC)


class TestCreateAndPublish:
    async def test_signed_identity_resolves(self, flow):
        record = await flow.create_and_publish_identity(DOMAIN, CLAIMANT, attributes=demo_attributes(DOMAIN))
        assert record.state == LifecycleState.SIGNED
        assert record.status == RegistrationStatus.REGISTERED
        assert record.expiry == DEFAULT_EXPIRY

        document = await flow.resolve_identity(DOMAIN)
        assert document["id"] == "did:tls:tls-did.de"
        assert document["assertionMethod"] == [
            {
                "id": "did:tls:tls-did.de#keys-2",
                "type": "Ed25519VerificationKey2018",
                "controller": "did:tls:tls-did.de",
                "publicKeyBase58": "H3C2AVvLMv6gmMNam3uVAjZpfkcJCwDwnZn6z3wXmqPV",
            }
        ]
        assert document["arrayA"] == [{"element": "value"}]

    async def test_unsigned_identity(self, flow):
        record = await flow.create_and_publish_identity(DOMAIN, CLAIMANT, sign=False)
        assert record.state == LifecycleState.EXPIRY_SET
        assert not record.signed
        with pytest.raises(ResolutionError):
            await flow.resolve_identity(DOMAIN)

    async def test_explicit_chain_and_key(self, flow, pki, registry):
        await flow.create_and_publish_identity(
            DOMAIN, CLAIMANT, cert_chain=pki.full_chain, private_key_pem=pki.leaf_key_pem
        )
        assert registry.claims(DOMAIN)[0].chain == pki.chain

    async def test_failure_keeps_identity_tracked(self, flow):
        with pytest.raises(ChainError):
            await flow.create_and_publish_identity(DOMAIN, CLAIMANT, cert_chain=[])
        (record,) = flow.identities
        assert record.state == LifecycleState.REGISTERED
        await flow.delete_identity(record)
        assert flow.identities == []

    async def test_requires_key_material(self, settings, registry, signer, resolver):
        flow = TLSDIDFlow(settings, registry=registry, signer=signer, resolver=resolver)
        with pytest.raises(LifecycleError, match="key material"):
            await flow.create_and_publish_identity(DOMAIN, CLAIMANT)


class TestDeleteIdentity:
    async def test_delete(self, flow, registry):
        record = await flow.create_and_publish_identity(DOMAIN, CLAIMANT)
        await flow.delete_identity(record)
        assert record.is_deleted
        assert registry.claims(DOMAIN) == []
        assert flow.identities == []

    async def test_delete_twice(self, flow):
        record = await flow.create_and_publish_identity(DOMAIN, CLAIMANT)
        await flow.delete_identity(record)
        with pytest.raises(LifecycleError, match="already deleted"):
            await flow.delete_identity(record)

    async def test_unknown_record(self, flow):
        with pytest.raises(LifecycleError, match="not created by this flow"):
            await flow.delete_identity(IdentityRecord(domain=DOMAIN, key_ref=CLAIMANT))


class TestResolveIdentity:
    async def test_wraps_resolver_errors(self, settings, registry, signer):
        resolver = AsyncMock()
        resolver.resolve.side_effect = RuntimeError("socket closed")
        flow = TLSDIDFlow(settings, registry=registry, signer=signer, resolver=resolver)
        with pytest.raises(ResolutionError) as exc_info:
            await flow.resolve_identity(DOMAIN)
        assert exc_info.value.did == "did:tls:tls-did.de"
        resolver.resolve.assert_awaited_once_with("did:tls:tls-did.de")
