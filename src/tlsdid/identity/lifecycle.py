"""Identity lifecycle: drives one claim through the publishing sequence.

The sequence mirrors what a claimant does on the registry::

    create -> register -> publish_chain -> add_attribute* -> set_expiry -> sign
    resolve (any time, state unchanged)
    delete (terminal)

Every step but ``create`` is a round-trip to an external collaborator and is
awaited to completion before the next one starts; a per-record
:class:`asyncio.Lock` keeps two steps on the same record from overlapping.
Collaborator failures are wrapped into :mod:`tlsdid.core.exceptions` kinds
before leaving this module.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from cryptography import x509

from tlsdid.core.exceptions import (
    ChainError,
    ExpiryError,
    LifecycleError,
    RegistrationError,
    RegistryClientError,
    ResolutionError,
    SubmissionError,
    TLSDIDException,
)
from tlsdid.core.logging import identity_context, truncate_secret
from tlsdid.document.builder import DocumentBuilder
from tlsdid.document.paths import PatchOperation, parse
from tlsdid.identity.records import (
    IdentityRecord,
    LifecycleState,
    RegistrationStatus,
    signed_payload,
)

if TYPE_CHECKING:
    from tlsdid.clients.registry import RegistryClient
    from tlsdid.clients.resolver import DIDResolver
    from tlsdid.core.config import TLSDIDSettings
    from tlsdid.crypto.signing import SigningService

logger = logging.getLogger(__name__)


def _as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def _load_certificate(pem: str, position: int) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(pem.encode("utf-8"))
    except (ValueError, TypeError, AttributeError) as e:
        raise ChainError(f"Certificate {position} of the chain is not a valid PEM certificate: {e}") from e


def strip_trust_anchor(chain: list[str]) -> list[str]:
    """Validate a leaf-first chain and drop a trailing self-signed root.

    The root is the resolver's trust anchor and is never published. A chain
    consisting of a single certificate is returned as-is.

    Raises:
        ChainError: If the chain is empty or a certificate does not parse.
    """
    if not chain:
        raise ChainError("Certificate chain is empty")
    certificates = [_load_certificate(pem, i) for i, pem in enumerate(chain)]
    last = certificates[-1]
    if len(certificates) > 1 and last.issuer == last.subject:
        return list(chain[:-1])
    return list(chain)


class IdentityLifecycle:
    """State machine for one identity claim.

    Typical workflow::

        lifecycle = IdentityLifecycle.create(
            "tls-did.de", claimant, settings,
            registry=registry, signer=signer, resolver=resolver,
        )
        await lifecycle.register()
        await lifecycle.publish_chain(chain)
        await lifecycle.add_attribute("parent/child", "value")
        await lifecycle.set_expiry(datetime(2040, 12, 12, tzinfo=UTC))
        await lifecycle.sign(private_key_pem)
        document = await lifecycle.resolve()
        await lifecycle.delete()
    """

    def __init__(
        self,
        record: IdentityRecord,
        *,
        registry: RegistryClient,
        signer: SigningService,
        resolver: DIDResolver,
    ) -> None:
        self.record = record
        self._registry = registry
        self._signer = signer
        self._resolver = resolver
        self._lock = asyncio.Lock()

    # -- construction -------------------------------------------------------

    @classmethod
    def create(
        cls,
        domain: str,
        key_ref: str,
        settings: TLSDIDSettings,
        *,
        registry: RegistryClient,
        signer: SigningService,
        resolver: DIDResolver,
    ) -> IdentityLifecycle:
        """Create an unregistered identity for ``domain`` claimed by ``key_ref``.

        Raises:
            ConfigError: If the registry address or RPC URL is missing or malformed.
        """
        settings.require_registry()
        record = IdentityRecord(domain=domain, key_ref=key_ref)
        with identity_context(record.record_id, record.did):
            logger.info(f"Created identity for {record.did} (claimant {truncate_secret(key_ref, 10)})")
        return cls(record, registry=registry, signer=signer, resolver=resolver)

    # -- state handling -----------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self.record.state

    def _require(self, operation: str, target: LifecycleState) -> None:
        """Check that ``operation`` may move the record to ``target``."""
        current = self.record.state
        if current == LifecycleState.DELETED:
            raise LifecycleError("already deleted", state=current.value, operation=operation)
        if target == LifecycleState.DELETED:
            return
        if target != LifecycleState.REGISTERED and self.record.status != RegistrationStatus.REGISTERED:
            raise LifecycleError(
                f"Cannot {operation}: identity is not registered",
                state=current.value,
                operation=operation,
            )
        repeatable = target == LifecycleState.ATTRIBUTED and current == LifecycleState.ATTRIBUTED
        if target.rank <= current.rank and not repeatable:
            raise LifecycleError(
                f"Cannot {operation} in state {current.value}",
                state=current.value,
                operation=operation,
            )

    def _require_not_deleted(self, operation: str) -> None:
        if self.record.state == LifecycleState.DELETED:
            raise LifecycleError("already deleted", state=self.record.state.value, operation=operation)

    # -- operations ---------------------------------------------------------

    async def register(self) -> None:
        """Claim the domain for this identity's key.

        Raises:
            RegistrationError: If the registry refuses the claim or the
                transaction fails.
        """
        async with self._lock:
            self._require("register", LifecycleState.REGISTERED)
            with identity_context(self.record.record_id, self.record.did):
                logger.info(f"Register claim for {self.record.domain}")
                try:
                    result = await self._registry.register(self.record.domain, self.record.key_ref)
                except RegistryClientError as e:
                    raise RegistrationError(
                        f"Registration of {self.record.domain} failed: {e}",
                        {"domain": self.record.domain, "rejected": e.rejected},
                    ) from e
                except Exception as e:
                    raise RegistrationError(
                        f"Registration of {self.record.domain} failed: {type(e).__name__}: {e}",
                        {"domain": self.record.domain, "rejected": False},
                    ) from e
                _log_receipt("register", result)
                self.record.status = RegistrationStatus.REGISTERED
                self.record.state = LifecycleState.REGISTERED
                logger.info(f"Is registered: {self.record.domain}")

    async def publish_chain(self, cert_chain: list[str]) -> None:
        """Publish the certificate chain, leaf first, without its root.

        Raises:
            ChainError: If the chain is empty or a certificate does not parse.
            SubmissionError: If the registry rejects the write.
        """
        async with self._lock:
            self._require("publish chain", LifecycleState.CHAIN_PUBLISHED)
            published = strip_trust_anchor(cert_chain)
            with identity_context(self.record.record_id, self.record.did):
                logger.info(f"Adding cert chain: {[truncate_secret(pem) for pem in published]}")
                await self._submit(
                    "publish chain",
                    self._registry.publish_chain(self.record.domain, published, claimant=self.record.key_ref),
                )
                self.record.cert_chain = published
                self.record.state = LifecycleState.CHAIN_PUBLISHED

    async def add_attribute(self, path: str, value: str) -> None:
        """Add one attribute to the DID Document.

        Raises:
            ParseError: If ``path`` is malformed.
            ShapeError: If ``path`` conflicts with attributes already added.
            SubmissionError: If the registry rejects the write.
        """
        async with self._lock:
            self._require("add attribute", LifecycleState.ATTRIBUTED)
            operation = PatchOperation(path=parse(path), value=value)
            builder = DocumentBuilder()
            builder.apply_all(self.record.attributes)
            builder.check(operation)
            with identity_context(self.record.record_id, self.record.did):
                logger.info(f"Adding attribute {path}")
                await self._submit(
                    "add attribute",
                    self._registry.write_attribute(
                        self.record.domain, str(operation.path), value, claimant=self.record.key_ref
                    ),
                )
                self.record.attributes.append(operation)
                self.record.state = LifecycleState.ATTRIBUTED

    async def set_expiry(self, timestamp: datetime) -> None:
        """Set the claim's expiry.

        Naive timestamps are taken as UTC.

        Raises:
            ExpiryError: If ``timestamp`` is not strictly in the future.
            SubmissionError: If the registry rejects the write.
        """
        async with self._lock:
            self._require("set expiry", LifecycleState.EXPIRY_SET)
            expiry = _as_utc(timestamp)
            now = datetime.now(UTC)
            if expiry <= now:
                raise ExpiryError(
                    f"Expiry {expiry.isoformat()} is not in the future",
                    {"expiry": expiry.isoformat(), "now": now.isoformat()},
                )
            with identity_context(self.record.record_id, self.record.did):
                logger.info(f"Setting expiry {expiry.isoformat()}")
                await self._submit(
                    "set expiry",
                    self._registry.set_expiry(self.record.domain, expiry, claimant=self.record.key_ref),
                )
                self.record.expiry = expiry
                self.record.state = LifecycleState.EXPIRY_SET

    def signing_payload(self) -> dict[str, Any]:
        """The published document state a signature covers."""
        return signed_payload(
            self.record.domain, self.record.expiry, self.record.cert_chain, self.record.attributes
        )

    async def sign(self, private_key_pem: str) -> str:
        """Sign the published document state and submit the signature.

        Returns:
            The submitted signature (base64).

        Raises:
            SubmissionError: If signing fails or the registry rejects the write.
        """
        async with self._lock:
            self._require("sign", LifecycleState.SIGNED)
            with identity_context(self.record.record_id, self.record.did):
                logger.info("Signing written data")
                try:
                    signature = self._signer.sign(self.signing_payload(), private_key_pem)
                except (ValueError, TypeError) as e:
                    raise SubmissionError(f"Could not sign document for {self.record.domain}: {e}") from e
                await self._submit(
                    "sign",
                    self._registry.set_signature(self.record.domain, signature, claimant=self.record.key_ref),
                )
                self.record.signature = signature
                self.record.signed = True
                self.record.state = LifecycleState.SIGNED
                return signature

    async def resolve(self) -> dict[str, Any]:
        """Resolve ``did:tls:<domain>`` through the resolver.

        Lifecycle state is not changed.

        Raises:
            ResolutionError: Wrapping any resolver failure.
        """
        async with self._lock:
            self._require_not_deleted("resolve")
            with identity_context(self.record.record_id, self.record.did):
                return await resolve_did(self._resolver, self.record.did)

    async def delete(self) -> None:
        """Delete the claim; the record becomes terminal.

        Raises:
            SubmissionError: If the registry rejects the deletion.
        """
        async with self._lock:
            self._require("delete", LifecycleState.DELETED)
            with identity_context(self.record.record_id, self.record.did):
                logger.info(f"Deleting TLS-DID claim for {self.record.domain}")
                if self.record.status == RegistrationStatus.REGISTERED:
                    await self._submit(
                        "delete",
                        self._registry.delete(self.record.domain, claimant=self.record.key_ref),
                    )
                self.record.status = RegistrationStatus.DELETED
                self.record.state = LifecycleState.DELETED

    async def _submit(self, operation: str, call: Any) -> Any:
        try:
            result = await call
        except RegistryClientError as e:
            raise SubmissionError(
                f"Registry rejected {operation} for {self.record.domain}: {e}",
                {"domain": self.record.domain, "operation": operation, "rejected": e.rejected},
            ) from e
        except Exception as e:
            raise SubmissionError(
                f"Registry call {operation} for {self.record.domain} failed: {type(e).__name__}: {e}",
                {"domain": self.record.domain, "operation": operation, "rejected": False},
            ) from e
        _log_receipt(operation, result)
        return result


def _log_receipt(operation: str, result: Any) -> None:
    tx_hash = getattr(result, "tx_hash", None)
    if tx_hash is None:
        return
    block_number = getattr(result, "block_number", None)
    logger.debug(
        f"{operation} confirmed in block {block_number}",
        extra={"operation": operation, "tx_hash": tx_hash, "block_number": block_number},
    )


async def resolve_did(resolver: DIDResolver, did: str) -> dict[str, Any]:
    """Resolve ``did``, wrapping every resolver failure in :class:`ResolutionError`."""
    logger.info(f"Resolving DID Document for did: {did}")
    try:
        return await resolver.resolve(did)
    except ResolutionError:
        raise
    except TLSDIDException as e:
        raise ResolutionError(f"Could not resolve {did}: {e.message}", did=did) from e
    except Exception as e:
        raise ResolutionError(f"Could not resolve {did}: {e}", did=did) from e
