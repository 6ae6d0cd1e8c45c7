"""Identity record models for the TLS-DID lifecycle.

An :class:`IdentityRecord` mirrors one on-chain claim on a domain: who claims
it, the certificate chain published for it, its expiry and whether a
signature has been submitted. The record is owned by exactly one
:class:`~tlsdid.identity.lifecycle.IdentityLifecycle`.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tlsdid.core.logging import truncate_secret
from tlsdid.document.builder import build_document
from tlsdid.document.paths import PatchOperation

DID_METHOD_PREFIX = "did:tls:"


class RegistrationStatus(enum.StrEnum):
    """Registry-side status of a claim."""

    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    DELETED = "deleted"


class LifecycleState(enum.StrEnum):
    """Progress of an identity through the publishing sequence.

    States are ordered; transitions only move forward, except that
    ``ATTRIBUTED`` may be re-entered for every further attribute.
    """

    CREATED = "created"
    REGISTERED = "registered"
    CHAIN_PUBLISHED = "chainPublished"
    ATTRIBUTED = "attributed"
    EXPIRY_SET = "expirySet"
    SIGNED = "signed"
    DELETED = "deleted"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)


_STATE_ORDER = list(LifecycleState)


@dataclass
class IdentityRecord:
    """One identity claim on a domain.

    Attributes:
        domain: Domain the identity is bound to (``did:tls:<domain>``).
        key_ref: Reference to the claimant key controlling the claim.
        status: Registration status in the registry.
        state: Lifecycle state.
        cert_chain: Published PEM certificates, leaf first, root excluded.
        attributes: Patches submitted so far, in submission order.
        expiry: Expiry timestamp, once set.
        signed: Whether a signature over the document has been submitted.
        signature: The submitted signature (base64), if any.
        record_id: Local identifier, also used as logging correlation id.
    """

    domain: str
    key_ref: str
    status: RegistrationStatus = RegistrationStatus.UNREGISTERED
    state: LifecycleState = LifecycleState.CREATED
    cert_chain: list[str] = field(default_factory=list)
    attributes: list[PatchOperation] = field(default_factory=list)
    expiry: datetime | None = None
    signed: bool = False
    signature: str | None = None
    record_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def did(self) -> str:
        return f"{DID_METHOD_PREFIX}{self.domain}"

    @property
    def is_deleted(self) -> bool:
        return self.status == RegistrationStatus.DELETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "did": self.did,
            "domain": self.domain,
            "key_ref": truncate_secret(self.key_ref, 10),
            "status": self.status.value,
            "state": self.state.value,
            "cert_chain_length": len(self.cert_chain),
            "attributes": {str(op.path): op.value for op in self.attributes},
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "signed": self.signed,
        }


def signed_payload(
    domain: str,
    expiry: datetime | None,
    chain: list[str],
    attributes: Iterable[PatchOperation],
) -> dict[str, Any]:
    """The document state a claimant signs and a resolver verifies."""
    return {
        "domain": domain,
        "expiry": expiry.isoformat() if expiry else None,
        "chain": list(chain),
        "attributes": build_document(attributes),
    }
