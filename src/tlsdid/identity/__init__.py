"""Identity lifecycle for TLS-certificate-backed DIDs.

Key concepts:
- **IdentityRecord**: One claim on a domain in the registry.
- **IdentityLifecycle**: Drives a record through register, chain, attributes,
  expiry, signature and deletion.
"""

from tlsdid.identity.lifecycle import IdentityLifecycle, resolve_did, strip_trust_anchor
from tlsdid.identity.records import (
    IdentityRecord,
    LifecycleState,
    RegistrationStatus,
)

__all__ = [
    "IdentityLifecycle",
    "IdentityRecord",
    "LifecycleState",
    "RegistrationStatus",
    "resolve_did",
    "strip_trust_anchor",
]
