# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""tlsdid - TLS-certificate-backed DIDs on a blockchain registry.

Registers a domain claim on the registry, publishes the domain's TLS
certificate chain, builds the DID Document from attribute paths, signs it
with the TLS private key and resolves it back as ``did:tls:<domain>``.

Architecture:
  AttributePath (parse "arrayA[0]/element")
    -> DocumentBuilder (nested draft, shape-checked)
    -> IdentityLifecycle (register -> chain -> attributes -> expiry -> sign -> delete)
    -> BenchmarkRunner (resolution latency under registry contention)

Registry, resolver and signer are collaborators behind small protocols
(see ``tlsdid.clients`` and ``tlsdid.crypto``).

CLI entry point: ``tlsdid``
"""

__version__ = "1.0.0"
