"""Command-line interface for the TLS-DID flow."""
