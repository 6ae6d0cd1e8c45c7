"""Key material on disk.

Layout under the configured SSL directory (leaf certificate first)::

    ssl/
      certs/cert.pem
      certs/intermediateCert.pem
      private/privKey.pem
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

from tlsdid.core.exceptions import ChainError, ConfigError
from tlsdid.core.logging import truncate_secret

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_FILES = ("certs/cert.pem", "certs/intermediateCert.pem")
DEFAULT_PRIVATE_KEY_FILE = "private/privKey.pem"

_PEM_CERT_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----",
    re.DOTALL,
)


class KeyMaterialSource(Protocol):
    """Supplies the TLS certificate chain and private key."""

    def get_cert_chain(self) -> list[str]: ...
    def get_private_key(self) -> str: ...


def split_pem_chain(data: str) -> list[str]:
    """Split text holding one or more PEM certificates into single blocks."""
    return [match.group(0) + "\n" for match in _PEM_CERT_RE.finditer(data)]


class FileKeyMaterial:
    """:class:`KeyMaterialSource` reading PEM files below ``ssl_dir``.

    Args:
        ssl_dir: Base directory.
        chain_files: Certificate files relative to ``ssl_dir``, leaf first.
            A file may hold several certificates.
        private_key_file: Private key file relative to ``ssl_dir``.
    """

    def __init__(
        self,
        ssl_dir: str | Path,
        chain_files: tuple[str, ...] | list[str] = DEFAULT_CHAIN_FILES,
        private_key_file: str = DEFAULT_PRIVATE_KEY_FILE,
    ) -> None:
        self.ssl_dir = Path(ssl_dir)
        self.chain_files = tuple(chain_files)
        self.private_key_file = private_key_file

    def _read(self, relative: str) -> str:
        path = self.ssl_dir / relative
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ConfigError(f"Key material not found: {path}") from e

    def get_cert_chain(self) -> list[str]:
        chain: list[str] = []
        for relative in self.chain_files:
            certs = split_pem_chain(self._read(relative))
            if not certs:
                raise ChainError(f"No PEM certificate in {self.ssl_dir / relative}")
            chain.extend(certs)
        return chain

    def get_private_key(self) -> str:
        pem = self._read(self.private_key_file)
        logger.info(f"TLS pem key: {truncate_secret(pem)}")
        return pem
