# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Registry clients: where identity claims are written.

Two implementations of :class:`RegistryClient`:

- :class:`Web3RegistryClient` sends signed transactions to the registry
  contract on the chain behind ``rpc_url``.
- :class:`InMemoryRegistry` keeps claims in process; used for offline runs
  and tests, and readable by :class:`~tlsdid.clients.resolver.RegistryResolver`.

Several claimants may hold claims on the same domain at once; every call
after registration therefore names the claimant as well as the domain.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from tlsdid.core.exceptions import ConfigError, RegistryClientError

if TYPE_CHECKING:
    from tlsdid.core.config import TLSDIDSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxResult:
    """Outcome of a registry transaction."""

    tx_hash: str
    block_number: int | None = None


class RegistryClient(Protocol):
    """Write access to the TLS-DID registry."""

    async def register(self, domain: str, claimant: str) -> TxResult: ...
    async def publish_chain(self, domain: str, certs: list[str], *, claimant: str) -> TxResult: ...
    async def write_attribute(self, domain: str, path: str, value: str, *, claimant: str) -> TxResult: ...
    async def set_expiry(self, domain: str, timestamp: datetime, *, claimant: str) -> TxResult: ...
    async def set_signature(self, domain: str, signature: str, *, claimant: str) -> TxResult: ...
    async def delete(self, domain: str, *, claimant: str) -> TxResult: ...


# ---------------------------------------------------------------------------
# On-chain registry contract
# ---------------------------------------------------------------------------


def load_abi(path: str | Path) -> list[dict[str, Any]]:
    """Read a contract ABI from a JSON file.

    Accepts a bare ABI list or a build artifact with an ``abi`` member.

    Raises:
        ConfigError: If the file is missing or holds no ABI.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Registry ABI not found: {path}", invalid_settings=["registry_abi"]) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Registry ABI is not valid JSON: {path}: {e}", invalid_settings=["registry_abi"]) from e
    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ConfigError(f"No contract ABI in {path}", invalid_settings=["registry_abi"])
    return data


class Web3RegistryClient:
    """:class:`RegistryClient` sending signed transactions to the registry contract.

    Each call builds a transaction for one contract function, signs it
    locally with the claimant's Ethereum private key (the ``claimant``
    argument) and waits for the receipt. A reverted call or a receipt with
    ``status == 0`` is reported as a rejection.

    Args:
        rpc_url: Ethereum JSON-RPC endpoint.
        registry_address: Address of the deployed registry contract.
        abi: Registry contract ABI.
        timeout: Seconds to wait for each HTTP request and each receipt.
        w3: Pre-built ``AsyncWeb3`` instance; built from ``rpc_url`` when omitted.
    """

    # Client operation -> registry contract function.
    FUNCTIONS = {
        "register": "registerOwnership",
        "publish_chain": "addChain",
        "write_attribute": "addAttribute",
        "set_expiry": "setExpiry",
        "set_signature": "setSignature",
        "delete": "remove",
    }

    def __init__(
        self,
        rpc_url: str,
        registry_address: str,
        abi: list[dict[str, Any]],
        timeout: float = 30.0,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.registry_address = AsyncWeb3.to_checksum_address(registry_address)
        self.timeout = timeout
        if w3 is None:
            provider = AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)})
            w3 = AsyncWeb3(provider)
        self._w3 = w3
        self._contract = w3.eth.contract(address=self.registry_address, abi=abi)

    @classmethod
    def from_settings(cls, settings: TLSDIDSettings) -> Web3RegistryClient:
        if not settings.registry_abi:
            raise ConfigError("No registry ABI configured (registryAbi)", invalid_settings=["registry_abi"])
        return cls(
            settings.rpc_url,
            settings.registry_address,
            load_abi(settings.registry_abi),
            timeout=settings.request_timeout,
        )

    async def _transact(self, operation: str, claimant: str, *args: Any) -> TxResult:
        function = self.FUNCTIONS[operation]
        try:
            account = self._w3.eth.account.from_key(claimant)
        except ValueError as e:
            # never echo the key itself
            raise RegistryClientError(f"{function}: claimant is not a valid Ethereum private key") from e

        logger.debug(f"{function} from {account.address} -> {self.registry_address}")
        try:
            call = getattr(self._contract.functions, function)(*args)
            nonce = await self._w3.eth.get_transaction_count(account.address)
            tx = await call.build_transaction({"from": account.address, "nonce": nonce})
            signed = account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        except ContractLogicError as e:
            raise RegistryClientError(f"{function} reverted: {e}", rejected=True) from e
        except TimeExhausted as e:
            raise RegistryClientError(f"{function} was not mined within {self.timeout}s") from e
        except (Web3Exception, aiohttp.ClientError, TimeoutError, OSError, ValueError) as e:
            raise RegistryClientError(f"{function} failed on {self.rpc_url}: {e}") from e

        tx_hex = AsyncWeb3.to_hex(receipt["transactionHash"])
        if receipt["status"] != 1:
            raise RegistryClientError(
                f"{function} reverted in block {receipt['blockNumber']} ({tx_hex})",
                rejected=True,
            )
        return TxResult(tx_hash=tx_hex, block_number=receipt["blockNumber"])

    async def register(self, domain: str, claimant: str) -> TxResult:
        return await self._transact("register", claimant, domain)

    async def publish_chain(self, domain: str, certs: list[str], *, claimant: str) -> TxResult:
        return await self._transact("publish_chain", claimant, domain, certs)

    async def write_attribute(self, domain: str, path: str, value: str, *, claimant: str) -> TxResult:
        return await self._transact("write_attribute", claimant, domain, path, value)

    async def set_expiry(self, domain: str, timestamp: datetime, *, claimant: str) -> TxResult:
        return await self._transact("set_expiry", claimant, domain, int(timestamp.timestamp()))

    async def set_signature(self, domain: str, signature: str, *, claimant: str) -> TxResult:
        return await self._transact("set_signature", claimant, domain, signature)

    async def delete(self, domain: str, *, claimant: str) -> TxResult:
        return await self._transact("delete", claimant, domain)


# ---------------------------------------------------------------------------
# In-memory registry (offline runs / tests)
# ---------------------------------------------------------------------------


@dataclass
class Claim:
    """Registry-side view of one claim."""

    domain: str
    claimant: str
    chain: list[str] = field(default_factory=list)
    attributes: list[tuple[str, str]] = field(default_factory=list)
    expiry: datetime | None = None
    signature: str | None = None
    registered_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class InMemoryRegistry:
    """In-process :class:`RegistryClient`.

    Args:
        exclusive: When true, a domain may only be claimed by one claimant at
            a time and a second claim is rejected.
    """

    def __init__(self, exclusive: bool = False) -> None:
        self.exclusive = exclusive
        self._claims: dict[str, dict[str, Claim]] = {}
        self._blocks = itertools.count(1)

    def _receipt(self, *parts: Any) -> TxResult:
        block = next(self._blocks)
        digest = hashlib.sha256(f"{block}|{'|'.join(map(str, parts))}".encode()).hexdigest()
        return TxResult(tx_hash=f"0x{digest}", block_number=block)

    def _claim(self, domain: str, claimant: str) -> Claim:
        claim = self._claims.get(domain, {}).get(claimant)
        if claim is None:
            raise RegistryClientError(f"No claim on {domain} for this claimant", rejected=True)
        return claim

    def claims(self, domain: str) -> list[Claim]:
        """Claims on ``domain`` in registration order."""
        return list(self._claims.get(domain, {}).values())

    async def register(self, domain: str, claimant: str) -> TxResult:
        domain_claims = self._claims.setdefault(domain, {})
        if claimant in domain_claims:
            raise RegistryClientError(f"{domain} is already registered by this claimant", rejected=True)
        if self.exclusive and domain_claims:
            raise RegistryClientError(f"{domain} is already claimed by another key", rejected=True)
        domain_claims[claimant] = Claim(domain=domain, claimant=claimant)
        return self._receipt("register", domain, claimant)

    async def publish_chain(self, domain: str, certs: list[str], *, claimant: str) -> TxResult:
        self._claim(domain, claimant).chain = list(certs)
        return self._receipt("addChain", domain, claimant)

    async def write_attribute(self, domain: str, path: str, value: str, *, claimant: str) -> TxResult:
        self._claim(domain, claimant).attributes.append((path, value))
        return self._receipt("setAttribute", domain, claimant, path)

    async def set_expiry(self, domain: str, timestamp: datetime, *, claimant: str) -> TxResult:
        self._claim(domain, claimant).expiry = timestamp
        return self._receipt("setExpiry", domain, claimant)

    async def set_signature(self, domain: str, signature: str, *, claimant: str) -> TxResult:
        self._claim(domain, claimant).signature = signature
        return self._receipt("setSignature", domain, claimant)

    async def delete(self, domain: str, *, claimant: str) -> TxResult:
        self._claim(domain, claimant)
        del self._claims[domain][claimant]
        if not self._claims[domain]:
            del self._claims[domain]
        return self._receipt("delete", domain, claimant)
