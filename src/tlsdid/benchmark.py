"""Resolution benchmark under growing registry contention.

One signed identity is created for the domain, then resolution is timed
once per key reference; between iterations another, unsigned, claim on the
same domain is added. Every claim is deleted at the end.

Timing is plain wall-clock per resolution with no warm-up or smoothing. A
failed resolution is still timed and reported, marked as failed.
"""

from __future__ import annotations

import csv
import logging
import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from tlsdid.core.exceptions import ResolutionError, TLSDIDException
from tlsdid.flow import DEFAULT_EXPIRY, demo_attributes

if TYPE_CHECKING:
    from tlsdid.flow import TLSDIDFlow
    from tlsdid.identity.records import IdentityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionTiming:
    """Wall-clock duration of one resolution."""

    duration_ms: float
    succeeded: bool = True
    error: str | None = None


class BenchmarkRunner:
    """Runs the contention benchmark through a :class:`~tlsdid.flow.TLSDIDFlow`.

    Args:
        flow: Flow used to create, resolve and delete identities.
        cert_chain: Chain published for every identity; read from the flow's
            key material when omitted.
        attributes: Attributes added to every identity; defaults to the demo set.
        expiry: Expiry set on every identity; defaults to the flow default.
    """

    def __init__(
        self,
        flow: TLSDIDFlow,
        cert_chain: list[str] | None = None,
        attributes: Iterable[tuple[str, str]] | None = None,
        expiry: datetime | None = None,
    ) -> None:
        self.flow = flow
        self.cert_chain = cert_chain
        self.attributes = list(attributes) if attributes is not None else None
        self.expiry = expiry

    async def _create(self, domain: str, key_ref: str, valid: bool) -> IdentityRecord:
        attributes = self.attributes if self.attributes is not None else demo_attributes(domain)
        return await self.flow.create_and_publish_identity(
            domain,
            key_ref,
            cert_chain=self.cert_chain,
            attributes=attributes,
            expiry=self.expiry or DEFAULT_EXPIRY,
            sign=valid,
        )

    async def _timed_resolve(self, domain: str) -> ResolutionTiming:
        t0 = time.perf_counter()
        try:
            document = await self.flow.resolve_identity(domain)
        except ResolutionError as e:
            t1 = time.perf_counter()
            logger.error(f"Error while resolving did: {e.message}")
            timing = ResolutionTiming(duration_ms=(t1 - t0) * 1000, succeeded=False, error=e.message)
        else:
            t1 = time.perf_counter()
            logger.debug(f"DID Document: {document}")
            timing = ResolutionTiming(duration_ms=(t1 - t0) * 1000)
        logger.info(
            f"Resolving DID took {timing.duration_ms} milliseconds.",
            extra={"domain": domain, "duration_ms": timing.duration_ms, "succeeded": timing.succeeded},
        )
        return timing

    async def run(self, domain: str, key_refs: Sequence[str]) -> list[ResolutionTiming]:
        """Run the benchmark.

        Args:
            domain: Domain every identity claims.
            key_refs: One claimant per iteration; the first one signs.

        Returns:
            One timing per key reference, in order.
        """
        timings: list[ResolutionTiming] = []
        if not key_refs:
            return timings

        # identities that fail halfway are tracked by the flow too
        existing = {record.record_id for record in self.flow.identities}
        try:
            await self._create(domain, key_refs[0], valid=True)
            for i in range(len(key_refs)):
                timings.append(await self._timed_resolve(domain))
                if i + 1 < len(key_refs):
                    await self._create(domain, key_refs[i + 1], valid=False)
            logger.info(f"Timings (ms): {[t.duration_ms for t in timings]}")
        finally:
            await self._cleanup([r for r in self.flow.identities if r.record_id not in existing])
        return timings

    async def _cleanup(self, records: list[IdentityRecord]) -> None:
        logger.info("Deleting TLS-DID")
        for record in records:
            try:
                await self.flow.delete_identity(record)
            except TLSDIDException as e:
                logger.warning(f"Could not delete identity {record.record_id}: {e.message}")


def write_timings_csv(timings: Sequence[ResolutionTiming], path: str | Path) -> None:
    """Write one row per iteration: iteration, duration_ms, succeeded, error."""
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["iteration", "duration_ms", "succeeded", "error"])
        for i, timing in enumerate(timings):
            writer.writerow([i, f"{timing.duration_ms:.3f}", timing.succeeded, timing.error or ""])
