"""Tests for the resolution benchmark."""

from __future__ import annotations

import csv
from unittest.mock import patch

import pytest

from tlsdid.benchmark import BenchmarkRunner, ResolutionTiming, write_timings_csv
from tlsdid.clients.registry import InMemoryRegistry
from tlsdid.core.exceptions import ParseError, RegistryClientError, ResolutionError

DOMAIN = "tls-did.de"


def _keys(n: int) -> list[str]:
    return [f"0x{i:064x}" for i in range(1, n + 1)]


class CountingRegistry(InMemoryRegistry):
    """In-memory registry counting registrations and deletions."""

    def __init__(self, fail_delete_for: set[str] | None = None) -> None:
        super().__init__()
        self.registered: list[str] = []
        self.deleted: list[str] = []
        self.fail_delete_for = fail_delete_for or set()

    async def register(self, domain, claimant):
        self.registered.append(claimant)
        return await super().register(domain, claimant)

    async def delete(self, domain, *, claimant):
        self.deleted.append(claimant)
        if claimant in self.fail_delete_for:
            raise RegistryClientError("execution reverted", rejected=True)
        return await super().delete(domain, claimant=claimant)


@pytest.fixture()
def registry() -> CountingRegistry:
    return CountingRegistry()


class TestBenchmarkRunner:
    @pytest.mark.parametrize("n", [1, 2, 5])
    async def test_counts(self, flow, registry, n):
        keys = _keys(n)
        timings = await flow.run_benchmark(DOMAIN, keys)
        assert len(timings) == n
        assert registry.registered == keys
        assert registry.deleted == keys
        assert registry.claims(DOMAIN) == []

    async def test_only_first_identity_signed(self, flow, registry):
        signed: list[bool] = []
        original = registry.delete

        async def _delete(domain, *, claimant):
            (claim,) = [c for c in registry.claims(domain) if c.claimant == claimant]
            signed.append(claim.signature is not None)
            return await original(domain, claimant=claimant)

        registry.delete = _delete
        await flow.run_benchmark(DOMAIN, _keys(3))
        assert signed == [True, False, False]

    async def test_unsigned_contenders_do_not_break_resolution(self, flow):
        timings = await flow.run_benchmark(DOMAIN, _keys(4))
        assert all(t.succeeded for t in timings)
        assert all(t.duration_ms >= 0 for t in timings)

    async def test_resolution_failures_still_timed(self, flow, registry):
        with patch.object(flow, "resolve_identity", side_effect=ResolutionError("signature mismatch", did="did:tls:x")):
            timings = await flow.run_benchmark(DOMAIN, _keys(3))
        assert len(timings) == 3
        assert [t.succeeded for t in timings] == [False, False, False]
        assert timings[0].error == "signature mismatch"
        assert registry.deleted == _keys(3)

    async def test_interleaving(self, flow, registry):
        events: list[str] = []
        original_resolve = flow.resolve_identity

        async def _resolve(domain):
            events.append(f"resolve@{len(registry.registered)}")
            return await original_resolve(domain)

        with patch.object(flow, "resolve_identity", side_effect=_resolve):
            await flow.run_benchmark(DOMAIN, _keys(3))
        assert events == ["resolve@1", "resolve@2", "resolve@3"]

    async def test_delete_failure_does_not_stop_cleanup(self, flow):
        keys = _keys(3)
        flow.registry.fail_delete_for = {keys[0]}
        timings = await flow.run_benchmark(DOMAIN, keys)
        assert len(timings) == 3
        assert flow.registry.deleted == keys
        assert [c.claimant for c in flow.registry.claims(DOMAIN)] == [keys[0]]

    async def test_connection_error_on_delete_does_not_stop_cleanup(self, flow, registry):
        keys = _keys(3)
        original = registry.delete
        attempts: list[str] = []

        async def _flaky_delete(domain, *, claimant):
            attempts.append(claimant)
            if len(attempts) == 1:
                raise ConnectionError("node went away")
            return await original(domain, claimant=claimant)

        registry.delete = _flaky_delete
        timings = await flow.run_benchmark(DOMAIN, keys)
        assert len(timings) == 3
        assert attempts == keys
        assert [c.claimant for c in registry.claims(DOMAIN)] == [keys[0]]

    async def test_cleanup_runs_when_provisioning_fails(self, flow, registry, pki):
        runner = BenchmarkRunner(flow, cert_chain=pki.chain, attributes=[("bad//path", "v")])
        keys = _keys(2)
        with pytest.raises(ParseError):
            await runner.run(DOMAIN, keys)
        assert registry.deleted == [keys[0]]
        assert registry.claims(DOMAIN) == []
        assert flow.identities == []

    async def test_empty_key_list(self, flow, registry):
        assert await flow.run_benchmark(DOMAIN, []) == []
        assert registry.registered == []

    async def test_custom_attributes(self, flow, pki):
        runner = BenchmarkRunner(flow, cert_chain=pki.chain, attributes=[("service[0]/id", "#hub")])
        timings = await runner.run(DOMAIN, _keys(1))
        assert timings[0].succeeded


class TestWriteTimingsCsv:
    def test_rows(self, tmp_path):
        path = tmp_path / "timings.csv"
        write_timings_csv(
            [ResolutionTiming(1.5), ResolutionTiming(2.25, succeeded=False, error="boom")],
            path,
        )
        with open(path, newline="") as f:
            rows = list(csv.reader(f))
        assert rows == [
            ["iteration", "duration_ms", "succeeded", "error"],
            ["0", "1.500", "True", ""],
            ["1", "2.250", "False", "boom"],
        ]
