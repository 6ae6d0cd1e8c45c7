#!/usr/bin/env python3
"""
TLS-DID CLI - publish and resolve TLS-certificate-backed DIDs.

Commands:
  tlsdid example            Run the full example flow for one identity
  tlsdid benchmark          Time resolution while claims on a domain grow
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import secrets
import sys
from pathlib import Path

from tlsdid.benchmark import write_timings_csv
from tlsdid.cli.output import output_error, output_result
from tlsdid.clients.registry import InMemoryRegistry, Web3RegistryClient
from tlsdid.clients.resolver import HttpDIDResolver, RegistryResolver
from tlsdid.core.config import TLSDIDSettings, load_settings
from tlsdid.core.exceptions import ConfigError, ResolutionError, TLSDIDException
from tlsdid.core.logging import configure_logging
from tlsdid.crypto.keys import FileKeyMaterial
from tlsdid.crypto.signing import PemSigningService
from tlsdid.flow import DEFAULT_DOMAIN, DEFAULT_EXPIRY, TLSDIDFlow, demo_attributes

logger = logging.getLogger(__name__)


def app() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tlsdid",
        description="Publish and resolve TLS-certificate-backed DIDs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  tlsdid example --env environment.json           Register, publish, sign, resolve, delete
  tlsdid example --offline                        Same flow against an in-memory registry
  tlsdid benchmark --keys keys.txt --env publicEnv.json
  tlsdid benchmark --offline --count 10 -o timings.csv
        """,
    )
    parser.add_argument("--env", type=Path, help="Environment JSON (registryAddress, rpcUrl, privateKey)")
    parser.add_argument("--ssl-dir", help="Directory holding certs/ and private/ PEM files")
    parser.add_argument("--domain", default=DEFAULT_DOMAIN, help=f"Domain to claim (default {DEFAULT_DOMAIN})")
    parser.add_argument("--offline", action="store_true", help="Use an in-memory registry and resolver")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # example
    example_parser = subparsers.add_parser("example", help="Run the example flow for one identity")
    example_parser.add_argument("--key", help="Claimant key reference (default: privateKey from settings)")
    example_parser.add_argument("--no-sign", action="store_true", help="Skip signing the document")

    # benchmark
    bench_parser = subparsers.add_parser("benchmark", help="Benchmark resolution under contention")
    source = bench_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--keys", type=Path, help="File with one claimant key reference per line")
    source.add_argument("--count", type=int, help="Generate this many claimant keys (offline only)")
    bench_parser.add_argument("--output", "-o", type=Path, help="Write timings to CSV")

    return parser


def build_flow(args: argparse.Namespace) -> TLSDIDFlow:
    """Load settings and wire collaborators for the selected mode."""
    settings = load_settings(args.env, ssl_dir=args.ssl_dir)
    configure_logging(settings, level=args.log_level)
    key_material = FileKeyMaterial(settings.ssl_dir)

    if args.offline:
        if not settings.registry_address or not settings.rpc_url:
            # Placeholder registry coordinates; nothing is sent anywhere
            settings = settings.model_copy(
                update={
                    "registry_address": settings.registry_address or "0x" + "0" * 40,
                    "rpc_url": settings.rpc_url or "http://localhost:8545",
                }
            )
        registry = InMemoryRegistry()
        return TLSDIDFlow(
            settings,
            registry=registry,
            signer=PemSigningService(),
            resolver=RegistryResolver(registry),
            key_material=key_material,
        )

    settings.require_registry()
    return TLSDIDFlow(
        settings,
        registry=Web3RegistryClient.from_settings(settings),
        signer=PemSigningService(),
        resolver=HttpDIDResolver.from_settings(settings),
        key_material=key_material,
    )


def _claimant(args: argparse.Namespace, settings: TLSDIDSettings) -> str:
    key = args.key or settings.private_key
    if key:
        return key
    if args.offline:
        return "0x" + secrets.token_hex(32)
    raise ConfigError("No claimant key: pass --key or set privateKey", invalid_settings=["private_key"])


def read_key_refs(path: Path) -> list[str]:
    """Read claimant key references, one per line; blank lines and ``#`` comments skipped."""
    keys = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#"):
                keys.append(line)
    return keys


async def _delete_tracked(flow: TLSDIDFlow) -> None:
    for record in flow.identities:
        try:
            await flow.delete_identity(record)
        except TLSDIDException as e:
            logger.warning(f"Could not delete identity {record.record_id}: {e.message}")


async def _run_example(flow: TLSDIDFlow, args: argparse.Namespace) -> int:
    flow.log_configuration()
    domain = args.domain
    try:
        record = await flow.create_and_publish_identity(
            domain,
            _claimant(args, flow.settings),
            attributes=demo_attributes(domain),
            expiry=DEFAULT_EXPIRY,
            sign=not args.no_sign,
        )
        try:
            document = await flow.resolve_identity(domain)
        except ResolutionError as e:
            logger.error(f"Error while resolving did. {e.message}")
            output_result({"identity": record.to_dict(), "didDocument": None, "error": e.to_dict()})
        else:
            output_result({"identity": record.to_dict(), "didDocument": document})
    finally:
        await _delete_tracked(flow)
    return 0


def cmd_example(args: argparse.Namespace) -> int:
    """Register, publish chain and attributes, set expiry, sign, resolve, delete."""
    try:
        flow = build_flow(args)
        return asyncio.run(_run_example(flow, args))
    except TLSDIDException as e:
        output_error(e.to_dict())
        return 1


def cmd_benchmark(args: argparse.Namespace) -> int:
    """Run the resolution benchmark and print the timings."""
    try:
        flow = build_flow(args)
        if args.keys is not None:
            key_refs = read_key_refs(args.keys)
        elif args.offline:
            key_refs = ["0x" + secrets.token_hex(32) for _ in range(args.count)]
        else:
            raise ConfigError("--count generates throwaway keys and needs --offline")
        if not key_refs:
            raise ConfigError("No claimant keys to benchmark with")

        flow.log_configuration()
        timings = asyncio.run(flow.run_benchmark(args.domain, key_refs))
    except (TLSDIDException, OSError) as e:
        output_error(e.to_dict() if isinstance(e, TLSDIDException) else str(e))
        return 1

    if args.output:
        write_timings_csv(timings, args.output)
        logger.info(f"Wrote {len(timings)} timings to {args.output}")
    output_result([t.duration_ms for t in timings])
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = app()
    args = parser.parse_args(argv)

    commands = {
        "example": cmd_example,
        "benchmark": cmd_benchmark,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
