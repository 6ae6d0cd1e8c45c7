"""Tests for the tlsdid CLI.

Tests cover:
1. Argument parsing
2. Key reference files
3. Offline example and benchmark runs
4. Configuration failures
"""

from __future__ import annotations

import json
import logging
import os

import pytest

from tlsdid.cli import main as cli_main
from tlsdid.cli.main import app, main, read_key_refs

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run every command in an empty directory with no TLSDID_ variables."""
    for key in list(os.environ):
        if key.startswith("TLSDID_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture()
def ssl_dir(tmp_path, pki):
    base = tmp_path / "ssl"
    (base / "certs").mkdir(parents=True)
    (base / "private").mkdir()
    (base / "certs" / "cert.pem").write_text(pki.leaf_pem)
    (base / "certs" / "intermediateCert.pem").write_text(pki.intermediate_pem)
    (base / "private" / "privKey.pem").write_text(pki.leaf_key_pem)
    return base


# ============================================================================
# Parsing
# ============================================================================


class TestArgumentParsing:
    def test_example_defaults(self):
        args = app().parse_args(["example"])
        assert args.command == "example"
        assert args.domain == "tls-did.de"
        assert args.offline is False
        assert args.no_sign is False

    def test_benchmark_count(self):
        args = app().parse_args(["--offline", "benchmark", "--count", "4", "-o", "out.csv"])
        assert args.count == 4
        assert str(args.output) == "out.csv"

    def test_benchmark_needs_key_source(self):
        with pytest.raises(SystemExit):
            app().parse_args(["benchmark"])

    def test_benchmark_key_sources_exclusive(self):
        with pytest.raises(SystemExit):
            app().parse_args(["benchmark", "--keys", "k.txt", "--count", "2"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            app().parse_args([])


class TestReadKeyRefs:
    def test_skips_blanks_and_comments(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text("# claimants\n0xaa\n\n  0xbb  \n#0xcc\n")
        assert read_key_refs(path) == ["0xaa", "0xbb"]


# ============================================================================
# Commands
# ============================================================================


class TestExampleCommand:
    def test_offline_round_trip(self, ssl_dir, capsys):
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "example"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["identity"]["did"] == "did:tls:tls-did.de"
        assert result["identity"]["signed"] is True
        document = result["didDocument"]
        assert document["id"] == "did:tls:tls-did.de"
        assert document["parent"] == {"child": "value"}
        assert document["arrayB"] == ["value"]

    def test_unsigned_document_does_not_resolve(self, ssl_dir, capsys):
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "example", "--no-sign"]) == 0
        result = json.loads(capsys.readouterr().out)
        assert result["didDocument"] is None
        assert result["error"]["error"] == "ResolutionError"

    def test_custom_domain(self, ssl_dir, capsys):
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "--domain", "example.org", "example"]) == 0
        document = json.loads(capsys.readouterr().out)["didDocument"]
        assert document["id"] == "did:tls:example.org"
        assert document["assertionMethod"][0]["controller"] == "did:tls:example.org"

    def test_failed_signing_removes_claim(self, ssl_dir, capsys, monkeypatch):
        built = []

        def capture(args):
            flow = real_build_flow(args)
            built.append(flow)
            return flow

        real_build_flow = cli_main.build_flow
        monkeypatch.setattr(cli_main, "build_flow", capture)
        (ssl_dir / "private" / "privKey.pem").write_text("not a key\n")

        assert main(["--offline", "--log-level", "CRITICAL", "--ssl-dir", str(ssl_dir), "example"]) == 1
        assert json.loads(capsys.readouterr().err)["error"] == "SubmissionError"
        (flow,) = built
        assert flow.identities == []
        assert flow.registry.claims("tls-did.de") == []

    def test_missing_key_material(self, tmp_path, capsys):
        assert main(["--offline", "--log-level", "CRITICAL", "--ssl-dir", str(tmp_path / "missing"), "example"]) == 1
        error = json.loads(capsys.readouterr().err)
        assert error["error"] == "ConfigError"
        assert "cert.pem" in error["message"]

    def test_online_requires_registry(self, ssl_dir, capsys):
        assert main(["--log-level", "CRITICAL", "--ssl-dir", str(ssl_dir), "example"]) == 1
        error = json.loads(capsys.readouterr().err)
        assert error["error"] == "ConfigError"
        assert "registry_address" in error["details"]["invalid_settings"]
        assert "rpc_url" in error["details"]["invalid_settings"]

    def test_invalid_environment_file(self, tmp_path, ssl_dir, capsys):
        env = tmp_path / "environment.json"
        env.write_text("{not json")
        assert main(["--env", str(env), "--ssl-dir", str(ssl_dir), "example"]) == 1
        assert json.loads(capsys.readouterr().err)["error"] == "ConfigError"


class TestBenchmarkCommand:
    def test_offline_count(self, ssl_dir, tmp_path, capsys):
        output = tmp_path / "timings.csv"
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "benchmark", "--count", "3", "-o", str(output)]) == 0
        timings = json.loads(capsys.readouterr().out)
        assert len(timings) == 3
        assert all(t >= 0 for t in timings)
        rows = output.read_text().splitlines()
        assert rows[0] == "iteration,duration_ms,succeeded,error"
        assert len(rows) == 4

    def test_offline_key_file(self, ssl_dir, tmp_path, capsys):
        keys = tmp_path / "keys.txt"
        keys.write_text("\n".join(f"0x{i:064x}" for i in range(1, 3)))
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "benchmark", "--keys", str(keys)]) == 0
        assert len(json.loads(capsys.readouterr().out)) == 2

    def test_empty_key_file(self, ssl_dir, tmp_path, capsys):
        keys = tmp_path / "keys.txt"
        keys.write_text("# nothing here\n")
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "benchmark", "--keys", str(keys)]) == 1
        assert "No claimant keys" in capsys.readouterr().err

    def test_missing_key_file(self, ssl_dir, tmp_path, capsys):
        assert main(["--offline", "--ssl-dir", str(ssl_dir), "benchmark", "--keys", str(tmp_path / "nope.txt")]) == 1
        assert "Error:" in capsys.readouterr().err
