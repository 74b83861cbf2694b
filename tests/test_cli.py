"""
Test CLI commands with click's CliRunner.

These tests drive the `whirlwind` command group in-process: tree
inspection, Prover.toml generation and checking, artifact splitting and
the local demo round trip.
"""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from whirlwind.cli import EXIT_VERIFICATION_FAILED, main
from whirlwind.field import pack_fields, to_hex
from whirlwind.hashing import get_default_hasher
from whirlwind.merkle import MerkleTree


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CONFIG", "DEPTH", "UNIT_AMOUNT", "ZERO_VALUE", "VERIFIER_BACKEND", "PARAMS_DIR"):
        monkeypatch.delenv(f"WHIRLWIND_{name}", raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_zero_root(runner):
    result = runner.invoke(main, ["zero-root", "--depth", "3"])
    assert result.exit_code == 0, result.output
    assert to_hex(MerkleTree(3).root()) in result.output


def test_tree_json(runner):
    result = runner.invoke(main, ["tree", "--depth", "3", "--json", "0x01", "0x02", "0x03", "0x04"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["index"] == 3
    assert data["pathIndices"] == [1, 1, 0]
    assert data["root"] == to_hex(MerkleTree(3, leaves=[1, 2, 3, 4]).root())


def test_tree_table(runner):
    result = runner.invoke(main, ["tree", "--depth", "2", "0x01", "--index", "0"])
    assert result.exit_code == 0, result.output
    assert "root: " + to_hex(MerkleTree(2, leaves=[1]).root()) in result.output


def test_tree_over_capacity(runner):
    result = runner.invoke(main, ["tree", "--depth", "1", "1", "2", "3"])
    assert result.exit_code == 1
    assert "full" in result.output


def test_tree_rejects_non_field_leaf(runner):
    result = runner.invoke(main, ["tree", "--depth", "2", "0xzz"])
    assert result.exit_code == 2
    assert "not valid hex" in result.output


class TestGenTomlAndCheck:
    """Witness generation followed by constraint checking."""

    def test_deposit(self, runner, tmp_path: Path):
        out = tmp_path / "deposit" / "Prover.toml"
        result = runner.invoke(
            main,
            ["gen-toml", "deposit", "--depth", "3", "--leaf", "0x05",
             "--id", "0x07", "--r", "0x0b", "--out", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert "index 1" in result.output
        assert 'id = "' + to_hex(7) + '"' in out.read_text()

        result = runner.invoke(main, ["check", "deposit", str(out), "--depth", "3"])
        assert result.exit_code == 0, result.output
        assert "deposit constraints satisfied" in result.output

    def test_deposit_with_random_secrets(self, runner, tmp_path: Path):
        out = tmp_path / "Prover.toml"
        result = runner.invoke(main, ["gen-toml", "deposit", "--depth", "2", "--out", str(out)])
        assert result.exit_code == 0, result.output
        result = runner.invoke(main, ["check", "deposit", str(out), "--depth", "2"])
        assert result.exit_code == 0, result.output

    def test_withdraw(self, runner, tmp_path: Path):
        commitment = to_hex(get_default_hasher().commit(7, 11))
        out = tmp_path / "withdraw" / "Prover.toml"
        result = runner.invoke(
            main,
            ["gen-toml", "withdraw", "--depth", "3", "--leaf", "0x05", "--leaf", commitment,
             "--leaf", "0x06", "--id", "0x07", "--r", "0x0b", "--out", str(out)],
        )
        assert result.exit_code == 0, result.output
        assert 'index = "' + to_hex(1) + '"' in out.read_text()

        result = runner.invoke(main, ["check", "withdraw", str(out), "--depth", "3"])
        assert result.exit_code == 0, result.output

    def test_withdraw_for_unknown_commitment(self, runner):
        result = runner.invoke(
            main,
            ["gen-toml", "withdraw", "--depth", "3", "--leaf", "0x05", "--id", "0x07", "--r", "0x0b"],
        )
        assert result.exit_code == 1
        assert "not in the tree" in result.output

    def test_check_reports_violations(self, runner, tmp_path: Path):
        out = tmp_path / "Prover.toml"
        runner.invoke(
            main,
            ["gen-toml", "deposit", "--depth", "3", "--id", "0x07", "--r", "0x0b", "--out", str(out)],
        )
        out.write_text(out.read_text().replace(f'r = "{to_hex(11)}"', f'r = "{to_hex(12)}"'))
        result = runner.invoke(main, ["check", "deposit", str(out), "--depth", "3"])
        assert result.exit_code == EXIT_VERIFICATION_FAILED
        assert "commitment != Hash(id, r)" in result.output

    def test_check_with_wrong_depth(self, runner, tmp_path: Path):
        out = tmp_path / "Prover.toml"
        runner.invoke(
            main,
            ["gen-toml", "deposit", "--depth", "3", "--id", "0x07", "--r", "0x0b", "--out", str(out)],
        )
        result = runner.invoke(main, ["check", "deposit", str(out), "--depth", "4"])
        assert result.exit_code == 1
        assert "old_path must have 4 elements" in result.output


def test_split_proof(runner, tmp_path: Path):
    artifact = tmp_path / "proof"
    artifact.write_bytes(pack_fields([21, 22]) + b"body-bytes")
    out_dir = tmp_path / "split"
    result = runner.invoke(main, ["split-proof", "withdraw", str(artifact), "--out-dir", str(out_dir)])
    assert result.exit_code == 0, result.output
    assert (out_dir / "proof_body").read_bytes() == b"body-bytes"
    assert (out_dir / "public_inputs").read_text().splitlines() == [to_hex(21), to_hex(22)]


def test_split_proof_resolves_artifact(runner, tmp_path: Path):
    artifact = tmp_path / "deposit_circuit" / "target" / "deposit_proof" / "proof"
    artifact.parent.mkdir(parents=True)
    artifact.write_bytes(pack_fields([1, 2, 3, 4]))
    result = runner.invoke(main, ["split-proof", "deposit", "--base-dir", str(tmp_path), "--binary"])
    assert result.exit_code == 0, result.output
    assert (artifact.parent / "public_inputs").read_bytes() == pack_fields([1, 2, 3, 4])


def test_split_proof_missing_artifact(runner, tmp_path: Path):
    result = runner.invoke(main, ["split-proof", "deposit", "--base-dir", str(tmp_path)])
    assert result.exit_code == 1
    assert "Unable to resolve" in result.output


def test_demo(runner):
    result = runner.invoke(main, ["demo", "--depth", "2", "--deposits", "3"])
    assert result.exit_code == 0, result.output
    assert "double spend rejected" in result.output
    assert "pool balance: 0" in result.output


def test_demo_over_capacity(runner):
    result = runner.invoke(main, ["demo", "--depth", "1", "--deposits", "3"])
    assert result.exit_code == 1
    assert "at most 2 deposits" in result.output


def test_show_config(runner, tmp_path: Path):
    path = tmp_path / "pool.yaml"
    path.write_text("pool:\n  depth: 4\n  verifier_backend: mock\n", encoding="utf-8")
    result = runner.invoke(main, ["show-config", "--config", str(path)])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["depth"] == 4
    assert data["verifier_backend"] == "mock"


def test_depth_from_environment(runner, monkeypatch):
    monkeypatch.setenv("WHIRLWIND_DEPTH", "2")
    result = runner.invoke(main, ["zero-root"])
    assert result.exit_code == 0, result.output
    assert to_hex(MerkleTree(2).root()) in result.output
