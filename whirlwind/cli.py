"""
Command-Line Interface for the Whirlwind pool.

Provides commands to inspect trees, generate and check circuit witness
files, split proof artifacts and run a local deposit/withdraw round trip.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .circuits import (
    CircuitType,
    WithdrawPublicInputs,
    WithdrawWitness,
    build_circuit,
    get_circuit_spec,
)
from .client import PoolClient
from .config import PoolConfig
from .exceptions import ConstraintViolation, DoubleSpend, WhirlwindError
from .factory import get_verifiers
from .field import to_field, to_hex
from .ledger import Ledger
from .merkle import MerkleTree
from .security import RandomnessSource
from .snark.artifacts import split_circuit_artifact, write_public_inputs_file
from .snark.assets import resolve_proof_artifact
from .witness_io import deposit_toml, load_toml, withdraw_toml, write_toml

EXIT_VERIFICATION_FAILED = 2

console = Console()


def setup_logging(level: str = "WARNING") -> None:
    """Configure logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _field_arg(ctx: click.Context, param: click.Parameter, value):
    if value is None:
        return None
    if isinstance(value, tuple):
        return tuple(_field_arg(ctx, param, item) for item in value)
    try:
        return to_field(value, param.name or "value")
    except WhirlwindError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param)


def _load_config(config_path: Optional[str], depth: Optional[int]) -> PoolConfig:
    try:
        config = PoolConfig.from_yaml(config_path) if config_path else PoolConfig.from_env()
        if depth is not None:
            config = config.with_overrides(depth=depth)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))
    return config


def _client_with_leaves(config: PoolConfig, leaves: Sequence[int]) -> PoolClient:
    client = PoolClient(config)
    for leaf in leaves:
        client.tree.insert(leaf)
    return client


def _emit(text: str, out: Optional[str]) -> None:
    if out:
        write_toml(out, text)
        click.echo(f"Wrote {out}")
    else:
        click.echo(text, nl=False)


config_option = click.option(
    "--config", "config_path", type=click.Path(exists=True, dir_okay=False),
    help="YAML pool configuration (default: WHIRLWIND_* environment variables)",
)
depth_option = click.option(
    "--depth", type=click.IntRange(1, 32), default=None,
    help="Tree depth (overrides the configuration)",
)
leaf_option = click.option(
    "--leaf", "leaves", multiple=True, callback=_field_arg,
    help="Commitment already in the tree, in index order (repeatable)",
)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Log level (default: WARNING)",
)
def main(log_level: str) -> None:
    """
    Whirlwind commitment pool tooling.

    Inspect the accumulator, generate Prover.toml witness files for the
    deposit and withdraw circuits, and run local round trips.
    """
    setup_logging(log_level)


@main.command("zero-root")
@config_option
@depth_option
def zero_root(config_path, depth):
    """Print the zero constant of every level and the empty-tree root."""
    config = _load_config(config_path, depth)
    tree = MerkleTree(config.depth, zero_value=config.zero_value)

    table = Table(title=f"Zero constants (depth {config.depth})")
    table.add_column("level", justify="right")
    table.add_column("value")
    for level, value in enumerate(tree.zeros):
        table.add_row(str(level), to_hex(value))
    console.print(table)
    click.echo(to_hex(tree.root()))


@main.command()
@config_option
@depth_option
@click.argument("leaves", nargs=-1, callback=_field_arg)
@click.option("--index", type=int, default=None, help="Slot to prove (default: last leaf)")
@click.option("--json", "as_json", is_flag=True, help="Print the proof as JSON")
def tree(config_path, depth, leaves, index, as_json):
    """
    Build a tree from LEAVES and print its root and one inclusion proof.

    Examples:

        whirlwind tree --depth 3 0x01 0x02 0x03 0x04
    """
    config = _load_config(config_path, depth)
    try:
        merkle = MerkleTree(config.depth, zero_value=config.zero_value, leaves=leaves)
        if index is None:
            index = max(merkle.total_leaves - 1, 0)
        proof = merkle.proof(index)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))

    if as_json:
        click.echo(json.dumps({"index": index, **proof.to_dict()}, indent=2))
        return

    table = Table(title=f"Inclusion proof for index {index}")
    table.add_column("level", justify="right")
    table.add_column("bit", justify="center")
    table.add_column("sibling")
    for level, (sibling, bit) in enumerate(zip(proof.path_elements, proof.path_indices)):
        table.add_row(str(level), str(bit), to_hex(sibling))
    console.print(table)
    click.echo(f"leaf: {to_hex(proof.leaf)}")
    click.echo(f"root: {to_hex(proof.root)}")


@main.group("gen-toml")
def gen_toml():
    """Generate Prover.toml witness files."""


@gen_toml.command("deposit")
@config_option
@depth_option
@leaf_option
@click.option("--id", "id_", callback=_field_arg, help="Secret identifier (random if omitted)")
@click.option("--r", "r", callback=_field_arg, help="Blinding factor (random if omitted)")
@click.option("--out", type=click.Path(dir_okay=False), help="Output file (default: stdout)")
def gen_toml_deposit(config_path, depth, leaves, id_, r, out):
    """Deposit witness for the next free slot after --leaf commitments."""
    config = _load_config(config_path, depth)
    rng = RandomnessSource()
    if id_ is None:
        id_ = rng.random_field_element()
    if r is None:
        r = rng.random_field_element()

    try:
        client = _client_with_leaves(config, leaves)
        prepared = client.prepare_deposit(id_, r)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))

    _emit(deposit_toml(prepared.witness, prepared.public_inputs), out)
    click.echo(
        f"index {prepared.record.index}; keep id and r secret to withdraw later",
        err=True,
    )


@gen_toml.command("withdraw")
@config_option
@depth_option
@leaf_option
@click.option("--id", "id_", required=True, callback=_field_arg, help="Secret identifier")
@click.option("--r", "r", required=True, callback=_field_arg, help="Blinding factor")
@click.option("--index", type=int, default=None, help="Slot of the deposit (default: search)")
@click.option("--out", type=click.Path(dir_okay=False), help="Output file (default: stdout)")
def gen_toml_withdraw(config_path, depth, leaves, id_, r, index, out):
    """Withdraw witness for Hash(id, r) against the tree of --leaf commitments."""
    config = _load_config(config_path, depth)
    try:
        client = _client_with_leaves(config, leaves)
        commitment = client.hasher.commit(id_, r)
        if index is None:
            index = client.tree.get_index(commitment)
            if index < 0:
                raise click.ClickException("Hash(id, r) is not in the tree")
        proof = client.tree.proof(index)
        if proof.leaf != commitment:
            raise click.ClickException(f"slot {index} does not hold Hash(id, r)")
        circuit = build_circuit(CircuitType.WITHDRAW, config.depth, zero_value=config.zero_value)
        witness = WithdrawWitness(r=r, index=index, path=proof.path_elements)
        public = WithdrawPublicInputs(root=proof.root, id=id_)
        circuit.assert_satisfied(witness, public)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))

    _emit(withdraw_toml(witness, public), out)


@main.command()
@click.argument("circuit", type=click.Choice([c.value for c in CircuitType]))
@click.argument("toml_path", type=click.Path(exists=True, dir_okay=False))
@config_option
@depth_option
def check(circuit, toml_path, config_path, depth):
    """Evaluate a Prover.toml against the CIRCUIT constraints."""
    config = _load_config(config_path, depth)
    try:
        witness, public = load_toml(toml_path, circuit)
        build_circuit(circuit, config.depth, zero_value=config.zero_value).assert_satisfied(
            witness, public
        )
    except ConstraintViolation as exc:
        click.echo(click.style(f"✗ {exc}", fg="red"), err=True)
        sys.exit(EXIT_VERIFICATION_FAILED)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))

    click.echo(click.style(f"✓ {circuit} constraints satisfied", fg="green"))
    for name, value in zip(get_circuit_spec(circuit).public_inputs, public.as_list()):
        click.echo(f"  {name}: {to_hex(value)}")


@main.command("split-proof")
@click.argument("circuit", type=click.Choice([c.value for c in CircuitType]))
@click.argument("proof_path", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--base-dir", type=click.Path(file_okay=False), help="Circuits directory to search")
@click.option("--out-dir", type=click.Path(file_okay=False), default=None,
              help="Directory for public_inputs and proof_body (default: next to the artifact)")
@click.option("--binary", is_flag=True, help="Write public inputs as raw 32-byte words")
def split_proof(circuit, proof_path, base_dir, out_dir, binary):
    """Split a bb proof artifact into its public inputs and proof body."""
    try:
        path = Path(proof_path) if proof_path else resolve_proof_artifact(circuit, base_dir)
    except FileNotFoundError as exc:
        raise click.ClickException(str(exc))

    try:
        values, body = split_circuit_artifact(path.read_bytes(), circuit)
    except WhirlwindError as exc:
        raise click.ClickException(str(exc))

    target = Path(out_dir) if out_dir else path.parent
    target.mkdir(parents=True, exist_ok=True)
    write_public_inputs_file(target / "public_inputs", values, binary=binary)
    (target / "proof_body").write_bytes(body)

    click.echo(f"Wrote {len(values)} public inputs to {target / 'public_inputs'}")
    for name, value in zip(get_circuit_spec(circuit).public_inputs, values):
        click.echo(f"  {name}: {to_hex(value)}")


@main.command()
@config_option
@depth_option
@click.option("--deposits", type=click.IntRange(1), default=2, help="Number of deposits")
def demo(config_path, depth, deposits):
    """
    Local round trip: deposits, withdrawals and a rejected double spend.

    Uses the transparent constraint backend against an in-memory ledger.
    """
    from .adapters.constraint_adapter import ConstraintProver

    config = _load_config(config_path, depth).with_overrides(verifier_backend="constraint")
    if deposits > config.capacity:
        raise click.ClickException(
            f"depth {config.depth} holds at most {config.capacity} deposits"
        )

    ledger = Ledger.genesis(config, get_verifiers(config=config))
    client = PoolClient(config)
    prover = ConstraintProver(config.depth, zero_value=config.zero_value)
    rng = RandomnessSource()

    click.echo(f"genesis root: {to_hex(ledger.current_root)}")
    records = []
    for _ in range(deposits):
        id_, r = rng.new_deposit_secrets()
        records.append(client.deposit(ledger, prover, id_, r))

    for n, record in enumerate(records):
        client.withdraw(ledger, prover, record.index, recipient=f"recipient-{n}")

    try:
        client.withdraw(ledger, prover, records[0].index, recipient="recipient-0")
    except DoubleSpend as exc:
        click.echo(click.style(f"✓ double spend rejected: {exc}", fg="green"))
    else:
        raise click.ClickException("double spend was accepted")

    table = Table(title="Ledger events")
    table.add_column("event")
    table.add_column("details")
    for event in ledger.events:
        data = event.to_dict()
        name = data.pop("event")
        table.add_row(name, ", ".join(f"{key}={value}" for key, value in data.items()))
    console.print(table)
    click.echo(f"final root: {to_hex(ledger.current_root)}")
    click.echo(f"pool balance: {ledger.balance}")


@main.command("show-config")
@config_option
def show_config(config_path):
    """Print the effective pool configuration."""
    config = _load_config(config_path, None)
    click.echo(json.dumps(config.to_dict(), indent=2))


if __name__ == "__main__":
    main()
