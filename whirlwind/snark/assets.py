"""Helpers to resolve verifying keys and proof artifacts with layout fallbacks."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from ..circuits import CircuitType, get_circuit_spec


def resolve_vk(
    circuit: CircuitType | str,
    depth: int,
    base_dir: str | Path | None = None,
) -> Path:
    """
    Resolve the verifying key of a circuit.

    Checked in order:
        <base>/<circuit>/depth-<depth>/vk
        <base>/<circuit>_circuit/target/vk      (nargo project layout)
        <base>/<circuit>_vk.bin
    """
    name = get_circuit_spec(circuit).circuit_type.value
    base = Path(base_dir) if base_dir else _default_params_dir()
    candidates = [
        base / name / f"depth-{depth}" / "vk",
        base / f"{name}_circuit" / "target" / "vk",
        base / f"{name}_vk.bin",
    ]
    return _first_existing(candidates, f"{name} depth-{depth} vk")


def resolve_proof_artifact(
    circuit: CircuitType | str,
    base_dir: str | Path | None = None,
) -> Path:
    """
    Resolve a proof artifact written by `bb prove`.

    Checked in order:
        <base>/<circuit>_circuit/target/<circuit>_proof/proof
        <base>/<circuit>/proof
    """
    name = get_circuit_spec(circuit).circuit_type.value
    base = Path(base_dir) if base_dir else _default_params_dir()
    candidates = [
        base / f"{name}_circuit" / "target" / f"{name}_proof" / "proof",
        base / name / "proof",
    ]
    return _first_existing(candidates, f"{name} proof artifact")


def _default_repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _default_params_dir() -> Path:
    return Path(os.getenv("WHIRLWIND_PARAMS_DIR", _default_repo_root() / "circuits"))


def _first_existing(candidates: Iterable[Path], label: str) -> Path:
    checked: List[Path] = list(candidates)
    for path in checked:
        if path.exists():
            return path
    raise FileNotFoundError(
        f"Unable to resolve {label}. Checked: {', '.join(str(p) for p in checked)}"
    )
