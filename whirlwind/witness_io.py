"""
Prover.toml interchange for the Noir circuits.

Key names follow the circuits' `main` parameters:
    deposit:  id, r, oldPath, oldRoot, newRoot, commitment, index
    withdraw: r, index, path, root, id
Every value is a quoted 0x-hex field element; the index is encoded as a
field element too.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from .circuits import (
    CircuitType,
    DepositPublicInputs,
    DepositWitness,
    WithdrawPublicInputs,
    WithdrawWitness,
    get_circuit_spec,
)
from .exceptions import ValidationError
from .field import to_hex

DEPOSIT_KEYS: Tuple[str, ...] = ("id", "r", "oldPath", "oldRoot", "newRoot", "commitment", "index")
WITHDRAW_KEYS: Tuple[str, ...] = ("r", "index", "path", "root", "id")


def _quote(value: int) -> str:
    return f'"{to_hex(value)}"'


def _quote_list(values: Sequence[int]) -> str:
    return "[" + ", ".join(_quote(value) for value in values) + "]"


def deposit_toml(witness: DepositWitness, public: DepositPublicInputs) -> str:
    lines = [
        f"id = {_quote(witness.id)}",
        f"r = {_quote(witness.r)}",
        f"oldPath = {_quote_list(witness.old_path)}",
        f"oldRoot = {_quote(public.old_root)}",
        f"newRoot = {_quote(public.new_root)}",
        f"commitment = {_quote(public.commitment)}",
        f"index = {_quote(public.index)}",
    ]
    return "\n".join(lines) + "\n"


def withdraw_toml(witness: WithdrawWitness, public: WithdrawPublicInputs) -> str:
    lines = [
        f"r = {_quote(witness.r)}",
        f"index = {_quote(witness.index)}",
        f"path = {_quote_list(witness.path)}",
        f"root = {_quote(public.root)}",
        f"id = {_quote(public.id)}",
    ]
    return "\n".join(lines) + "\n"


def parse_toml(
    text: str, circuit: CircuitType | str
) -> Tuple[DepositWitness, DepositPublicInputs] | Tuple[WithdrawWitness, WithdrawPublicInputs]:
    """
    Parse Prover.toml text back into witness and public inputs.

    Raises:
        ValidationError: If the document is not TOML, misses keys, or holds
            values that are not field elements
    """
    circuit_type = get_circuit_spec(circuit).circuit_type
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"invalid Prover.toml: {exc}") from exc

    if circuit_type is CircuitType.DEPOSIT:
        _require_keys(data, DEPOSIT_KEYS, circuit_type)
        return (
            DepositWitness(id=data["id"], r=data["r"], old_path=_as_list(data, "oldPath")),
            DepositPublicInputs(
                old_root=data["oldRoot"],
                new_root=data["newRoot"],
                commitment=data["commitment"],
                index=data["index"],
            ),
        )

    _require_keys(data, WITHDRAW_KEYS, circuit_type)
    return (
        WithdrawWitness(r=data["r"], index=data["index"], path=_as_list(data, "path")),
        WithdrawPublicInputs(root=data["root"], id=data["id"]),
    )


def load_toml(
    path: str | Path, circuit: CircuitType | str
) -> Tuple[DepositWitness, DepositPublicInputs] | Tuple[WithdrawWitness, WithdrawPublicInputs]:
    return parse_toml(Path(path).read_text(encoding="utf-8"), circuit)


def write_toml(path: str | Path, text: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _require_keys(data: Dict[str, Any], keys: Sequence[str], circuit: CircuitType) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise ValidationError(
            f"{circuit.value} Prover.toml missing keys: {', '.join(missing)}"
        )


def _as_list(data: Dict[str, Any], key: str) -> List[Any]:
    value = data[key]
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be an array")
    return value
