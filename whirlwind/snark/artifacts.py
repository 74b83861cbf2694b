"""
Proof artifact helpers.

`bb prove` writes a single proof file whose first n * 32 bytes are the
circuit's public inputs (4 for deposit, 2 for withdraw). The ledger takes
the proof body and the public inputs separately, so artifacts are split
before submission. Public input files are either the raw 32-byte words or
one 0x-hex value per line.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Sequence, Tuple

from ..circuits import CircuitType, get_circuit_spec
from ..config import FIELD_BYTES
from ..exceptions import ValidationError
from ..field import pack_fields, to_field, to_hex, unpack_fields


def split_proof_artifact(raw: bytes, num_public_inputs: int) -> Tuple[List[int], bytes]:
    """
    Split a proof artifact into (public inputs, proof body).

    Raises:
        ValidationError: If the artifact is shorter than its public input prefix
    """
    if num_public_inputs < 0:
        raise ValidationError("num_public_inputs must be non-negative")
    prefix = num_public_inputs * FIELD_BYTES
    if len(raw) < prefix:
        raise ValidationError(
            f"proof artifact has {len(raw)} bytes, expected at least {prefix} "
            f"for {num_public_inputs} public inputs"
        )
    return unpack_fields(raw[:prefix]), raw[prefix:]


def split_circuit_artifact(raw: bytes, circuit: CircuitType | str) -> Tuple[List[int], bytes]:
    return split_proof_artifact(raw, get_circuit_spec(circuit).num_public_inputs)


def extract_public_inputs(
    proof_path: str | Path,
    out_path: str | Path,
    circuit: CircuitType | str,
) -> List[int]:
    """
    Write the public input prefix of a proof artifact to `out_path`.

    Returns:
        The extracted public inputs
    """
    raw = Path(proof_path).read_bytes()
    values, _ = split_circuit_artifact(raw, circuit)
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(pack_fields(values))
    return values


def read_public_inputs_file(
    path: str | Path, expected: int | None = None
) -> List[int]:
    """
    Read public inputs in either binary or hex-per-line form.

    Raises:
        ValidationError: If the count does not match `expected`
    """
    raw = Path(path).read_bytes()
    values = _parse_public_inputs(raw)
    if expected is not None and len(values) != expected:
        raise ValidationError(
            f"{path} must hold exactly {expected} public inputs, got {len(values)}"
        )
    return values


def write_public_inputs_file(
    path: str | Path, values: Sequence[int], *, binary: bool = False
) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if binary:
        path.write_bytes(pack_fields(values))
    else:
        path.write_text("\n".join(to_hex(value) for value in values) + "\n", encoding="utf-8")
    return path


def _parse_public_inputs(raw: bytes) -> List[int]:
    try:
        text = raw.decode("ascii")
    except UnicodeDecodeError:
        return unpack_fields(raw)

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if lines and all(line.lower().startswith("0x") for line in lines):
        return [to_field(line, f"public_inputs[{i}]") for i, line in enumerate(lines)]
    return unpack_fields(raw)
