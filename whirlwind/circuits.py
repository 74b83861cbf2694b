"""
Deposit and withdraw circuit constraint sets.

These are the predicates the Noir circuits enforce, evaluated in Python
over the same field, hash and bit ordering as the accumulator. They serve
three purposes: checking a witness before handing it to a prover, the
transparent reference backend, and tests that pin down the circuit
semantics without a proving system.

Public input order is part of the verifier contract:
    deposit:  [old_root, new_root, commitment, index]
    withdraw: [root, id]
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

from .config import ZERO_VALUE
from .exceptions import ConstraintViolation, ValidationError
from .field import index_bits, to_field, to_hex
from .hashing import FieldHasher, get_default_hasher
from .merkle import compute_root


class CircuitType(Enum):
    """Circuits of the pool protocol."""

    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


@dataclass(frozen=True)
class CircuitSpec:
    """
    Shape of one circuit's inputs.

    Attributes:
        circuit_type: Circuit identifier
        public_inputs: Public input names in verifier order
        witness: Private witness names
        description: What a valid proof establishes
    """

    circuit_type: CircuitType
    public_inputs: Tuple[str, ...]
    witness: Tuple[str, ...]
    description: str

    @property
    def num_public_inputs(self) -> int:
        return len(self.public_inputs)


CIRCUIT_REGISTRY: Dict[CircuitType, CircuitSpec] = {
    CircuitType.DEPOSIT: CircuitSpec(
        circuit_type=CircuitType.DEPOSIT,
        public_inputs=("old_root", "new_root", "commitment", "index"),
        witness=("id", "r", "old_path"),
        description="Slot `index` was empty under old_root and holds commitment under new_root",
    ),
    CircuitType.WITHDRAW: CircuitSpec(
        circuit_type=CircuitType.WITHDRAW,
        public_inputs=("root", "id"),
        witness=("r", "index", "path"),
        description="Some Hash(id, r) is included in the tree rooted at root",
    ),
}


def get_circuit_spec(circuit: CircuitType | str) -> CircuitSpec:
    """
    Raises:
        ValueError: If the circuit is unknown
    """
    if isinstance(circuit, str):
        try:
            circuit = CircuitType(circuit)
        except ValueError as exc:
            valid = ", ".join(item.value for item in CircuitType)
            raise ValueError(f"Unknown circuit {circuit!r}. Valid options: {valid}") from exc
    return CIRCUIT_REGISTRY[circuit]


# ============================================================================
# WITNESS / PUBLIC INPUT TYPES
# ============================================================================


def _field_tuple(values: Sequence[Any], label: str) -> Tuple[int, ...]:
    if isinstance(values, (str, bytes, bytearray)):
        raise ValidationError(f"{label} must be a sequence of field elements")
    return tuple(to_field(value, f"{label}[{i}]") for i, value in enumerate(values))


def _index(value: Any) -> int:
    # Indices arrive either as plain ints or as field elements from witness files.
    if isinstance(value, bool):
        raise ValidationError("index must be int")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f"index must be non-negative, got {value}")
        return value
    return to_field(value, "index")


@dataclass(frozen=True)
class DepositWitness:
    id: int
    r: int
    old_path: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", to_field(self.id, "id"))
        object.__setattr__(self, "r", to_field(self.r, "r"))
        object.__setattr__(self, "old_path", _field_tuple(self.old_path, "old_path"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": to_hex(self.id),
            "r": to_hex(self.r),
            "old_path": [to_hex(value) for value in self.old_path],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepositWitness":
        return cls(id=data["id"], r=data["r"], old_path=data["old_path"])


@dataclass(frozen=True)
class DepositPublicInputs:
    old_root: int
    new_root: int
    commitment: int
    index: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "old_root", to_field(self.old_root, "old_root"))
        object.__setattr__(self, "new_root", to_field(self.new_root, "new_root"))
        object.__setattr__(self, "commitment", to_field(self.commitment, "commitment"))
        object.__setattr__(self, "index", _index(self.index))

    def as_list(self) -> List[int]:
        return [self.old_root, self.new_root, self.commitment, self.index]

    @classmethod
    def from_list(cls, values: Sequence[int]) -> "DepositPublicInputs":
        if len(values) != 4:
            raise ValidationError(f"deposit takes 4 public inputs, got {len(values)}")
        return cls(*values)


@dataclass(frozen=True)
class WithdrawWitness:
    r: int
    index: int
    path: Tuple[int, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "r", to_field(self.r, "r"))
        object.__setattr__(self, "index", _index(self.index))
        object.__setattr__(self, "path", _field_tuple(self.path, "path"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "r": to_hex(self.r),
            "index": to_hex(self.index),
            "path": [to_hex(value) for value in self.path],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WithdrawWitness":
        return cls(r=data["r"], index=data["index"], path=data["path"])


@dataclass(frozen=True)
class WithdrawPublicInputs:
    root: int
    id: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", to_field(self.root, "root"))
        object.__setattr__(self, "id", to_field(self.id, "id"))

    @property
    def nullifier(self) -> int:
        return self.id

    def as_list(self) -> List[int]:
        return [self.root, self.id]

    @classmethod
    def from_list(cls, values: Sequence[int]) -> "WithdrawPublicInputs":
        if len(values) != 2:
            raise ValidationError(f"withdraw takes 2 public inputs, got {len(values)}")
        return cls(*values)


# ============================================================================
# CONSTRAINT SETS
# ============================================================================


class _Circuit(ABC):
    circuit_type: CircuitType

    def __init__(
        self,
        levels: int,
        *,
        hasher: FieldHasher | None = None,
        zero_value: int = ZERO_VALUE,
    ) -> None:
        if isinstance(levels, bool) or not isinstance(levels, int) or levels < 1:
            raise ValidationError(f"levels must be a positive int, got {levels!r}")
        self.levels = levels
        self.hasher = hasher or get_default_hasher()
        self.zero_value = to_field(zero_value, "zero_value")

    @property
    def spec(self) -> CircuitSpec:
        return CIRCUIT_REGISTRY[self.circuit_type]

    def _check_path(self, path: Sequence[int], label: str) -> None:
        if len(path) != self.levels:
            raise ValidationError(
                f"{label} must have {self.levels} elements, got {len(path)}"
            )

    @abstractmethod
    def check(self, witness: Any, public: Any) -> List[str]:
        """Return the list of violated constraints, empty when satisfied."""

    def is_satisfied(self, witness: Any, public: Any) -> bool:
        return not self.check(witness, public)

    def assert_satisfied(self, witness: Any, public: Any) -> None:
        """
        Raises:
            ValidationError: If the inputs are malformed
            ConstraintViolation: If any constraint fails
        """
        violations = self.check(witness, public)
        if violations:
            raise ConstraintViolation(self.circuit_type.value, violations)


class DepositCircuit(_Circuit):
    """
    Deposit constraint set.

    A satisfying witness shows that slot `index` held the zero leaf under
    `old_root`, holds `commitment` under `new_root`, and nothing else in
    the tree changed, without revealing `id` or `r`.
    """

    circuit_type = CircuitType.DEPOSIT

    def check(self, witness: DepositWitness, public: DepositPublicInputs) -> List[str]:
        """
        Evaluate every constraint.

        Returns:
            Descriptions of violated constraints, empty if satisfied

        Raises:
            ValidationError: If the path length or index width is wrong
        """
        self._check_path(witness.old_path, "old_path")
        bits = index_bits(public.index, self.levels)

        violations: List[str] = []
        if self.hasher.commit(witness.id, witness.r) != public.commitment:
            violations.append("commitment != Hash(id, r)")
        if compute_root(self.zero_value, witness.old_path, bits, self.hasher) != public.old_root:
            violations.append("old_path from the zero leaf does not reproduce old_root")
        if compute_root(public.commitment, witness.old_path, bits, self.hasher) != public.new_root:
            violations.append("old_path from commitment does not reproduce new_root")
        return violations


class WithdrawCircuit(_Circuit):
    """
    Withdraw constraint set.

    `id` doubles as the public nullifier.
    """

    circuit_type = CircuitType.WITHDRAW

    def check(self, witness: WithdrawWitness, public: WithdrawPublicInputs) -> List[str]:
        self._check_path(witness.path, "path")
        bits = index_bits(witness.index, self.levels)

        leaf = self.hasher.commit(public.id, witness.r)
        if compute_root(leaf, witness.path, bits, self.hasher) != public.root:
            return ["path from Hash(id, r) does not reproduce root"]
        return []


def build_circuit(
    circuit: CircuitType | str,
    levels: int,
    *,
    hasher: FieldHasher | None = None,
    zero_value: int = ZERO_VALUE,
) -> DepositCircuit | WithdrawCircuit:
    spec = get_circuit_spec(circuit)
    if spec.circuit_type is CircuitType.DEPOSIT:
        return DepositCircuit(levels, hasher=hasher, zero_value=zero_value)
    return WithdrawCircuit(levels, hasher=hasher, zero_value=zero_value)
