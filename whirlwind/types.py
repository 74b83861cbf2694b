"""
Common types for the pool protocol.

This module provides:
1. Proof - envelope carrying proof bytes and public inputs, CBOR serialized
2. DepositEvent / WithdrawEvent - ledger events
3. DepositRecord - off-chain bookkeeping for one deposit
"""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import cbor2

from .config import MAX_PROOF_SIZE_BYTES, PROOF_VERSION
from .exceptions import ProofVerificationError, ValidationError
from .field import to_field, to_hex

# ============================================================================
# PROOF ENVELOPE
# ============================================================================


@dataclass
class Proof:
    """
    Proof envelope exchanged between prover, client and ledger.

    The ledger only ever hands `data` to a verifier; `public_inputs` is
    what the prover claimed and is kept for diagnostics and artifact files.

    Attributes:
        circuit: Circuit name ("deposit" or "withdraw")
        data: Backend-specific proof bytes
        public_inputs: Public inputs the proof was generated for
        backend: Name of the backend that produced it
        timestamp: Proof generation time

    Example:
        >>> proof = Proof(circuit="withdraw", data=b"...", public_inputs=(1, 2))
        >>> Proof.deserialize(proof.serialize()).public_inputs
        (1, 2)
    """

    circuit: str
    data: bytes
    public_inputs: Tuple[int, ...] = ()
    backend: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self) -> None:
        self.public_inputs = tuple(
            to_field(value, f"public_inputs[{i}]")
            for i, value in enumerate(self.public_inputs)
        )

    @property
    def digest(self) -> str:
        """Short identifier of the proof bytes for logs."""
        return hashlib.sha256(self.data).hexdigest()[:16]

    def serialize(self) -> bytes:
        """
        Serialize to CBOR with a version field.

        Raises:
            ProofVerificationError: If encoding fails
        """
        try:
            return cbor2.dumps(
                {
                    "v": PROOF_VERSION,
                    "c": self.circuit,
                    "d": self.data,
                    "p": [to_hex(value) for value in self.public_inputs],
                    "b": self.backend,
                    "ts": self.timestamp,
                }
            )
        except Exception as e:
            raise ProofVerificationError(f"Failed to serialize proof: {e}")

    @classmethod
    def deserialize(cls, data: bytes) -> "Proof":
        """
        Decode a CBOR proof envelope.

        Raises:
            ValidationError: If the envelope is oversized, has an unsupported
                version or misses required fields
            ProofVerificationError: If the bytes are not CBOR
        """
        if len(data) > MAX_PROOF_SIZE_BYTES:
            raise ValidationError(
                f"proof envelope too large: {len(data)} > {MAX_PROOF_SIZE_BYTES} bytes"
            )
        try:
            obj = cbor2.loads(data)
        except Exception as e:
            raise ProofVerificationError(f"Failed to deserialize proof: {e}")

        if not isinstance(obj, dict):
            raise ValidationError("Invalid proof format: expected a map")

        version = obj.get("v", PROOF_VERSION)
        if version != PROOF_VERSION:
            raise ValidationError(
                f"Unsupported proof version: {version} (expected {PROOF_VERSION})"
            )

        if "c" not in obj or "d" not in obj:
            raise ValidationError("Invalid proof format: missing required fields")
        if not isinstance(obj["d"], bytes):
            raise ValidationError("Invalid proof format: data must be bytes")

        return cls(
            circuit=obj["c"],
            data=obj["d"],
            public_inputs=tuple(obj.get("p", ())),
            backend=obj.get("b"),
            timestamp=obj.get("ts", time.time()),
        )

    def to_dict(self) -> dict:
        return {
            "circuit": self.circuit,
            "data": self.data.hex(),
            "public_inputs": [to_hex(value) for value in self.public_inputs],
            "backend": self.backend,
            "timestamp": self.timestamp,
            "digest": self.digest,
        }


ProofLike = Union[Proof, bytes, bytearray]


def proof_bytes(proof: ProofLike) -> bytes:
    """Raw bytes handed to a verifier."""
    if isinstance(proof, Proof):
        return proof.data
    if isinstance(proof, (bytes, bytearray)):
        return bytes(proof)
    raise ValidationError(f"proof must be Proof or bytes, got {type(proof).__name__}")


# ============================================================================
# LEDGER EVENTS
# ============================================================================


@dataclass(frozen=True)
class DepositEvent:
    """Deposit(newRoot, commitment, index)."""

    new_root: int
    commitment: int
    index: int

    name = "Deposit"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "newRoot": to_hex(self.new_root),
            "commitment": to_hex(self.commitment),
            "index": self.index,
        }


@dataclass(frozen=True)
class WithdrawEvent:
    """Withdraw(recipient, nullifier)."""

    recipient: str
    nullifier: int

    name = "Withdraw"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "recipient": self.recipient,
            "nullifier": to_hex(self.nullifier),
        }


LedgerEvent = Union[DepositEvent, WithdrawEvent]


# ============================================================================
# DEPOSIT RECORD
# ============================================================================


@dataclass(frozen=True)
class DepositRecord:
    """
    Off-chain bookkeeping for one deposit.

    Created when a deposit is assembled and used later to rebuild a
    withdraw witness. `id` and `r` are secrets; never publish a record.
    """

    id: int
    r: int
    commitment: int
    index: int
    old_root: int
    new_root: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": to_hex(self.id),
            "r": to_hex(self.r),
            "commitment": to_hex(self.commitment),
            "index": self.index,
            "oldRoot": to_hex(self.old_root),
            "newRoot": to_hex(self.new_root),
            "pathElements": [to_hex(value) for value in self.path_elements],
            "pathIndices": list(self.path_indices),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DepositRecord":
        path_indices: List[int] = [int(bit) for bit in data["pathIndices"]]
        return cls(
            id=to_field(data["id"], "id"),
            r=to_field(data["r"], "r"),
            commitment=to_field(data["commitment"], "commitment"),
            index=int(data["index"]),
            old_root=to_field(data["oldRoot"], "oldRoot"),
            new_root=to_field(data["newRoot"], "newRoot"),
            path_elements=tuple(
                to_field(value, "pathElements") for value in data["pathElements"]
            ),
            path_indices=tuple(path_indices),
        )
