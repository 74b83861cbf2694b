"""
Proof boundary interfaces.

The ledger depends only on `ProofVerifier`; clients depend only on
`ProofGenerator`. Deposit and withdraw use separate verifier instances
because they are checked against different verifying keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence

from .circuits import CircuitType
from .config import PoolConfig


class ProofVerifier(ABC):
    """Checks a proof against public inputs only."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Human-readable backend name."""

    @property
    @abstractmethod
    def backend_version(self) -> str:
        """Backend version string."""

    @property
    @abstractmethod
    def circuit(self) -> CircuitType:
        """Circuit this verifier's key belongs to."""

    @abstractmethod
    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        """
        Verify a proof.

        Args:
            proof: Backend-specific proof bytes
            public_inputs: Field elements in circuit order

        Returns:
            True if the proof is valid for these public inputs
        """

    @classmethod
    def from_config(cls, circuit: CircuitType, config: PoolConfig) -> "ProofVerifier":
        """Build a verifier for `circuit` from pool parameters (used by the factory)."""
        return cls(circuit)  # type: ignore[call-arg]

    def get_backend_info(self) -> Dict[str, Any]:
        return {
            "name": self.backend_name,
            "version": self.backend_version,
            "circuit": self.circuit.value,
        }


class ProofGenerator(ABC):
    """Turns a satisfied witness into proof bytes."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Human-readable backend name."""

    @abstractmethod
    def prove(
        self,
        circuit: CircuitType,
        witness: Any,
        public_inputs: Any,
    ) -> bytes:
        """
        Generate a proof.

        Raises:
            ProofGenerationError: If the witness does not satisfy the circuit
        """
