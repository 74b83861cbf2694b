"""
Custom exceptions for the Whirlwind pool.

These exceptions provide structured error handling for the accumulator,
the circuit constraint sets and the ledger state machine. Every error
raised by a ledger transition is raised before any state is touched.
"""

from __future__ import annotations

from typing import Sequence


class WhirlwindError(Exception):
    """Base exception for pool errors."""

    pass


class ValidationError(WhirlwindError, ValueError):
    """Malformed caller input (bad path length, index out of range, reused index)."""

    pass


class ConstraintViolation(ValidationError):
    """A witness does not satisfy its circuit constraint set."""

    def __init__(self, circuit: str, violations: Sequence[str]) -> None:
        self.circuit = circuit
        self.violations = list(violations)
        super().__init__(
            f"{circuit} constraints not satisfied: {'; '.join(self.violations)}"
        )


class InvalidPayment(ValidationError):
    """Deposit value differs from the fixed unit amount."""

    pass


class CapacityExceeded(WhirlwindError):
    """The tree (or ledger) already holds 2^depth deposits."""

    pass


class ProofRejected(WhirlwindError):
    """The proof boundary returned False for the supplied public inputs."""

    def __init__(self, circuit: str, public_inputs: Sequence[int]) -> None:
        self.circuit = circuit
        self.public_inputs = list(public_inputs)
        rendered = ", ".join(f"0x{value:064x}" for value in self.public_inputs)
        super().__init__(f"{circuit} proof rejected for public inputs [{rendered}]")


class DoubleSpend(WhirlwindError):
    """The nullifier has already been used by an accepted withdrawal."""

    def __init__(self, nullifier: int) -> None:
        self.nullifier = nullifier
        super().__init__(f"nullifier 0x{nullifier:064x} already spent")


class AccumulatorDesync(WhirlwindError):
    """The off-chain tree mirror does not match the ledger."""

    def __init__(
        self,
        local_root: int,
        ledger_root: int,
        local_index: int,
        ledger_index: int,
    ) -> None:
        self.local_root = local_root
        self.ledger_root = ledger_root
        self.local_index = local_index
        self.ledger_index = ledger_index
        super().__init__(
            "accumulator out of sync with ledger: "
            f"root 0x{local_root:064x} != 0x{ledger_root:064x} "
            f"or index {local_index} != {ledger_index}"
        )


class InsufficientFunds(WhirlwindError):
    """The pool balance cannot cover a payout."""

    pass


class ConfigurationError(WhirlwindError):
    """Configuration error."""

    pass


class ProofGenerationError(WhirlwindError):
    """Error during proof generation."""

    pass


class ProofVerificationError(WhirlwindError):
    """Error during proof verification."""

    pass
