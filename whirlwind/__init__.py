"""Public API for the Whirlwind commitment pool."""
from __future__ import annotations

from importlib import import_module

from .circuits import (
    CircuitType,
    DepositCircuit,
    DepositPublicInputs,
    DepositWitness,
    WithdrawCircuit,
    WithdrawPublicInputs,
    WithdrawWitness,
)
from .client import PoolClient
from .config import PoolConfig
from .exceptions import (
    AccumulatorDesync,
    CapacityExceeded,
    DoubleSpend,
    ProofRejected,
    ValidationError,
    WhirlwindError,
)
from .factory import get_verifier, get_verifiers
from .feature_flags import get_backend_type, set_backend_type
from .interfaces import ProofGenerator, ProofVerifier
from .ledger import Ledger, LedgerState
from .merkle import InclusionProof, MerkleTree

__version__ = "0.1.0"

__all__ = [
    "AccumulatorDesync",
    "CapacityExceeded",
    "CircuitType",
    "ConstraintProver",
    "ConstraintVerifier",
    "DepositCircuit",
    "DepositPublicInputs",
    "DepositWitness",
    "DoubleSpend",
    "InclusionProof",
    "Ledger",
    "LedgerState",
    "MerkleTree",
    "MockVerifier",
    "PoolClient",
    "PoolConfig",
    "ProofGenerator",
    "ProofRejected",
    "ProofVerifier",
    "ValidationError",
    "WhirlwindError",
    "WithdrawCircuit",
    "WithdrawPublicInputs",
    "WithdrawWitness",
    "get_backend_type",
    "get_verifier",
    "get_verifiers",
    "set_backend_type",
]

_LAZY_EXPORTS = {
    "ConstraintProver": "adapters.constraint_adapter",
    "ConstraintVerifier": "adapters.constraint_adapter",
    "MockVerifier": "adapters.mock_adapter",
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
