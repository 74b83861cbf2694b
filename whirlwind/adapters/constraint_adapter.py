"""
WARNING: transparent backend - proofs carry the witness in the clear.

Reference prover/verifier pair that evaluates the deposit and withdraw
constraint sets directly. A "proof" is a CBOR `Proof` envelope whose data
is the CBOR-encoded witness; verification rebuilds the public inputs from
the caller (never from the envelope) and re-runs the constraints.

Use it for local pools, demos and tests. It shares every rule with the
real circuits (hash, zero leaf, bit order) but has no zero-knowledge or
succinctness properties.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Sequence

import cbor2

from ..circuits import (
    CircuitType,
    DepositPublicInputs,
    DepositWitness,
    WithdrawPublicInputs,
    WithdrawWitness,
    build_circuit,
    get_circuit_spec,
)
from ..config import DEFAULT_DEPTH, ZERO_VALUE, PoolConfig
from ..exceptions import (
    ConstraintViolation,
    ProofGenerationError,
    ProofVerificationError,
    ValidationError,
)
from ..hashing import FieldHasher
from ..interfaces import ProofGenerator, ProofVerifier
from ..types import Proof

logger = logging.getLogger(__name__)

_BACKEND_NAME = "constraint"
_BACKEND_VERSION = "0.1.0"

_WITNESS_TYPES = {
    CircuitType.DEPOSIT: DepositWitness,
    CircuitType.WITHDRAW: WithdrawWitness,
}
_PUBLIC_TYPES = {
    CircuitType.DEPOSIT: DepositPublicInputs,
    CircuitType.WITHDRAW: WithdrawPublicInputs,
}


class ConstraintProver(ProofGenerator):
    """
    Produces transparent proofs for satisfied witnesses.

    Example:
        >>> prover = ConstraintProver(levels=3)
        >>> data = prover.prove(CircuitType.WITHDRAW, witness, public)
    """

    def __init__(
        self,
        levels: int = DEFAULT_DEPTH,
        *,
        hasher: FieldHasher | None = None,
        zero_value: int = ZERO_VALUE,
    ) -> None:
        self.levels = levels
        self._circuits = {
            circuit: build_circuit(circuit, levels, hasher=hasher, zero_value=zero_value)
            for circuit in CircuitType
        }

    @property
    def backend_name(self) -> str:
        return _BACKEND_NAME

    def prove(
        self,
        circuit: CircuitType | str,
        witness: DepositWitness | WithdrawWitness,
        public_inputs: DepositPublicInputs | WithdrawPublicInputs,
    ) -> bytes:
        """
        Raises:
            ProofGenerationError: If the witness is malformed or unsatisfied
        """
        circuit_type = get_circuit_spec(circuit).circuit_type
        if not isinstance(witness, _WITNESS_TYPES[circuit_type]):
            raise ProofGenerationError(
                f"{circuit_type.value} witness must be {_WITNESS_TYPES[circuit_type].__name__}"
            )
        if not isinstance(public_inputs, _PUBLIC_TYPES[circuit_type]):
            raise ProofGenerationError(
                f"{circuit_type.value} public inputs must be "
                f"{_PUBLIC_TYPES[circuit_type].__name__}"
            )

        try:
            self._circuits[circuit_type].assert_satisfied(witness, public_inputs)
        except ValidationError as exc:
            raise ProofGenerationError(f"cannot prove {circuit_type.value}: {exc}") from exc

        envelope = Proof(
            circuit=circuit_type.value,
            data=cbor2.dumps(witness.to_dict()),
            public_inputs=tuple(public_inputs.as_list()),
            backend=_BACKEND_NAME,
        )
        return envelope.serialize()


class ConstraintVerifier(ProofVerifier):
    """Verifies transparent proofs by re-evaluating the circuit."""

    def __init__(
        self,
        circuit: CircuitType | str,
        levels: int = DEFAULT_DEPTH,
        *,
        hasher: FieldHasher | None = None,
        zero_value: int = ZERO_VALUE,
    ) -> None:
        self._circuit = get_circuit_spec(circuit).circuit_type
        self._constraints = build_circuit(
            self._circuit, levels, hasher=hasher, zero_value=zero_value
        )

    @classmethod
    def from_config(cls, circuit: CircuitType, config: PoolConfig) -> "ConstraintVerifier":
        return cls(circuit, config.depth, zero_value=config.zero_value)

    @property
    def backend_name(self) -> str:
        return _BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return _BACKEND_VERSION

    @property
    def circuit(self) -> CircuitType:
        return self._circuit

    @property
    def levels(self) -> int:
        return self._constraints.levels

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        try:
            envelope = Proof.deserialize(bytes(proof))
            if envelope.circuit != self._circuit.value:
                logger.debug("proof is for %s, expected %s", envelope.circuit, self._circuit.value)
                return False
            witness_data = cbor2.loads(envelope.data)
            if not isinstance(witness_data, dict):
                return False
            witness = _WITNESS_TYPES[self._circuit].from_dict(witness_data)
            public = _PUBLIC_TYPES[self._circuit].from_list(list(public_inputs))
            violations = self._constraints.check(witness, public)
        except (ValidationError, ProofVerificationError, KeyError, TypeError) as exc:
            logger.debug("malformed %s proof: %s", self._circuit.value, exc)
            return False
        except cbor2.CBORDecodeError as exc:
            logger.debug("undecodable %s witness: %s", self._circuit.value, exc)
            return False

        if violations:
            logger.debug(
                "%s proof rejected: %s",
                self._circuit.value,
                ConstraintViolation(self._circuit.value, violations),
            )
            return False
        return True

    def get_backend_info(self) -> Dict[str, Any]:
        info = super().get_backend_info()
        info.update({"levels": self.levels, "security": "transparent"})
        return info
