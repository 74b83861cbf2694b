from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..circuits import CircuitType, get_circuit_spec
from ..interfaces import ProofVerifier

Verdict = Union[bool, Callable[[bytes, Tuple[int, ...]], bool]]


class MockVerifier(ProofVerifier):
    """
    Scripted verifier for ledger tests.

    Notes:
    - Returns `default` unless the proof bytes appear in `verdicts`.
    - Records every call so tests can assert that a transition was rejected
      before verification was attempted.
    - It does NOT provide any cryptographic security.
    """

    _BACKEND_NAME = "MockVerifier"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        circuit: CircuitType | str = CircuitType.DEPOSIT,
        *,
        default: Verdict = True,
        verdicts: Optional[Mapping[bytes, bool]] = None,
    ) -> None:
        self._circuit = get_circuit_spec(circuit).circuit_type
        self.default = default
        self.verdicts: Dict[bytes, bool] = dict(verdicts) if verdicts else {}
        self.calls: List[Tuple[bytes, Tuple[int, ...]]] = []

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    @property
    def circuit(self) -> CircuitType:
        return self._circuit

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def set_verdict(self, proof: bytes, verdict: bool) -> None:
        self.verdicts[bytes(proof)] = verdict

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        key = bytes(proof)
        inputs = tuple(public_inputs)
        self.calls.append((key, inputs))

        expected = get_circuit_spec(self._circuit).num_public_inputs
        if len(inputs) != expected:
            return False

        if key in self.verdicts:
            return self.verdicts[key]
        if callable(self.default):
            return bool(self.default(key, inputs))
        return bool(self.default)

    def get_backend_info(self) -> Dict[str, Any]:
        info = super().get_backend_info()
        info.update({"adapter": "mock", "security": "mock_only"})
        return info
