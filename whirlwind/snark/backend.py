"""Barretenberg CLI verification backend."""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Sequence

from ..circuits import CircuitType, get_circuit_spec
from ..config import PoolConfig
from ..exceptions import ConfigurationError
from ..field import pack_fields
from ..interfaces import ProofVerifier
from .assets import resolve_vk

logger = logging.getLogger(__name__)


class BarretenbergVerifier(ProofVerifier):
    """
    Verify UltraHonk proofs of the Noir circuits with the `bb` CLI.

    Public inputs are written as concatenated 32-byte big-endian words next
    to the proof body, then `bb verify -k vk -p proof -i public_inputs` is
    run; exit status 0 means the proof is valid. Any other outcome, including
    malformed inputs, is a rejection. A missing `bb` executable is a
    deployment problem and raises instead of rejecting.
    """

    _BACKEND_NAME = "barretenberg"
    _BACKEND_VERSION = "0.1.0"

    def __init__(
        self,
        circuit: CircuitType | str,
        vk_path: str | Path,
        *,
        bb_binary: str = "bb",
        extra_args: Sequence[str] = (),
    ) -> None:
        self._circuit = get_circuit_spec(circuit).circuit_type
        self.vk_path = Path(vk_path)
        if not self.vk_path.is_file():
            raise ConfigurationError(f"verifying key not found: {self.vk_path}")
        self.bb_binary = bb_binary
        self.extra_args = tuple(extra_args)

    @classmethod
    def from_config(cls, circuit: CircuitType, config: PoolConfig) -> "BarretenbergVerifier":
        try:
            vk_path = resolve_vk(circuit, config.depth, config.params_dir)
        except FileNotFoundError as exc:
            raise ConfigurationError(str(exc)) from exc
        extra_args = config.extra.get("bb_verify_args", ())
        if not isinstance(extra_args, (list, tuple)) or not all(
            isinstance(arg, str) for arg in extra_args
        ):
            raise ConfigurationError(
                f"bb_verify_args must be a list of strings, got {extra_args!r}"
            )
        return cls(circuit, vk_path, bb_binary=config.bb_binary, extra_args=extra_args)

    @property
    def backend_name(self) -> str:
        return self._BACKEND_NAME

    @property
    def backend_version(self) -> str:
        return self._BACKEND_VERSION

    @property
    def circuit(self) -> CircuitType:
        return self._circuit

    def _executable(self) -> str:
        executable = shutil.which(self.bb_binary)
        if executable is None:
            raise ConfigurationError(
                f"Barretenberg CLI {self.bb_binary!r} not found on PATH"
            )
        return executable

    def verify(self, proof: bytes, public_inputs: Sequence[int]) -> bool:
        expected = get_circuit_spec(self._circuit).num_public_inputs
        if len(public_inputs) != expected:
            return False
        if not proof:
            return False

        executable = self._executable()
        try:
            packed_inputs = pack_fields(public_inputs)
        except ValueError:
            return False

        with tempfile.TemporaryDirectory(prefix=f"whirlwind-{self._circuit.value}-") as tmp:
            tmp_dir = Path(tmp)
            proof_path = tmp_dir / "proof"
            public_inputs_path = tmp_dir / "public_inputs"
            proof_path.write_bytes(bytes(proof))
            public_inputs_path.write_bytes(packed_inputs)

            cmd = [
                executable,
                "verify",
                "-k",
                str(self.vk_path),
                "-p",
                str(proof_path),
                "-i",
                str(public_inputs_path),
                *self.extra_args,
            ]
            result = subprocess.run(cmd, capture_output=True, text=True)

        if result.returncode != 0:
            logger.info(
                "bb rejected %s proof (exit %d): %s",
                self._circuit.value,
                result.returncode,
                result.stderr.strip(),
            )
            return False
        return True

    def get_backend_info(self) -> Dict[str, Any]:
        info = super().get_backend_info()
        info.update({"vk_path": str(self.vk_path), "bb_binary": self.bb_binary})
        return info
