"""
Verifier factory.

Backends are registered by import path and only imported when selected.
"""

from __future__ import annotations

import importlib
from typing import Final

from .circuits import CircuitType, get_circuit_spec
from .config import PoolConfig
from .feature_flags import get_backend_type
from .interfaces import ProofVerifier

BACKEND_REGISTRY: Final[dict[str, str]] = {
    "mock": "whirlwind.adapters.mock_adapter.MockVerifier",
    "constraint": "whirlwind.adapters.constraint_adapter.ConstraintVerifier",
    "barretenberg": "whirlwind.snark.backend.BarretenbergVerifier",
}


def _format_valid_options() -> str:
    return ", ".join(sorted(BACKEND_REGISTRY.keys()))


def _normalize_backend_name(value: str | None, *, source: str) -> str | None:
    if value is None or value == "":
        return None

    if not isinstance(value, str) or value not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name from {source}: {value!r}. "
            f"Valid options: {_format_valid_options()}"
        )

    return value


def _load_backend_class(backend_name: str) -> type[ProofVerifier]:
    import_path = BACKEND_REGISTRY[backend_name]
    module_path, _, class_name = import_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(
            f"Invalid backend import path for {backend_name!r}: {import_path!r}"
        )

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import backend module {module_path!r} for {backend_name!r}"
        ) from exc

    try:
        backend_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Backend class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(backend_cls, type):
        raise TypeError(
            f"Backend reference {import_path!r} did not resolve to a class"
        )

    if not issubclass(backend_cls, ProofVerifier):
        raise TypeError(
            f"Backend class {backend_cls.__name__!r} does not implement ProofVerifier"
        )

    return backend_cls


def resolve_backend_name(
    *,
    config: PoolConfig | None = None,
    prefer: str | None = None,
    override: str | None = None,
) -> str:
    resolved_override = _normalize_backend_name(override, source="override")
    if resolved_override is not None:
        return resolved_override

    resolved_prefer = _normalize_backend_name(prefer, source="prefer")
    if resolved_prefer is not None:
        return resolved_prefer

    if config is not None:
        resolved_config = _normalize_backend_name(config.verifier_backend, source="config")
        if resolved_config is not None:
            return resolved_config

    resolved_flag = get_backend_type()
    if resolved_flag not in BACKEND_REGISTRY:
        raise ValueError(
            f"Invalid backend name from feature flags: {resolved_flag!r}. "
            f"Valid options: {_format_valid_options()}"
        )
    return resolved_flag


def get_verifier(
    circuit: CircuitType | str,
    *,
    config: PoolConfig | None = None,
    prefer: str | None = None,
    override: str | None = None,
) -> ProofVerifier:
    """
    Return a verifier for one circuit.

    Args:
        circuit: Circuit the verifier checks proofs for
        config: Pool parameters (depth, key locations); defaults apply if None
        prefer: Optional backend name hint
        override: Optional backend name override (testing only)

    Returns:
        ProofVerifier: New verifier instance

    Raises:
        ValueError: If a backend or circuit name is invalid
        ImportError: If the backend class cannot be imported
        TypeError: If the backend class does not implement ProofVerifier
    """
    circuit_type = get_circuit_spec(circuit).circuit_type
    config = config or PoolConfig()
    backend_name = resolve_backend_name(config=config, prefer=prefer, override=override)
    backend_cls = _load_backend_class(backend_name)
    verifier = backend_cls.from_config(circuit_type, config)

    if not isinstance(verifier, ProofVerifier):
        raise TypeError(
            f"Backend instance {verifier!r} does not implement ProofVerifier"
        )

    return verifier


def get_verifiers(
    *,
    config: PoolConfig | None = None,
    prefer: str | None = None,
    override: str | None = None,
) -> dict[CircuitType, ProofVerifier]:
    """One verifier per circuit, as the ledger needs them."""
    return {
        circuit: get_verifier(circuit, config=config, prefer=prefer, override=override)
        for circuit in CircuitType
    }
