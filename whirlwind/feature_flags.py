"""
Process-wide default for the proof verification backend.

The factory only falls back to these flags when nothing more specific
chose a backend. The full order used by `factory.resolve_backend_name` is:

    1. an explicit `override` argument
    2. an explicit `prefer` argument
    3. `PoolConfig.verifier_backend` (set from YAML, or from
       WHIRLWIND_VERIFIER_BACKEND by `PoolConfig.from_env`)
    4. `get_backend_type()` below: `set_backend_type()` override, then
       the WHIRLWIND_VERIFIER_BACKEND environment variable, then "constraint"

So a config that names a backend wins over the environment variable,
and the variable only decides when the config leaves the field unset.

WARNING: the "constraint" backend is transparent (it reveals the witness)
and exists for local runs and tests; production deployments must select
"barretenberg".
"""

from __future__ import annotations

import os
from typing import Final

BACKEND_CHOICES: Final[tuple[str, ...]] = ("mock", "constraint", "barretenberg")
DEFAULT_BACKEND: Final[str] = "constraint"
BACKEND_ENV_VAR: Final[str] = "WHIRLWIND_VERIFIER_BACKEND"

_forced_backend: str | None = None


def _checked(value: object) -> str | None:
    """Return a valid backend name, None for unset or empty."""
    if value is None or value == "":
        return None
    if isinstance(value, str) and value in BACKEND_CHOICES:
        return value
    raise ValueError(
        f"Invalid backend type: {value!r}. Valid options: {', '.join(BACKEND_CHOICES)}"
    )


def get_backend_type(prefer: str | None = None) -> str:
    """
    Resolve the flag-level backend.

    Args:
        prefer: Backend to use if given; beats every other flag source.

    Returns:
        Backend type string.

    Raises:
        ValueError: If `prefer` or the environment variable names an unknown backend.
    """
    chosen = _checked(prefer) or _forced_backend or _checked(os.getenv(BACKEND_ENV_VAR))
    return chosen or DEFAULT_BACKEND


def set_backend_type(value: str | None) -> None:
    """Force a backend for this process (tests). None or "" clears it."""
    global _forced_backend
    _forced_backend = _checked(value)
