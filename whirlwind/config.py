"""
Protocol configuration for the Whirlwind pool.

The constants in the first half of this module are compiled into the
accumulator, both circuits and the ledger genesis root; changing any of
them breaks proof verification against existing verifying keys.

`PoolConfig` carries the deployment-level knobs (depth, unit amount,
verifier backend, parameter locations) and can be loaded from the
environment or from a YAML file.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Final, Mapping

import yaml

from .exceptions import ConfigurationError

# ============================================================================
# FIELD PARAMETERS
# ============================================================================

# BN254 scalar field (the native field of the deposit/withdraw circuits)
FIELD_MODULUS: Final[int] = (
    21888242871839275222246405745257275088548364400416034343698204186575808495617
)
FIELD_BYTES: Final[int] = 32
FIELD_HEX_DIGITS: Final[int] = 2 * FIELD_BYTES

# ============================================================================
# TREE PARAMETERS
# ============================================================================

# Canonical empty-leaf marker. The same value seeds the zero constants of
# every level and the ledger's genesis root.
ZERO_VALUE: Final[int] = (
    0x18D85F3DE6DCD78B6FFBF5D8374433A5528D8E3BF2100DF0B7BB43A4C59EBD63
)

DEFAULT_DEPTH: Final[int] = 8
MAX_DEPTH: Final[int] = 32

# ============================================================================
# HASH PARAMETERS
# ============================================================================

HASH_FUNCTION: Final[str] = "SHA256"
DOMAIN_SEPARATOR_PREFIX: Final[bytes] = b"WHIRLWIND_"

DOMAIN_SEPARATORS: Final[Dict[str, bytes]] = {
    "node": DOMAIN_SEPARATOR_PREFIX + b"NODE_V1",
}

# ============================================================================
# LEDGER PARAMETERS
# ============================================================================

# 0.1 ether in wei
UNIT_AMOUNT: Final[int] = 10**17

# ============================================================================
# PROOF SERIALIZATION
# ============================================================================

SERIALIZATION_FORMAT: Final[str] = "CBOR"
PROOF_VERSION: Final[int] = 1
MAX_PROOF_SIZE_BYTES: Final[int] = 64 * 1024

# ============================================================================
# VALIDATION
# ============================================================================


def validate_config() -> bool:
    """
    Validate protocol constants.

    Returns:
        True if configuration is valid

    Raises:
        AssertionError: If a constant is out of range
    """
    assert FIELD_MODULUS.bit_length() <= 8 * FIELD_BYTES, "Field does not fit in 32 bytes"
    assert 0 <= ZERO_VALUE < FIELD_MODULUS, "ZERO_VALUE must be a field element"
    assert 1 <= DEFAULT_DEPTH <= MAX_DEPTH, "Invalid default depth"
    assert HASH_FUNCTION in ["SHA256"], "Invalid hash function"
    assert UNIT_AMOUNT > 0, "Unit amount must be positive"
    assert SERIALIZATION_FORMAT == "CBOR", "Only CBOR proof envelopes are supported"
    return True


# Auto-validate on import
validate_config()


# ============================================================================
# DEPLOYMENT CONFIGURATION
# ============================================================================

_ENV_PREFIX: Final[str] = "WHIRLWIND_"


@dataclass(frozen=True)
class PoolConfig:
    """
    Deployment parameters for one pool instance.

    Attributes:
        depth: Number of tree levels below the root (capacity is 2**depth)
        unit_amount: Fixed deposit/withdrawal amount
        zero_value: Empty-leaf constant
        verifier_backend: Backend name for the factory, None defers to feature flags
        params_dir: Directory holding verifying keys for the snark backend
        bb_binary: Barretenberg CLI executable name or path

    Example:
        >>> cfg = PoolConfig(depth=3)
        >>> cfg.capacity
        8
    """

    depth: int = DEFAULT_DEPTH
    unit_amount: int = UNIT_AMOUNT
    zero_value: int = ZERO_VALUE
    verifier_backend: str | None = None
    params_dir: str | None = None
    bb_binary: str = "bb"
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.validate()

    @property
    def capacity(self) -> int:
        return 1 << self.depth

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If any parameter is out of range
        """
        if not isinstance(self.depth, int) or isinstance(self.depth, bool):
            raise ConfigurationError(f"depth must be int, got {self.depth!r}")
        if not 1 <= self.depth <= MAX_DEPTH:
            raise ConfigurationError(
                f"depth must be in [1, {MAX_DEPTH}], got {self.depth}"
            )
        if not isinstance(self.unit_amount, int) or self.unit_amount <= 0:
            raise ConfigurationError(
                f"unit_amount must be a positive int, got {self.unit_amount!r}"
            )
        if not isinstance(self.zero_value, int) or not 0 <= self.zero_value < FIELD_MODULUS:
            raise ConfigurationError("zero_value must be a field element")
        if not self.bb_binary:
            raise ConfigurationError("bb_binary cannot be empty")

    def with_overrides(self, **changes: Any) -> "PoolConfig":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["zero_value"] = f"0x{self.zero_value:0{FIELD_HEX_DIGITS}x}"
        return data

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PoolConfig":
        """
        Build a config from a plain mapping (YAML document, env dict).

        Unknown keys are kept under `extra` so deployment tooling can carry
        its own settings alongside the pool parameters.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("pool configuration must be a mapping")

        known = {"depth", "unit_amount", "zero_value", "verifier_backend", "params_dir", "bb_binary"}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in known:
                kwargs[key] = value
        extra = {key: value for key, value in data.items() if key not in known}

        try:
            if "depth" in kwargs:
                kwargs["depth"] = int(kwargs["depth"])
            if "unit_amount" in kwargs:
                kwargs["unit_amount"] = int(kwargs["unit_amount"])
            if "zero_value" in kwargs and isinstance(kwargs["zero_value"], str):
                kwargs["zero_value"] = int(kwargs["zero_value"], 16)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid pool configuration: {exc}") from exc

        for key in ("verifier_backend", "params_dir"):
            if kwargs.get(key) == "":
                kwargs[key] = None

        return cls(extra=extra, **kwargs)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "PoolConfig":
        """
        Load a config from a YAML file.

        The document is either the mapping itself or has it under a
        top-level `pool` key.
        """
        try:
            with open(path, "r", encoding="utf-8") as fh:
                document = yaml.safe_load(fh)
        except OSError as exc:
            raise ConfigurationError(f"Unable to read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

        if document is None:
            document = {}
        if isinstance(document, Mapping) and "pool" in document:
            document = document["pool"]
        return cls.from_mapping(document)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PoolConfig":
        """
        Load a config from `WHIRLWIND_*` environment variables.

        `WHIRLWIND_CONFIG` points at a YAML file used as the base; the
        individual variables override it.
        """
        env = os.environ if environ is None else environ
        base: Dict[str, Any] = {}

        config_path = env.get(f"{_ENV_PREFIX}CONFIG")
        if config_path:
            base = cls.from_yaml(config_path).to_dict()
            base.update(base.pop("extra", {}))

        mapping = {
            "DEPTH": "depth",
            "UNIT_AMOUNT": "unit_amount",
            "ZERO_VALUE": "zero_value",
            "VERIFIER_BACKEND": "verifier_backend",
            "PARAMS_DIR": "params_dir",
            "BB_BINARY": "bb_binary",
        }
        for suffix, key in mapping.items():
            value = env.get(f"{_ENV_PREFIX}{suffix}")
            if value is not None and value != "":
                base[key] = value

        return cls.from_mapping(base)
