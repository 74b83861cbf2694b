"""
2-ary field hash used by the accumulator, the circuits and commitments.

The concrete primitive is a deployment choice; everything else in the
package depends on the `FieldHasher` interface only. The circuits must be
compiled against the same primitive or no proof will ever verify.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod

from .config import DOMAIN_SEPARATORS, FIELD_MODULUS
from .field import to_bytes32


class FieldHasher(ABC):
    """Collision-resistant hash of two field elements into one."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier recorded next to roots and proofs."""

    @abstractmethod
    def hash_pair(self, left: int, right: int) -> int:
        """Hash (left, right) in that order. Order matters."""

    def commit(self, identifier: int, blinding: int) -> int:
        """Commitment to a deposit: Hash(id, r)."""
        return self.hash_pair(identifier, blinding)


class Sha256FieldHasher(FieldHasher):
    """
    SHA-256 over domain || left || right, reduced into the field.

    Example:
        >>> h = Sha256FieldHasher()
        >>> h.hash_pair(1, 2) != h.hash_pair(2, 1)
        True
    """

    def __init__(self, domain_sep: bytes | None = None) -> None:
        self._domain_sep = DOMAIN_SEPARATORS["node"] if domain_sep is None else domain_sep

    @property
    def name(self) -> str:
        return "sha256"

    @property
    def domain_sep(self) -> bytes:
        return self._domain_sep

    def hash_pair(self, left: int, right: int) -> int:
        digest = hashlib.sha256(
            self._domain_sep + to_bytes32(left) + to_bytes32(right)
        ).digest()
        return int.from_bytes(digest, "big") % FIELD_MODULUS


_DEFAULT_HASHER: FieldHasher = Sha256FieldHasher()


def get_default_hasher() -> FieldHasher:
    return _DEFAULT_HASHER
