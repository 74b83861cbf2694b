"""
Append-only, fixed-depth Merkle accumulator over deposit commitments.

Nodes live in a sparse dict keyed by (level, index); level 0 is the leaf
layer and level `levels` holds the root at index 0. Missing nodes equal the
zero constant of their level, so proofs for slots that were never filled
are always well-defined.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from .config import MAX_DEPTH, ZERO_VALUE
from .exceptions import CapacityExceeded, ValidationError
from .field import to_field, to_hex
from .hashing import FieldHasher, get_default_hasher

logger = logging.getLogger(__name__)

NodeKey = Tuple[int, int]


@dataclass(frozen=True)
class InclusionProof:
    """
    Inclusion path for one leaf slot.

    Attributes:
        leaf: Value stored at the slot (the level-0 zero constant if empty)
        root: Tree root the path was read against
        path_elements: Sibling at each level, leaf level first
        path_indices: Bit per level; 1 if the tracked node is the right operand
    """

    leaf: int
    root: int
    path_elements: Tuple[int, ...]
    path_indices: Tuple[int, ...]

    @property
    def index(self) -> int:
        return sum(bit << level for level, bit in enumerate(self.path_indices))

    def compute_root(self, hasher: FieldHasher | None = None) -> int:
        return compute_root(self.leaf, self.path_elements, self.path_indices, hasher)

    def to_dict(self) -> dict:
        return {
            "leaf": to_hex(self.leaf),
            "root": to_hex(self.root),
            "pathElements": [to_hex(value) for value in self.path_elements],
            "pathIndices": list(self.path_indices),
        }


def compute_zeros(
    levels: int, zero_value: int = ZERO_VALUE, hasher: FieldHasher | None = None
) -> List[int]:
    """
    Zero constant of every level.

    zeros[0] is the empty-leaf marker and zeros[i + 1] = H(zeros[i], zeros[i]);
    zeros[levels] is the root of an empty tree.
    """
    hasher = hasher or get_default_hasher()
    zeros = [to_field(zero_value, "zero_value")]
    for _ in range(levels):
        zeros.append(hasher.hash_pair(zeros[-1], zeros[-1]))
    return zeros


def compute_root(
    leaf: int,
    path_elements: Sequence[int],
    path_indices: Sequence[int],
    hasher: FieldHasher | None = None,
) -> int:
    """
    Walk an inclusion path from a leaf up to the root.

    Raises:
        ValidationError: If the two sequences differ in length or a bit is not 0/1
    """
    if len(path_elements) != len(path_indices):
        raise ValidationError(
            f"path has {len(path_elements)} elements but {len(path_indices)} indices"
        )
    hasher = hasher or get_default_hasher()
    current = leaf
    for sibling, bit in zip(path_elements, path_indices):
        if bit == 0:
            current = hasher.hash_pair(current, sibling)
        elif bit == 1:
            current = hasher.hash_pair(sibling, current)
        else:
            raise ValidationError(f"path index must be 0 or 1, got {bit!r}")
    return current


def verify_path(
    leaf: int,
    path_elements: Sequence[int],
    path_indices: Sequence[int],
    root: int,
    hasher: FieldHasher | None = None,
) -> bool:
    """
    Check an inclusion path against an expected root.

    Returns:
        True if the path reproduces `root`, False otherwise (including
        malformed paths)
    """
    try:
        return compute_root(leaf, path_elements, path_indices, hasher) == root
    except ValidationError:
        return False


class MerkleTree:
    """
    Fixed-depth append-only Merkle tree with sparse storage.

    Leaves are assigned sequential indices starting at 0; there is no
    deletion. `update` can replace an existing leaf in place, which the pool
    itself never does but tooling that rebuilds trees relies on.

    Example:
        >>> tree = MerkleTree(3)
        >>> tree.insert(1)
        0
        >>> tree.proof(0).compute_root() == tree.root()
        True
    """

    def __init__(
        self,
        levels: int,
        *,
        hasher: FieldHasher | None = None,
        zero_value: int = ZERO_VALUE,
        leaves: Iterable[int] = (),
    ) -> None:
        if isinstance(levels, bool) or not isinstance(levels, int):
            raise ValidationError(f"levels must be int, got {type(levels).__name__}")
        if not 1 <= levels <= MAX_DEPTH:
            raise ValidationError(f"levels must be in [1, {MAX_DEPTH}], got {levels}")

        self.levels = levels
        self.hasher = hasher or get_default_hasher()
        self.storage: Dict[NodeKey, int] = {}
        self.zeros = compute_zeros(levels, zero_value, self.hasher)
        self.total_leaves = 0

        for leaf in leaves:
            self.insert(leaf)

    @property
    def capacity(self) -> int:
        return 1 << self.levels

    @property
    def zero_value(self) -> int:
        return self.zeros[0]

    def _node(self, level: int, index: int) -> int:
        return self.storage.get((level, index), self.zeros[level])

    def _check_index(self, index: int) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f"index must be int, got {type(index).__name__}")
        if not 0 <= index < self.capacity:
            raise ValidationError(f"index {index} out of range [0, {self.capacity})")

    def root(self) -> int:
        """Current root, or the all-zero root if nothing was inserted."""
        return self._node(self.levels, 0)

    def leaves(self) -> List[int]:
        return [self.storage[(0, index)] for index in range(self.total_leaves)]

    def get_index(self, leaf: int) -> int:
        """Index of the first slot holding `leaf`, or -1."""
        for index in range(self.total_leaves):
            if self.storage.get((0, index)) == leaf:
                return index
        return -1

    def proof(self, index: int) -> InclusionProof:
        """
        Inclusion path for the slot at `index`.

        An empty slot yields the level-0 zero constant as its leaf, which is
        exactly what the deposit circuit expects as the "before" state.

        Raises:
            ValidationError: If index is outside [0, capacity)
        """
        self._check_index(index)

        path_elements: List[int] = []
        path_indices: List[int] = []

        def handle_index(level: int, current_index: int, sibling_index: int) -> None:
            path_elements.append(self._node(level, sibling_index))
            path_indices.append(current_index % 2)

        self._traverse(index, handle_index)

        return InclusionProof(
            leaf=self._node(0, index),
            root=self.root(),
            path_elements=tuple(path_elements),
            path_indices=tuple(path_indices),
        )

    def insert(self, leaf: int) -> int:
        """
        Insert a leaf at the next free index.

        Returns:
            The index the leaf was stored at

        Raises:
            CapacityExceeded: If the tree already holds 2**levels leaves
        """
        if self.total_leaves >= self.capacity:
            raise CapacityExceeded(
                f"tree of depth {self.levels} is full ({self.capacity} leaves)"
            )
        index = self.total_leaves
        self.update(index, leaf, is_insert=True)
        return index

    def update(self, index: int, leaf: int, is_insert: bool = False) -> None:
        """
        Write a leaf and recompute every ancestor up to the root.

        Args:
            index: Slot to write
            leaf: New leaf value
            is_insert: True to fill the next free slot, False to replace an
                existing leaf

        Raises:
            ValidationError: On insert at an occupied or non-frontier slot,
                or update of a slot that was never filled
        """
        self._check_index(index)
        leaf = to_field(leaf, "leaf")

        if is_insert:
            if index < self.total_leaves:
                raise ValidationError(
                    f"index {index} is occupied; use update for existing elements"
                )
            if index > self.total_leaves:
                raise ValidationError(
                    f"indices are sequential; next free index is {self.total_leaves}, got {index}"
                )
        elif index >= self.total_leaves:
            raise ValidationError(
                f"index {index} is empty; use insert for new elements"
            )

        staged: List[Tuple[NodeKey, int]] = []
        current = leaf

        def handle_index(level: int, current_index: int, sibling_index: int) -> None:
            nonlocal current
            sibling = self._node(level, sibling_index)
            if current_index % 2 == 0:
                left, right = current, sibling
            else:
                left, right = sibling, current
            staged.append(((level, current_index), current))
            current = self.hasher.hash_pair(left, right)

        self._traverse(index, handle_index)
        staged.append(((self.levels, 0), current))

        self.storage.update(staged)
        if is_insert:
            self.total_leaves += 1

        logger.debug(
            "%s leaf %d -> root %s",
            "inserted" if is_insert else "updated",
            index,
            to_hex(current),
        )

    def _traverse(
        self, index: int, handler: Callable[[int, int, int], None]
    ) -> None:
        current_index = index
        for level in range(self.levels):
            handler(level, current_index, current_index ^ 1)
            current_index //= 2
