"""
Unit tests for the Merkle accumulator and the field hasher.
"""

from __future__ import annotations

import hashlib

import pytest

from ..config import DOMAIN_SEPARATORS, FIELD_MODULUS, ZERO_VALUE
from ..exceptions import CapacityExceeded, ValidationError
from ..hashing import Sha256FieldHasher, get_default_hasher
from ..merkle import MerkleTree, compute_root, compute_zeros, verify_path


@pytest.fixture
def hasher():
    return get_default_hasher()


# ============================================================================
# HASHER
# ============================================================================


def test_hash_pair_matches_sha256(hasher):
    expected = hashlib.sha256(
        DOMAIN_SEPARATORS["node"] + (1).to_bytes(32, "big") + (2).to_bytes(32, "big")
    ).digest()
    assert hasher.hash_pair(1, 2) == int.from_bytes(expected, "big") % FIELD_MODULUS


def test_hash_pair_is_ordered(hasher):
    assert hasher.hash_pair(1, 2) != hasher.hash_pair(2, 1)


def test_commit_is_hash_of_id_and_r(hasher):
    assert hasher.commit(7, 11) == hasher.hash_pair(7, 11)


def test_domain_separator_changes_output():
    assert Sha256FieldHasher(b"A").hash_pair(1, 2) != Sha256FieldHasher(b"B").hash_pair(1, 2)


# ============================================================================
# ZEROS AND EMPTY TREES
# ============================================================================


def test_zeros_chain(hasher):
    zeros = compute_zeros(3, ZERO_VALUE, hasher)
    assert len(zeros) == 4
    assert zeros[0] == ZERO_VALUE
    for level in range(3):
        assert zeros[level + 1] == hasher.hash_pair(zeros[level], zeros[level])


def test_empty_root_is_top_zero(hasher):
    tree = MerkleTree(3)
    assert tree.root() == compute_zeros(3, ZERO_VALUE, hasher)[3]


def test_empty_root_is_deterministic():
    assert MerkleTree(4).root() == MerkleTree(4).root()
    assert MerkleTree(4).root() != MerkleTree(5).root()


def test_rejects_invalid_levels():
    with pytest.raises(ValidationError):
        MerkleTree(0)
    with pytest.raises(ValidationError):
        MerkleTree(33)


# ============================================================================
# INSERT / PROOF
# ============================================================================


class TestDepthThreeScenario:
    """Leaves [1, 2, 3] then insert 4 in a depth-3 tree."""

    @pytest.fixture
    def tree(self):
        return MerkleTree(3, leaves=[1, 2, 3])

    def test_insert_returns_next_index(self, tree):
        assert tree.insert(4) == 3
        assert tree.total_leaves == 4

    def test_path_for_fourth_leaf(self, tree, hasher):
        tree.insert(4)
        proof = tree.proof(3)
        assert proof.leaf == 4
        assert proof.path_elements == (3, hasher.hash_pair(1, 2), tree.zeros[2])
        assert proof.path_indices == (1, 1, 0)
        assert proof.index == 3

    def test_root_matches_manual_computation(self, tree, hasher):
        tree.insert(4)
        left = hasher.hash_pair(hasher.hash_pair(1, 2), hasher.hash_pair(3, 4))
        assert tree.root() == hasher.hash_pair(left, tree.zeros[2])

    def test_every_proof_reproduces_root(self, tree):
        tree.insert(4)
        for index in range(4):
            proof = tree.proof(index)
            assert proof.compute_root() == tree.root()
            assert verify_path(proof.leaf, proof.path_elements, proof.path_indices, tree.root())


def test_proof_of_empty_slot_uses_zero_leaf():
    tree = MerkleTree(3, leaves=[1])
    proof = tree.proof(5)
    assert proof.leaf == ZERO_VALUE
    assert proof.compute_root() == tree.root()


def test_proof_root_matches_tree_root():
    tree = MerkleTree(2, leaves=[9])
    assert tree.proof(0).root == tree.root()


def test_inserting_same_leaf_twice_gives_two_indices():
    tree = MerkleTree(3)
    assert tree.insert(42) == 0
    assert tree.insert(42) == 1
    assert tree.get_index(42) == 0
    assert tree.leaves() == [42, 42]


def test_get_index_missing_leaf():
    assert MerkleTree(3, leaves=[1]).get_index(2) == -1


def test_insert_into_full_tree_raises():
    tree = MerkleTree(1, leaves=[1, 2])
    root = tree.root()
    with pytest.raises(CapacityExceeded):
        tree.insert(3)
    assert tree.root() == root
    assert tree.total_leaves == 2


def test_insert_changes_root():
    tree = MerkleTree(3)
    before = tree.root()
    tree.insert(1)
    assert tree.root() != before


def test_insert_rejects_non_field_leaf():
    tree = MerkleTree(3)
    with pytest.raises(ValidationError):
        tree.insert(FIELD_MODULUS)
    assert tree.total_leaves == 0


def test_proof_index_out_of_range():
    with pytest.raises(ValidationError, match="out of range"):
        MerkleTree(2).proof(4)


# ============================================================================
# UPDATE
# ============================================================================


def test_update_replaces_leaf():
    tree = MerkleTree(3, leaves=[1, 2])
    tree.update(0, 5)
    expected = MerkleTree(3, leaves=[5, 2])
    assert tree.root() == expected.root()
    assert tree.total_leaves == 2


def test_update_of_empty_slot_requires_insert():
    tree = MerkleTree(3, leaves=[1])
    with pytest.raises(ValidationError, match="use insert"):
        tree.update(1, 5)


def test_insert_mode_at_occupied_slot_rejected():
    tree = MerkleTree(3, leaves=[1])
    with pytest.raises(ValidationError, match="use update"):
        tree.update(0, 5, is_insert=True)


def test_insert_mode_must_be_sequential():
    tree = MerkleTree(3, leaves=[1])
    root = tree.root()
    with pytest.raises(ValidationError, match="sequential"):
        tree.update(3, 5, is_insert=True)
    assert tree.root() == root


# ============================================================================
# PATH HELPERS
# ============================================================================


def test_compute_root_length_mismatch():
    with pytest.raises(ValidationError, match="elements"):
        compute_root(1, [1, 2], [0])


def test_compute_root_bad_bit():
    with pytest.raises(ValidationError, match="0 or 1"):
        compute_root(1, [1], [2])


def test_verify_path_rejects_wrong_root():
    tree = MerkleTree(3, leaves=[1, 2])
    proof = tree.proof(1)
    assert not verify_path(proof.leaf, proof.path_elements, proof.path_indices, tree.root() ^ 1)
    assert not verify_path(proof.leaf, proof.path_elements, [0], tree.root())


def test_inclusion_proof_to_dict():
    data = MerkleTree(2, leaves=[1]).proof(0).to_dict()
    assert set(data) == {"leaf", "root", "pathElements", "pathIndices"}
    assert data["pathIndices"] == [0, 0]
    assert all(value.startswith("0x") and len(value) == 66 for value in data["pathElements"])
