"""Tests for the off-chain pool client against a live ledger."""

from __future__ import annotations

import pytest

from ..adapters.constraint_adapter import ConstraintProver
from ..client import PoolClient
from ..config import PoolConfig
from ..exceptions import (
    AccumulatorDesync,
    CapacityExceeded,
    DoubleSpend,
    ProofRejected,
    ValidationError,
)
from ..factory import get_verifiers
from ..hashing import get_default_hasher
from ..ledger import Ledger
from ..types import DepositEvent

DEPTH = 3


@pytest.fixture
def config():
    return PoolConfig(depth=DEPTH, verifier_backend="constraint")


@pytest.fixture
def ledger(config):
    return Ledger.genesis(config, get_verifiers(config=config))


@pytest.fixture
def prover():
    return ConstraintProver(DEPTH)


@pytest.fixture
def client(config):
    return PoolClient(config)


class TestDeposit:
    """Deposit flow."""

    def test_deposit_advances_ledger_and_mirror(self, client, ledger, prover):
        record = client.deposit(ledger, prover, 7, 11)
        assert record.index == 0
        assert record.commitment == get_default_hasher().commit(7, 11)
        assert ledger.current_root == client.tree.root() == record.new_root
        assert ledger.deposit_index == 1
        assert client.records == [record]

    def test_deposit_emits_event(self, client, ledger, prover):
        record = client.deposit(ledger, prover, 7, 11)
        assert ledger.events == [
            DepositEvent(new_root=record.new_root, commitment=record.commitment, index=0)
        ]

    def test_sequential_deposits(self, client, ledger, prover):
        for n in range(3):
            client.deposit(ledger, prover, 100 + n, 200 + n)
        assert [record.index for record in client.records] == [0, 1, 2]
        assert ledger.deposit_index == 3

    def test_prepare_deposit_does_not_touch_mirror(self, client):
        root = client.tree.root()
        prepared = client.prepare_deposit(1, 2)
        assert client.tree.root() == root
        assert client.tree.total_leaves == 0
        assert prepared.public_inputs.old_root == root
        assert prepared.public_inputs.index == 0

    def test_full_pool(self):
        config = PoolConfig(depth=1)
        small_ledger = Ledger.genesis(config, get_verifiers(config=config, override="constraint"))
        client = PoolClient(config)
        small_prover = ConstraintProver(1)
        client.deposit(small_ledger, small_prover, 1, 1)
        client.deposit(small_ledger, small_prover, 2, 2)
        with pytest.raises(CapacityExceeded):
            client.deposit(small_ledger, small_prover, 3, 3)
        assert small_ledger.deposit_index == 2


class TestSync:
    """Mirror maintenance."""

    def test_stale_mirror_detected(self, config, ledger, prover):
        alice = PoolClient(config)
        bob = PoolClient(config)
        alice.deposit(ledger, prover, 1, 2)
        with pytest.raises(AccumulatorDesync):
            bob.deposit(ledger, prover, 3, 4)
        assert ledger.deposit_index == 1

    def test_sync_then_deposit(self, config, ledger, prover):
        alice = PoolClient(config)
        bob = PoolClient(config)
        alice.deposit(ledger, prover, 1, 2)
        assert bob.sync(ledger.events) == 1
        record = bob.deposit(ledger, prover, 3, 4)
        assert record.index == 1
        assert bob.tree.root() == ledger.current_root

    def test_sync_is_idempotent(self, client, ledger, prover):
        client.deposit(ledger, prover, 1, 2)
        assert client.sync(ledger.deposit_events()) == 0

    def test_sync_rejects_gap(self, client):
        with pytest.raises(AccumulatorDesync):
            client.sync([DepositEvent(new_root=1, commitment=2, index=1)])
        assert client.tree.total_leaves == 0

    def test_sync_rejects_wrong_root(self, client):
        root = client.tree.root()
        with pytest.raises(AccumulatorDesync):
            client.sync([DepositEvent(new_root=1, commitment=2, index=0)])
        assert client.tree.root() == root

    def test_lost_race_is_rejected(self, config, ledger, prover):
        alice = PoolClient(config)
        bob = PoolClient(config)
        prepared_alice = alice.prepare_deposit(1, 2)
        prepared_bob = bob.prepare_deposit(3, 4)

        proof_alice = prover.prove("deposit", prepared_alice.witness, prepared_alice.public_inputs)
        proof_bob = prover.prove("deposit", prepared_bob.witness, prepared_bob.public_inputs)

        event = ledger.deposit(
            proof_alice,
            prepared_alice.public_inputs.new_root,
            prepared_alice.public_inputs.commitment,
            value=ledger.unit_amount,
        )
        alice.confirm_deposit(prepared_alice, event)

        with pytest.raises(ProofRejected):
            ledger.deposit(
                proof_bob,
                prepared_bob.public_inputs.new_root,
                prepared_bob.public_inputs.commitment,
                value=ledger.unit_amount,
            )
        assert ledger.current_root == alice.tree.root()

    def test_confirm_rejects_mismatched_event(self, client):
        prepared = client.prepare_deposit(1, 2)
        event = DepositEvent(
            new_root=prepared.record.new_root, commitment=prepared.record.commitment, index=1
        )
        with pytest.raises(AccumulatorDesync):
            client.confirm_deposit(prepared, event)
        assert client.tree.total_leaves == 0


class TestWithdraw:
    """Withdraw flow."""

    def test_withdraw_pays_recipient(self, client, ledger, prover):
        record = client.deposit(ledger, prover, 7, 11)
        event = client.withdraw(ledger, prover, record.index, recipient="alice")
        assert event.nullifier == 7
        assert ledger.payouts == {"alice": ledger.unit_amount}
        assert ledger.is_spent(7)

    def test_withdraw_after_later_deposits(self, client, ledger, prover):
        first = client.deposit(ledger, prover, 7, 11)
        client.deposit(ledger, prover, 8, 12)
        client.deposit(ledger, prover, 9, 13)
        client.withdraw(ledger, prover, first.index, recipient="alice")
        assert ledger.is_spent(7)

    def test_double_withdraw_rejected(self, client, ledger, prover):
        record = client.deposit(ledger, prover, 7, 11)
        client.withdraw(ledger, prover, record.index, recipient="alice")
        with pytest.raises(DoubleSpend):
            client.withdraw(ledger, prover, record.index, recipient="bob")
        assert ledger.payouts == {"alice": ledger.unit_amount}

    def test_withdraw_unknown_index(self, client, ledger, prover):
        with pytest.raises(ValidationError, match="No deposit record"):
            client.withdraw(ledger, prover, 0, recipient="alice")

    def test_prepared_withdraw_uses_current_root(self, client, ledger, prover):
        record = client.deposit(ledger, prover, 7, 11)
        client.deposit(ledger, prover, 8, 12)
        prepared = client.prepare_withdraw(record.index)
        assert prepared.public_inputs.root == ledger.current_root
        assert prepared.public_inputs.root != record.new_root
        assert prepared.nullifier == 7

    def test_reused_id_withdraws_once(self, client, ledger, prover):
        first = client.deposit(ledger, prover, 7, 11)
        second = client.deposit(ledger, prover, 7, 13)
        assert first.commitment != second.commitment
        client.withdraw(ledger, prover, first.index, recipient="alice")
        with pytest.raises(DoubleSpend):
            client.withdraw(ledger, prover, second.index, recipient="bob")
        assert ledger.payouts == {"alice": ledger.unit_amount}
        assert ledger.balance == ledger.unit_amount
