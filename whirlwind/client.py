"""
Off-chain pool client.

Keeps a mirror of the ledger's tree, assembles deposit and withdraw
witnesses, and records the secrets of its own deposits. The mirror is
never a second source of truth: it is checked against the ledger before
every witness is built and only advanced after the ledger accepted the
deposit it describes. A stale mirror surfaces as `AccumulatorDesync`; a
deposit that lost a race surfaces as `ProofRejected`. In both cases the
caller refreshes (see `sync`) and rebuilds; nothing here retries on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .circuits import (
    CircuitType,
    DepositPublicInputs,
    DepositWitness,
    WithdrawPublicInputs,
    WithdrawWitness,
)
from .config import PoolConfig
from .exceptions import AccumulatorDesync, CapacityExceeded, ValidationError
from .field import to_field, to_hex
from .hashing import FieldHasher, get_default_hasher
from .interfaces import ProofGenerator
from .ledger import Ledger
from .merkle import MerkleTree, compute_root
from .types import DepositEvent, DepositRecord, LedgerEvent, WithdrawEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreparedDeposit:
    """Witness and public inputs for one deposit, plus its record."""

    record: DepositRecord
    witness: DepositWitness
    public_inputs: DepositPublicInputs


@dataclass(frozen=True)
class PreparedWithdraw:
    record: DepositRecord
    witness: WithdrawWitness
    public_inputs: WithdrawPublicInputs

    @property
    def nullifier(self) -> int:
        return self.public_inputs.nullifier


class PoolClient:
    """
    Depositor/withdrawer view of the pool.

    Example:
        >>> client = PoolClient(PoolConfig(depth=3))
        >>> record = client.deposit(ledger, prover, id_=7, r=11)
        >>> client.withdraw(ledger, prover, record.index, recipient="alice")
    """

    def __init__(
        self,
        config: PoolConfig | None = None,
        *,
        hasher: FieldHasher | None = None,
    ) -> None:
        self.config = config or PoolConfig()
        self.hasher = hasher or get_default_hasher()
        self.tree = MerkleTree(
            self.config.depth, hasher=self.hasher, zero_value=self.config.zero_value
        )
        self._records: Dict[int, DepositRecord] = {}

    @property
    def records(self) -> List[DepositRecord]:
        return [self._records[index] for index in sorted(self._records)]

    def record_for(self, index: int) -> DepositRecord:
        try:
            return self._records[index]
        except KeyError:
            raise ValidationError(f"No deposit record found for index {index}") from None

    # ------------------------------------------------------------------
    # Mirror maintenance
    # ------------------------------------------------------------------

    def check_sync(self, ledger: Ledger) -> None:
        """
        Raises:
            AccumulatorDesync: If the mirror's root or leaf count differs from the ledger
        """
        local_root = self.tree.root()
        local_index = self.tree.total_leaves
        if local_root != ledger.current_root or local_index != ledger.deposit_index:
            raise AccumulatorDesync(
                local_root=local_root,
                ledger_root=ledger.current_root,
                local_index=local_index,
                ledger_index=ledger.deposit_index,
            )

    def sync(self, events: Iterable[LedgerEvent]) -> int:
        """
        Replay ledger Deposit events into the mirror.

        Events the mirror already holds are checked, not reapplied.

        Returns:
            Number of leaves inserted

        Raises:
            AccumulatorDesync: If an event skips an index or its root does not
                match what the mirror derives
        """
        inserted = 0
        for event in events:
            if not isinstance(event, DepositEvent):
                continue
            if event.index < self.tree.total_leaves:
                if self.tree.proof(event.index).leaf != event.commitment:
                    raise self._desync(event)
                continue
            if event.index != self.tree.total_leaves:
                raise self._desync(event)
            path = self.tree.proof(event.index)
            expected_root = compute_root(
                event.commitment, path.path_elements, path.path_indices, self.hasher
            )
            if expected_root != event.new_root:
                raise self._desync(event)
            self.tree.insert(event.commitment)
            inserted += 1

        if inserted:
            logger.debug("synced %d deposits, root %s", inserted, to_hex(self.tree.root()))
        return inserted

    def _desync(self, event: DepositEvent) -> AccumulatorDesync:
        return AccumulatorDesync(
            local_root=self.tree.root(),
            ledger_root=event.new_root,
            local_index=self.tree.total_leaves,
            ledger_index=event.index,
        )

    # ------------------------------------------------------------------
    # Deposit
    # ------------------------------------------------------------------

    def prepare_deposit(self, id_: int, r: int) -> PreparedDeposit:
        """
        Assemble the deposit witness for the next free slot.

        Does not touch the mirror; call `confirm_deposit` once the ledger
        accepted the deposit.

        Raises:
            CapacityExceeded: If the mirror is full
        """
        id_ = to_field(id_, "id")
        r = to_field(r, "r")
        index = self.tree.total_leaves
        if index >= self.tree.capacity:
            raise CapacityExceeded(
                f"tree of depth {self.tree.levels} is full ({self.tree.capacity} leaves)"
            )

        old_root = self.tree.root()
        path = self.tree.proof(index)
        commitment = self.hasher.commit(id_, r)
        new_root = compute_root(commitment, path.path_elements, path.path_indices, self.hasher)

        record = DepositRecord(
            id=id_,
            r=r,
            commitment=commitment,
            index=index,
            old_root=old_root,
            new_root=new_root,
            path_elements=path.path_elements,
            path_indices=path.path_indices,
        )
        return PreparedDeposit(
            record=record,
            witness=DepositWitness(id=id_, r=r, old_path=path.path_elements),
            public_inputs=DepositPublicInputs(
                old_root=old_root,
                new_root=new_root,
                commitment=commitment,
                index=index,
            ),
        )

    def confirm_deposit(
        self, prepared: PreparedDeposit, event: Optional[DepositEvent] = None
    ) -> DepositRecord:
        """
        Advance the mirror with an accepted deposit.

        Raises:
            AccumulatorDesync: If the mirror moved since `prepare_deposit` or the
                ledger event disagrees with the prepared deposit
        """
        record = prepared.record
        if self.tree.total_leaves != record.index or self.tree.root() != record.old_root:
            raise AccumulatorDesync(
                local_root=self.tree.root(),
                ledger_root=record.old_root,
                local_index=self.tree.total_leaves,
                ledger_index=record.index,
            )
        if event is not None and (
            event.index != record.index
            or event.new_root != record.new_root
            or event.commitment != record.commitment
        ):
            raise AccumulatorDesync(
                local_root=record.new_root,
                ledger_root=event.new_root,
                local_index=record.index,
                ledger_index=event.index,
            )

        self.tree.insert(record.commitment)
        self._records[record.index] = record
        return record

    def deposit(
        self,
        ledger: Ledger,
        prover: ProofGenerator,
        id_: int,
        r: int,
    ) -> DepositRecord:
        """
        Full deposit flow: check sync, prove, submit, mirror.

        Raises:
            AccumulatorDesync: If the mirror is stale before submission
            ProofRejected, CapacityExceeded, InvalidPayment: From the ledger
        """
        self.check_sync(ledger)
        prepared = self.prepare_deposit(id_, r)
        proof = prover.prove(CircuitType.DEPOSIT, prepared.witness, prepared.public_inputs)
        event = ledger.deposit(
            proof,
            prepared.public_inputs.new_root,
            prepared.public_inputs.commitment,
            value=ledger.unit_amount,
        )
        return self.confirm_deposit(prepared, event)

    # ------------------------------------------------------------------
    # Withdraw
    # ------------------------------------------------------------------

    def prepare_withdraw(self, index: int) -> PreparedWithdraw:
        """
        Assemble a withdraw witness against the mirror's current root.

        The path is read fresh; the one stored in the deposit record is only
        valid for the root right after that deposit.

        Raises:
            ValidationError: If no record exists for `index`
            AccumulatorDesync: If the mirror no longer holds the commitment
        """
        record = self.record_for(index)
        path = self.tree.proof(index)
        if path.leaf != record.commitment:
            raise AccumulatorDesync(
                local_root=path.root,
                ledger_root=path.root,
                local_index=index,
                ledger_index=record.index,
            )
        return PreparedWithdraw(
            record=record,
            witness=WithdrawWitness(r=record.r, index=index, path=path.path_elements),
            public_inputs=WithdrawPublicInputs(root=path.root, id=record.id),
        )

    def withdraw(
        self,
        ledger: Ledger,
        prover: ProofGenerator,
        index: int,
        *,
        recipient: str,
    ) -> WithdrawEvent:
        """
        Full withdraw flow for one of this client's deposits.

        Returns:
            The ledger's WithdrawEvent

        Raises:
            AccumulatorDesync: If the mirror is stale
            DoubleSpend, ProofRejected: From the ledger
        """
        self.check_sync(ledger)
        prepared = self.prepare_withdraw(index)
        proof = prover.prove(CircuitType.WITHDRAW, prepared.witness, prepared.public_inputs)
        return ledger.withdraw(proof, prepared.nullifier, recipient=recipient)
