"""
Ledger state machine.

The ledger is the single source of truth for the current root, the deposit
counter and the nullifier set. Every transition is a pure function
`(state, input) -> (state, event)` that raises before producing anything
if a precondition or the proof check fails; `Ledger` owns the live state
and applies transitions one at a time.

Order of checks:
    deposit:  capacity -> payment -> proof([root, new_root, commitment, index])
    withdraw: nullifier freshness -> proof([root, nullifier]) -> funds
Precondition failures never reach the verifier.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple

from .circuits import CircuitType
from .config import PoolConfig
from .exceptions import (
    CapacityExceeded,
    DoubleSpend,
    InsufficientFunds,
    InvalidPayment,
    ProofRejected,
    ValidationError,
)
from .field import FieldLike, to_field, to_hex
from .hashing import FieldHasher
from .interfaces import ProofVerifier
from .merkle import compute_zeros
from .types import DepositEvent, LedgerEvent, ProofLike, WithdrawEvent, proof_bytes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerState:
    """
    Immutable snapshot of ledger state.

    Attributes:
        current_root: Root every new proof is checked against
        deposit_index: Index the next deposit must occupy
        max_deposits: 2**depth
        unit_amount: Fixed deposit/withdrawal amount
        used_nullifiers: Nullifiers of accepted withdrawals (add-only)
        balance: Funds held by the pool
    """

    current_root: int
    deposit_index: int
    max_deposits: int
    unit_amount: int
    used_nullifiers: FrozenSet[int] = field(default_factory=frozenset)
    balance: int = 0

    @property
    def is_full(self) -> bool:
        return self.deposit_index >= self.max_deposits

    def is_spent(self, nullifier: FieldLike) -> bool:
        return to_field(nullifier, "nullifier") in self.used_nullifiers


def genesis_state(
    config: PoolConfig,
    *,
    hasher: FieldHasher | None = None,
    initial_root: int | None = None,
) -> LedgerState:
    """
    State of a freshly deployed pool.

    The genesis root is the all-zero root for `config.depth` unless an
    explicit `initial_root` is supplied (it must match what the circuits
    and the off-chain tree derive, or the first deposit can never verify).
    """
    if initial_root is None:
        root = compute_zeros(config.depth, config.zero_value, hasher)[config.depth]
    else:
        root = to_field(initial_root, "initial_root")
    return LedgerState(
        current_root=root,
        deposit_index=0,
        max_deposits=config.capacity,
        unit_amount=config.unit_amount,
    )


def apply_deposit(
    state: LedgerState,
    proof: ProofLike,
    new_root: int,
    commitment: int,
    value: int,
    verifier: ProofVerifier,
) -> Tuple[LedgerState, DepositEvent]:
    """
    Deposit transition.

    Raises:
        CapacityExceeded: If every slot is taken
        InvalidPayment: If value differs from the unit amount
        ValidationError: If new_root or commitment is not a field element
        ProofRejected: If the verifier rejects the proof
    """
    if state.is_full:
        raise CapacityExceeded(
            f"pool is full: deposit_index {state.deposit_index} == max_deposits {state.max_deposits}"
        )
    if value != state.unit_amount:
        raise InvalidPayment(f"deposit must pay exactly {state.unit_amount}, got {value}")

    new_root = to_field(new_root, "new_root")
    commitment = to_field(commitment, "commitment")
    data = proof_bytes(proof)

    public_inputs = [state.current_root, new_root, commitment, state.deposit_index]
    if not verifier.verify(data, public_inputs):
        raise ProofRejected(CircuitType.DEPOSIT.value, public_inputs)

    event = DepositEvent(new_root=new_root, commitment=commitment, index=state.deposit_index)
    new_state = replace(
        state,
        current_root=new_root,
        deposit_index=state.deposit_index + 1,
        balance=state.balance + value,
    )
    return new_state, event


def apply_withdraw(
    state: LedgerState,
    proof: ProofLike,
    nullifier: int,
    recipient: str,
    verifier: ProofVerifier,
) -> Tuple[LedgerState, WithdrawEvent]:
    """
    Withdraw transition.

    Raises:
        ValidationError: If nullifier is not a field element or recipient is empty
        DoubleSpend: If the nullifier was already used
        ProofRejected: If the verifier rejects the proof
        InsufficientFunds: If the pool cannot pay the unit amount
    """
    nullifier = to_field(nullifier, "nullifier")
    if not isinstance(recipient, str) or not recipient:
        raise ValidationError("recipient must be a non-empty string")
    if state.is_spent(nullifier):
        raise DoubleSpend(nullifier)

    data = proof_bytes(proof)
    public_inputs = [state.current_root, nullifier]
    if not verifier.verify(data, public_inputs):
        raise ProofRejected(CircuitType.WITHDRAW.value, public_inputs)

    if state.balance < state.unit_amount:
        raise InsufficientFunds(
            f"pool balance {state.balance} cannot cover {state.unit_amount}"
        )

    event = WithdrawEvent(recipient=recipient, nullifier=nullifier)
    new_state = replace(
        state,
        used_nullifiers=state.used_nullifiers | {nullifier},
        balance=state.balance - state.unit_amount,
    )
    return new_state, event


class Ledger:
    """
    Serialized owner of the pool state.

    Calls are processed one at a time under a lock; each call either
    commits its state change, payout and event together or raises and
    leaves everything untouched.

    Example:
        >>> ledger = Ledger.genesis(PoolConfig(depth=3), verifiers)
        >>> event = ledger.deposit(proof, new_root, commitment, value=ledger.unit_amount)
    """

    def __init__(
        self,
        state: LedgerState,
        verifiers: Mapping[CircuitType, ProofVerifier],
    ) -> None:
        for circuit in CircuitType:
            if circuit not in verifiers:
                raise ValidationError(f"missing verifier for {circuit.value} circuit")
            if verifiers[circuit].circuit is not circuit:
                raise ValidationError(
                    f"verifier for {circuit.value} is bound to {verifiers[circuit].circuit.value}"
                )
        self._state = state
        self._verifiers: Dict[CircuitType, ProofVerifier] = dict(verifiers)
        self._events: List[LedgerEvent] = []
        self._payouts: Dict[str, int] = {}
        self._lock = threading.Lock()

    @classmethod
    def genesis(
        cls,
        config: PoolConfig,
        verifiers: Mapping[CircuitType, ProofVerifier],
        *,
        hasher: FieldHasher | None = None,
        initial_root: Optional[int] = None,
    ) -> "Ledger":
        return cls(genesis_state(config, hasher=hasher, initial_root=initial_root), verifiers)

    @property
    def state(self) -> LedgerState:
        return self._state

    @property
    def current_root(self) -> int:
        return self._state.current_root

    @property
    def deposit_index(self) -> int:
        return self._state.deposit_index

    @property
    def max_deposits(self) -> int:
        return self._state.max_deposits

    @property
    def unit_amount(self) -> int:
        return self._state.unit_amount

    @property
    def balance(self) -> int:
        return self._state.balance

    @property
    def events(self) -> List[LedgerEvent]:
        return list(self._events)

    @property
    def payouts(self) -> Dict[str, int]:
        return dict(self._payouts)

    def is_spent(self, nullifier: FieldLike) -> bool:
        return self._state.is_spent(nullifier)

    def deposit(
        self,
        proof: ProofLike,
        new_root: int,
        commitment: int,
        *,
        value: int,
    ) -> DepositEvent:
        with self._lock:
            try:
                new_state, event = apply_deposit(
                    self._state,
                    proof,
                    new_root,
                    commitment,
                    value,
                    self._verifiers[CircuitType.DEPOSIT],
                )
            except (ProofRejected, CapacityExceeded, ValidationError) as exc:
                logger.warning("deposit rejected at index %d: %s", self._state.deposit_index, exc)
                raise
            self._state = new_state
            self._events.append(event)

        logger.info(
            "deposit accepted: index=%d commitment=%s root=%s",
            event.index,
            to_hex(event.commitment),
            to_hex(event.new_root),
        )
        return event

    def withdraw(
        self,
        proof: ProofLike,
        nullifier: int,
        *,
        recipient: str,
    ) -> WithdrawEvent:
        with self._lock:
            try:
                new_state, event = apply_withdraw(
                    self._state,
                    proof,
                    nullifier,
                    recipient,
                    self._verifiers[CircuitType.WITHDRAW],
                )
            except (ProofRejected, DoubleSpend, InsufficientFunds, ValidationError) as exc:
                logger.warning("withdraw rejected: %s", exc)
                raise
            self._state = new_state
            self._events.append(event)
            self._payouts[recipient] = self._payouts.get(recipient, 0) + new_state.unit_amount

        logger.info(
            "withdraw accepted: recipient=%s nullifier=%s",
            event.recipient,
            to_hex(event.nullifier),
        )
        return event

    def deposit_events(self) -> List[DepositEvent]:
        return [event for event in self._events if isinstance(event, DepositEvent)]
