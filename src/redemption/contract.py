"""Redemption contract — unified facade for the escrow and payout ledger.

This is the primary interface for programmatic access. It orchestrates:
- Deadline gating (Open: receive/commit/revoke, Closed: redeem/draw/reclaim)
- Commitment ledger (stake and withdraw tokens)
- Payout calculator (pro-rata redemption)
- Finalizer (one-time sweep, bulk reclaim)
- Audit trail (event log)

Every mutating entry point runs inside the reentrancy guard and an undo
journal. Either the whole call takes effect and one event is recorded,
or the call raises and nothing changes. Batches are validated before
the first external call; rollback is only needed when a collaborator
fails part-way. If returning a token during rollback fails as well, the
token stays committed to its caller rather than being orphaned.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence
from uuid import uuid4

from redemption.collaborators import AssetContract, Beneficiary, ValueRail
from redemption.config import RedemptionConfig
from redemption.engine.deadline import DeadlineGate
from redemption.engine.guard import Journal, ReentrancyGuard
from redemption.errors import InvalidConfiguration
from redemption.ledger.commitments import CommitmentLedger
from redemption.ledger.eligibility import EligibilityPolicy
from redemption.ledger.finalizer import Finalizer, leftover_amount
from redemption.ledger.payout import PayoutCalculator
from redemption.models.redemption import (
    Phase,
    RedemptionQuote,
    RedemptionState,
    from_base_units,
)
from redemption.persistence.event_log import EventKind, EventLog, EventRecord

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RedemptionContract:
    """Escrow of committed tokens against a pooled fund.

    Usage:
        contract = RedemptionContract(
            duration=7 * 24 * 3600,
            asset_contract=asset,
            beneficiary=beneficiary,
            value_rail=rail,
        )

        # Open phase
        contract.receive("treasury", 10 * 10**18)
        contract.commit("alice", [1001, 1002])
        contract.revoke("alice", [1002])

        # Closed phase
        quote = contract.redeem("alice", [1001])
        contract.draw()
        contract.reclaim([1500])
    """

    def __init__(
        self,
        duration: int,
        asset_contract: AssetContract,
        beneficiary: Beneficiary,
        value_rail: ValueRail,
        *,
        address: Optional[str] = None,
        config: Optional[RedemptionConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._config = config or RedemptionConfig()
        self._clock = clock or _utc_now
        self._address = address or self._config.contract_address
        self._validate_collaborators(asset_contract, beneficiary, value_rail)

        gate = DeadlineGate.from_duration(duration, self._clock())
        self._wire(
            RedemptionState(deadline=gate.deadline),
            asset_contract,
            beneficiary,
            value_rail,
            event_log,
        )
        logger.info(
            "Redemption contract %s created, deadline %s",
            self._address, self._state.deadline.isoformat(),
        )

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        asset_contract: AssetContract,
        beneficiary: Beneficiary,
        value_rail: ValueRail,
        *,
        config: Optional[RedemptionConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        event_log: Optional[EventLog] = None,
    ) -> "RedemptionContract":
        """Rebuild a contract from to_dict() output and live collaborators."""
        contract = cls.__new__(cls)
        contract._config = config or RedemptionConfig()
        contract._clock = clock or _utc_now
        contract._address = data["address"]
        cls._validate_collaborators(asset_contract, beneficiary, value_rail)

        contract._wire(
            RedemptionState.from_dict(data["state"]),
            asset_contract,
            beneficiary,
            value_rail,
            event_log,
        )
        contract._ledger.load(data["commitments"])
        logger.info(
            "Redemption contract %s restored, deadline %s",
            contract._address, contract._state.deadline.isoformat(),
        )
        return contract

    def _wire(
        self,
        state: RedemptionState,
        asset_contract: AssetContract,
        beneficiary: Beneficiary,
        value_rail: ValueRail,
        event_log: Optional[EventLog],
    ) -> None:
        self._gate = DeadlineGate(state.deadline)
        self._state = state
        self._guard = ReentrancyGuard()
        self._event_log = event_log or EventLog()

        self._asset = asset_contract
        self._beneficiary = beneficiary
        self._ledger = CommitmentLedger(
            self._state,
            asset_contract,
            EligibilityPolicy(asset_contract, self._config.reserved_id_floor),
            self._address,
        )
        self._payout = PayoutCalculator(
            self._state, self._ledger, value_rail, self._config.unit
        )
        self._finalizer = Finalizer(
            self._state,
            asset_contract,
            beneficiary,
            value_rail,
            self._address,
            self._config.unit,
        )

    @staticmethod
    def _validate_collaborators(
        asset_contract: AssetContract,
        beneficiary: Beneficiary,
        value_rail: ValueRail,
    ) -> None:
        if asset_contract is None:
            raise InvalidConfiguration("An asset contract is required")
        if beneficiary is None:
            raise InvalidConfiguration("A beneficiary is required")
        if value_rail is None:
            raise InvalidConfiguration("A value rail is required")
        if beneficiary.governed_token() is not asset_contract:
            raise InvalidConfiguration(
                "Beneficiary does not govern the configured asset contract"
            )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        return self._address

    @property
    def deadline(self) -> datetime:
        return self._state.deadline

    @property
    def total_funding(self) -> int:
        return self._state.total_funding

    @property
    def total_commitments(self) -> int:
        return self._state.total_commitments

    @property
    def was_drawn(self) -> bool:
        return self._state.was_drawn

    @property
    def balance(self) -> int:
        return self._state.balance

    @property
    def event_log(self) -> EventLog:
        return self._event_log

    def commitments(self, token_id: int) -> Optional[str]:
        """Return the committer of token_id, or None if it is not committed."""
        return self._ledger.committer_of(token_id)

    def phase(self) -> Phase:
        return self._gate.phase(self._clock())

    def quote(self, token_count: int = 1) -> RedemptionQuote:
        """Preview the redemption payout for token_count tokens."""
        return self._payout.quote(token_count)

    def leftover(self) -> int:
        """Value draw() would still sweep; 0 once the draw has happened."""
        if self._state.was_drawn:
            return 0
        return leftover_amount(
            self._state.total_funding,
            self._state.total_commitments,
            self._config.unit,
        )

    def status(self) -> Dict[str, Any]:
        """Observable summary with amounts in display units."""
        decimals = self._config.unit_decimals
        return {
            "address": self._address,
            "phase": self.phase().value,
            "deadline": self._state.deadline.isoformat(),
            "total_funding": str(from_base_units(self._state.total_funding, decimals)),
            "total_commitments": self._state.total_commitments,
            "balance": str(from_base_units(self._state.balance, decimals)),
            "total_redeemed": str(from_base_units(self._state.total_redeemed, decimals)),
            "leftover": str(from_base_units(self.leftover(), decimals)),
            "was_drawn": self._state.was_drawn,
            "committed_tokens": len(self._ledger.committed_ids()),
            "events": self._event_log.count,
        }

    # ------------------------------------------------------------------
    # Mutating entry points
    # ------------------------------------------------------------------

    def receive(self, sender: str, amount: int) -> None:
        """Accept value into the pool while OPEN."""
        if amount < 0:
            raise ValueError(f"Received amount must be non-negative, got {amount}")
        with self._call() as (journal, now):
            self._gate.require_open(now)
            self._state.total_funding += amount
        self._emit(EventKind.FUNDS_RECEIVED, sender, {"amount": str(amount)}, now)
        logger.info("Received %d from %s (total funding %d)", amount, sender, self._state.total_funding)

    def commit(self, caller: str, ids: Sequence[int]) -> int:
        """Stake ids while OPEN. Returns the number of tokens committed."""
        with self._call() as (journal, now):
            self._gate.require_open(now)
            count = self._ledger.commit(caller, ids, journal)
        if count:
            self._emit(EventKind.TOKENS_COMMITTED, caller, {"token_ids": list(ids)}, now)
            logger.info("%s committed %d token(s)", caller, count)
        return count

    def revoke(self, caller: str, ids: Sequence[int]) -> int:
        """Withdraw caller's commitments while OPEN. Returns the count."""
        with self._call() as (journal, now):
            self._gate.require_open(now)
            count = self._ledger.revoke(caller, ids, journal)
        if count:
            self._emit(EventKind.TOKENS_REVOKED, caller, {"token_ids": list(ids)}, now)
            logger.info("%s revoked %d token(s)", caller, count)
        return count

    def redeem(self, caller: str, ids: Sequence[int]) -> RedemptionQuote:
        """Redeem caller's committed ids for their pro-rata share once CLOSED."""
        with self._call() as (journal, now):
            self._gate.require_closed(now)
            quote = self._payout.redeem(caller, ids, journal)
        if quote.token_count:
            self._emit(
                EventKind.TOKENS_REDEEMED,
                caller,
                {
                    "token_ids": list(ids),
                    "rate": str(quote.rate),
                    "amount": str(quote.amount),
                },
                now,
            )
            logger.info(
                "%s redeemed %d token(s) for %d", caller, quote.token_count, quote.amount
            )
        return quote

    def draw(self) -> int:
        """Sweep leftover value to the beneficiary once CLOSED. Returns the amount."""
        with self._call() as (journal, now):
            self._gate.require_closed(now)
            already_drawn = self._state.was_drawn
            swept = self._finalizer.draw(journal)
        if not already_drawn:
            self._emit(
                EventKind.FUND_DRAWN,
                self._beneficiary.address,
                {"amount": str(swept)},
                now,
            )
            logger.info("Drew %d to beneficiary %s", swept, self._beneficiary.address)
        return swept

    def reclaim(self, ids: Sequence[int]) -> List[int]:
        """Move held tokens to the beneficiary once CLOSED. Returns the ids moved."""
        with self._call() as (journal, now):
            self._gate.require_closed(now)
            moved = self._finalizer.reclaim(ids, journal)
        if moved:
            self._emit(
                EventKind.TOKENS_RECLAIMED,
                self._beneficiary.address,
                {"token_ids": moved},
                now,
            )
            logger.info("Reclaimed %d token(s) to %s", len(moved), self._beneficiary.address)
        return moved

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _call(self) -> Iterator[tuple[Journal, datetime]]:
        """Guarded, all-or-nothing scope for one top-level call."""
        with self._guard:
            journal = Journal()
            try:
                yield journal, self._clock()
            except Exception as exc:
                failed = journal.rollback()
                if failed:
                    logger.error(
                        "%d compensation step(s) failed while rolling back after %s",
                        failed, type(exc).__name__,
                    )
                raise
            journal.commit()

    def _emit(
        self,
        kind: EventKind,
        actor_id: str,
        payload: Dict[str, Any],
        now: datetime,
    ) -> None:
        event = EventRecord.create(
            event_id=f"evt_{uuid4().hex[:12]}",
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
            timestamp_utc=now,
        )
        self._event_log.append(event)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize contract state for persistence."""
        return {
            "address": self._address,
            "state": self._state.to_dict(),
            "commitments": self._ledger.to_dict(),
        }
