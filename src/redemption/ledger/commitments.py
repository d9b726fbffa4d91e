"""Commitment ledger — which tokens are staked, and by whom.

A token ID maps to a committer if and only if the contract holds that
token in custody on behalf of a pending claim. Absence is represented by
None, never by a sentinel address.

commit and revoke mirror each other. The whole batch is checked before
the first custody move:

    commit:  ordered → eligible and held by caller → custody caller→core → count += 1 → record
    revoke:  ordered → committed by caller → count -= 1 → clear → custody core→caller

Each token moved registers one undo in the call's journal. The undo puts
custody back first and only then touches the record, so a compensation
that fails leaves the record matching whoever still holds the token.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import Dict, List, Optional, Sequence

from redemption.collaborators import AssetContract
from redemption.engine.guard import Journal
from redemption.errors import UncommittedHash
from redemption.ledger.eligibility import EligibilityPolicy
from redemption.ledger.ordering import strictly_increasing
from redemption.ledger.transfers import move_token, require_held_by, return_token
from redemption.models.redemption import RedemptionState

logger = logging.getLogger(__name__)


class CommitmentLedger:
    """Tracks staked tokens and their committers.

    Usage:
        ledger = CommitmentLedger(state, asset, eligibility, custodian="0xcore")
        ledger.commit("alice", [1001, 1002], journal)
        ledger.committer_of(1001)   # "alice"
        ledger.revoke("alice", [1002], journal)
    """

    def __init__(
        self,
        state: RedemptionState,
        asset_contract: AssetContract,
        eligibility: EligibilityPolicy,
        custodian: str,
    ) -> None:
        self._state = state
        self._asset = asset_contract
        self._eligibility = eligibility
        self._custodian = custodian
        self._committers: Dict[int, str] = {}

    def committer_of(self, token_id: int) -> Optional[str]:
        """Return the committer of token_id, or None if not committed."""
        return self._committers.get(token_id)

    def committed_ids(self) -> List[int]:
        """Return all currently recorded token IDs in ascending order."""
        return sorted(self._committers)

    def require_committed_by(self, token_id: int, caller: str) -> None:
        """Raise UncommittedHash unless caller committed token_id."""
        if self._committers.get(token_id) != caller:
            raise UncommittedHash(f"Token {token_id} is not committed by {caller}")

    def commit(self, caller: str, ids: Sequence[int], journal: Journal) -> int:
        """Stake ids on behalf of caller. Returns the number committed."""
        batch = strictly_increasing(ids)
        for token_id in batch:
            self._eligibility.require_eligible(token_id)
            require_held_by(self._asset, token_id, caller)

        for token_id in batch:
            move_token(
                self._asset, self._custodian, caller, self._custodian, token_id
            )
            self._state.total_commitments += 1
            self._committers[token_id] = caller
            journal.record(partial(self._undo_commit, caller, token_id))
            logger.debug("Token %s committed by %s", token_id, caller)
        return len(batch)

    def revoke(self, caller: str, ids: Sequence[int], journal: Journal) -> int:
        """Withdraw caller's commitments and return custody. Returns the count."""
        batch = strictly_increasing(ids)
        for token_id in batch:
            self.require_committed_by(token_id, caller)

        for token_id in batch:
            self._state.total_commitments -= 1
            del self._committers[token_id]
            try:
                move_token(
                    self._asset, self._custodian, self._custodian, caller, token_id
                )
            except Exception:
                self._restore(token_id, caller)
                raise
            journal.record(partial(self._undo_revoke, caller, token_id))
            logger.debug("Token %s revoked by %s", token_id, caller)
        return len(batch)

    def clear(self, token_id: int, journal: Journal) -> None:
        """Remove the record for token_id (no-op if absent)."""
        previous = self._committers.pop(token_id, None)
        if previous is not None:
            journal.record(partial(self._committers.__setitem__, token_id, previous))

    def _restore(self, token_id: int, caller: str) -> None:
        self._committers[token_id] = caller
        self._state.total_commitments += 1

    def _undo_commit(self, caller: str, token_id: int) -> None:
        # The record is dropped only once custody is back with the caller
        return_token(self._asset, self._custodian, caller, token_id)
        del self._committers[token_id]
        self._state.total_commitments -= 1

    def _undo_revoke(self, caller: str, token_id: int) -> None:
        return_token(self._asset, caller, self._custodian, token_id)
        self._restore(token_id, caller)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, str]:
        """Serialize the commitment records (keys as strings for JSON)."""
        return {str(token_id): caller for token_id, caller in sorted(self._committers.items())}

    def load(self, data: Dict[str, str]) -> None:
        """Replace the commitment records with persisted data."""
        self._committers = {int(token_id): caller for token_id, caller in data.items()}
