"""Finalizer — one-time sweep of unused value and bulk token reclaim.

draw() runs once. If the fund pays more than one unit per committed
token, everything above one unit per commitment is left over and goes to
the beneficiary:

    F // C <= unit          nothing left over
    otherwise               leftover = F - C * unit

When nothing was committed there are no claims, so the whole funding is
left over.

reclaim() moves tokens the contract still holds to the beneficiary,
regardless of commitment history.
"""

from __future__ import annotations

import logging
from functools import partial
from typing import List, Sequence

from redemption.collaborators import AssetContract, Beneficiary, ValueRail
from redemption.engine.guard import Journal
from redemption.ledger.ordering import strictly_increasing
from redemption.ledger.transfers import (
    move_token,
    require_held_by,
    return_token,
    send_value,
)
from redemption.models.redemption import RedemptionState

logger = logging.getLogger(__name__)


def leftover_amount(total_funding: int, total_commitments: int, unit: int) -> int:
    """Value not claimable by redemptions, in base units."""
    if total_commitments <= 0:
        return total_funding
    if total_funding // total_commitments <= unit:
        return 0
    return max(total_funding - total_commitments * unit, 0)


class Finalizer:
    """Post-deadline sweep of leftover value and custody."""

    def __init__(
        self,
        state: RedemptionState,
        asset_contract: AssetContract,
        beneficiary: Beneficiary,
        rail: ValueRail,
        custodian: str,
        unit: int,
    ) -> None:
        self._state = state
        self._asset = asset_contract
        self._beneficiary = beneficiary
        self._rail = rail
        self._custodian = custodian
        self._unit = unit

    def draw(self, journal: Journal) -> int:
        """Sweep leftover value to the beneficiary once.

        Returns the amount swept; 0 when already drawn or nothing is left.
        was_drawn is set before the transfer.
        """
        if self._state.was_drawn:
            return 0
        self._state.was_drawn = True
        journal.record(self._undo_drawn)

        leftover = leftover_amount(
            self._state.total_funding, self._state.total_commitments, self._unit
        )
        if leftover <= 0:
            return 0

        send_value(self._rail, self._state, self._beneficiary.address, leftover)
        self._state.total_drawn += leftover
        return leftover

    def reclaim(self, ids: Sequence[int], journal: Journal) -> List[int]:
        """Transfer the contract's tokens to the beneficiary. Returns the ids moved."""
        batch = strictly_increasing(ids)
        for token_id in batch:
            require_held_by(self._asset, token_id, self._custodian)

        recipient = self._beneficiary.address
        for token_id in batch:
            move_token(
                self._asset, self._custodian, self._custodian, recipient, token_id
            )
            journal.record(
                partial(return_token, self._asset, recipient, self._custodian, token_id)
            )
            logger.debug("Token %s reclaimed to %s", token_id, recipient)
        return batch

    def _undo_drawn(self) -> None:
        self._state.was_drawn = False
