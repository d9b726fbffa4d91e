"""Outbound calls to collaborators, with failure mapping and compensation.

A batch is validated in full before its first custody move, so the moves
themselves only fail when a collaborator does. When that happens, the
moves already made in the same call are reversed by return_token, issued
by whoever holds the token after the move. Value sends are always the
last external call of an operation and are not compensated.
"""

from __future__ import annotations

import logging

from redemption.collaborators import AssetContract, ValueRail
from redemption.errors import RedemptionError, TransferFailed
from redemption.models.redemption import RedemptionState

logger = logging.getLogger(__name__)


def require_held_by(asset: AssetContract, token_id: int, holder: str) -> None:
    """Raise TransferFailed unless holder currently owns token_id."""
    owner = asset.owner_of(token_id)
    if owner != holder:
        raise TransferFailed(f"Token {token_id} is not held by {holder}")


def move_token(
    asset: AssetContract,
    operator: str,
    sender: str,
    recipient: str,
    token_id: int,
) -> None:
    """Move custody of token_id from sender to recipient.

    Collaborator exceptions surface as TransferFailed; our own errors
    (a rejected reentrant call, for instance) propagate unchanged.
    """
    try:
        asset.transfer_from(operator, sender, recipient, token_id)
    except RedemptionError:
        raise
    except Exception as exc:
        logger.warning(
            "Custody transfer of token %s from %s to %s failed: %s",
            token_id, sender, recipient, exc,
        )
        raise TransferFailed(
            f"Custody transfer of token {token_id} from {sender} to {recipient} failed"
        ) from exc


def return_token(
    asset: AssetContract,
    holder: str,
    original_owner: str,
    token_id: int,
) -> None:
    """Compensate an earlier move: holder sends token_id back to original_owner."""
    asset.transfer_from(holder, holder, original_owner, token_id)


def send_value(
    rail: ValueRail,
    state: RedemptionState,
    recipient: str,
    amount: int,
) -> None:
    """Pay amount out of the contract balance to recipient.

    The caller is responsible for recording the outflow in state once
    this returns.
    """
    if amount > state.balance:
        raise TransferFailed(
            f"Cannot send {amount} to {recipient}: balance is {state.balance}"
        )
    try:
        sent = rail.send(recipient, amount)
    except RedemptionError:
        raise
    except Exception as exc:
        logger.warning("Value transfer of %d to %s raised: %s", amount, recipient, exc)
        raise TransferFailed(f"Value transfer of {amount} to {recipient} failed") from exc
    if not sent:
        logger.warning("Value transfer of %d to %s was refused", amount, recipient)
        raise TransferFailed(f"Value transfer of {amount} to {recipient} was refused")
