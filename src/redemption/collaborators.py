"""Collaborator contracts — the external parties the redemption core consumes.

The core never implements token ownership, approvals, eligibility flags,
or value settlement itself. It talks to them through these Protocols:

    AssetContract   custody moves, holder lookups and eligibility queries
    Beneficiary     recipient of leftover value and reclaimed tokens
    ValueRail       pushes value out of the core to an address

Adding a different backend (an on-chain adapter, a database-backed
registry) means implementing the Protocol. Zero changes to the ledger,
payout, or finalizer logic.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class AssetContract(Protocol):
    """The non-fungible token collection whose tokens are committed.

    transfer_from must raise if the move is not allowed (sender is not
    the owner, operator not approved, unknown token). The core treats
    any such exception as a failed custody transfer.
    """

    def transfer_from(
        self,
        operator: str,
        sender: str,
        recipient: str,
        token_id: int,
    ) -> None:
        """Move token_id from sender to recipient on behalf of operator."""
        ...

    def owner_of(self, token_id: int) -> Optional[str]:
        """Current holder of token_id, or None if it does not exist."""
        ...

    def deactivated(self, token_id: int) -> bool:
        """Whether the token has been flagged deactivated."""
        ...

    def governance_cap(self) -> int:
        """Exclusive upper bound of the governed token ID range."""
        ...


@runtime_checkable
class Beneficiary(Protocol):
    """Receives swept value and reclaimed tokens after the deadline."""

    @property
    def address(self) -> str:
        """Address that value and tokens are sent to."""
        ...

    def governed_token(self) -> AssetContract:
        """The asset contract this beneficiary governs."""
        ...


@runtime_checkable
class ValueRail(Protocol):
    """Push-payment settlement for value leaving the core.

    send returns False when the recipient refuses or the payment cannot
    be made. It may also raise; the core treats both as TransferFailed.
    """

    def send(self, recipient: str, amount: int) -> bool:
        """Pay amount base units to recipient."""
        ...
