"""In-memory collaborators for simulation, tests and the CLI.

These implement the collaborator Protocols with plain dictionaries:

    InMemoryAssetContract   owners, operator approvals, deactivation flags
    InMemoryValueRail       address balances, refusing recipients
    InMemoryBeneficiary     address + governed asset contract
    ManualClock             UTC clock that only moves when told to

Hooks (on_transfer, on_send) run after the move has taken effect, which
is where a hostile collaborator would try to call back into the contract.
If a hook raises, the move is undone before the exception propagates.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple


class CustodyError(Exception):
    """Raised when an in-memory token transfer is not allowed."""


class InMemoryAssetContract:
    """Minimal non-fungible token registry.

    Usage:
        asset = InMemoryAssetContract(governance_cap=1000)
        asset.mint("alice", [101, 102])
        asset.set_approval_for_all("alice", "redemption", True)
        asset.transfer_from("redemption", "alice", "redemption", 101)
    """

    def __init__(
        self,
        governance_cap: int,
        deactivated_ids: Iterable[int] = (),
    ) -> None:
        self._governance_cap = governance_cap
        self._owners: Dict[int, str] = {}
        self._approvals: Set[Tuple[str, str]] = set()
        self._deactivated: Set[int] = set(deactivated_ids)
        self.on_transfer: Optional[Callable[[str, str, int], None]] = None

    def mint(self, owner: str, token_ids: Iterable[int]) -> None:
        for token_id in token_ids:
            if token_id in self._owners:
                raise CustodyError(f"Token {token_id} already minted")
            self._owners[token_id] = owner

    def owner_of(self, token_id: int) -> Optional[str]:
        return self._owners.get(token_id)

    def tokens_of(self, owner: str) -> List[int]:
        return sorted(t for t, o in self._owners.items() if o == owner)

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None:
        if approved:
            self._approvals.add((owner, operator))
        else:
            self._approvals.discard((owner, operator))

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return (owner, operator) in self._approvals

    def deactivate(self, token_id: int) -> None:
        self._deactivated.add(token_id)

    def deactivated(self, token_id: int) -> bool:
        return token_id in self._deactivated

    def governance_cap(self) -> int:
        return self._governance_cap

    def transfer_from(
        self,
        operator: str,
        sender: str,
        recipient: str,
        token_id: int,
    ) -> None:
        owner = self._owners.get(token_id)
        if owner is None:
            raise CustodyError(f"Token {token_id} does not exist")
        if owner != sender:
            raise CustodyError(f"Token {token_id} is not owned by {sender}")
        if operator != owner and not self.is_approved_for_all(owner, operator):
            raise CustodyError(f"{operator} is not approved to move token {token_id}")
        self._owners[token_id] = recipient
        if self.on_transfer is not None:
            try:
                self.on_transfer(sender, recipient, token_id)
            except Exception:
                self._owners[token_id] = owner
                raise


class InMemoryValueRail:
    """Balance book for value pushed out of the contract."""

    def __init__(self) -> None:
        self._balances: Dict[str, int] = {}
        self._refusing: Set[str] = set()
        self.on_send: Optional[Callable[[str, int], None]] = None

    def balance_of(self, address: str) -> int:
        return self._balances.get(address, 0)

    def refuse(self, address: str, refusing: bool = True) -> None:
        """Make address refuse (or accept again) incoming value."""
        if refusing:
            self._refusing.add(address)
        else:
            self._refusing.discard(address)

    def send(self, recipient: str, amount: int) -> bool:
        if recipient in self._refusing:
            return False
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        if self.on_send is not None:
            try:
                self.on_send(recipient, amount)
            except Exception:
                self._balances[recipient] -= amount
                raise
        return True


class InMemoryBeneficiary:
    """Beneficiary identified by an address, governing one asset contract."""

    def __init__(self, address: str, asset_contract: InMemoryAssetContract) -> None:
        self._address = address
        self._asset = asset_contract

    @property
    def address(self) -> str:
        return self._address

    def governed_token(self) -> InMemoryAssetContract:
        return self._asset


class ManualClock:
    """Callable UTC clock advanced explicitly."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        self._now = self._now + timedelta(seconds=seconds)
        return self._now

    def set(self, when: datetime) -> None:
        self._now = when
