"""Eligibility predicate for committing a token."""

from __future__ import annotations

from redemption.collaborators import AssetContract
from redemption.errors import IneligibleHash


class EligibilityPolicy:
    """Decides which tokens may be committed.

    A token is eligible when it is inside the governed range reported by
    the asset contract, above the reserved low-ID band, and not
    deactivated:

        reserved_id_floor <= token_id < asset.governance_cap()
    """

    def __init__(self, asset_contract: AssetContract, reserved_id_floor: int) -> None:
        if reserved_id_floor < 0:
            raise ValueError(
                f"reserved_id_floor must be non-negative, got {reserved_id_floor}"
            )
        self._asset = asset_contract
        self._floor = reserved_id_floor

    @property
    def reserved_id_floor(self) -> int:
        return self._floor

    def is_eligible(self, token_id: int) -> bool:
        if token_id < self._floor:
            return False
        if token_id >= self._asset.governance_cap():
            return False
        return not self._asset.deactivated(token_id)

    def require_eligible(self, token_id: int) -> None:
        """Raise IneligibleHash if token_id may not be committed."""
        if not self.is_eligible(token_id):
            raise IneligibleHash(f"Token {token_id} is not eligible for commitment")
