"""Redemption models — process-wide state, quotes, and unit conversion.

All amounts are integer base units (the smallest indivisible unit of the
fund, like wei). Display values use Decimal. No floats in finance.

Invariants enforced around these models:
- deadline is immutable once the state is created
- total_funding never decreases
- total_commitments is NOT decremented by redemption (frozen denominator)
- was_drawn flips once, from False to True
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Any, Dict

# Enough digits for any uint256 amount
_PRECISION = 80


class Phase(str, enum.Enum):
    """Temporal phase derived from the deadline.

    OPEN → CLOSED is the only transition, and it is never reversed.
    """
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class RedemptionState:
    """Mutable state of a redemption contract.

    Created once at construction and mutated for the life of the contract.
    total_redeemed and total_drawn are bookkeeping counters; the fund
    balance is derived from them.
    """
    deadline: datetime
    total_funding: int = 0
    total_commitments: int = 0
    was_drawn: bool = False
    total_redeemed: int = 0
    total_drawn: int = 0

    @property
    def balance(self) -> int:
        """Value currently held by the contract."""
        return self.total_funding - self.total_redeemed - self.total_drawn

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize state for persistence."""
        return {
            "deadline": self.deadline.isoformat(),
            "total_funding": str(self.total_funding),
            "total_commitments": self.total_commitments,
            "was_drawn": self.was_drawn,
            "total_redeemed": str(self.total_redeemed),
            "total_drawn": str(self.total_drawn),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RedemptionState":
        """Reconstruct state from persisted data."""
        return cls(
            deadline=datetime.fromisoformat(data["deadline"]),
            total_funding=int(data["total_funding"]),
            total_commitments=data["total_commitments"],
            was_drawn=data["was_drawn"],
            total_redeemed=int(data.get("total_redeemed", "0")),
            total_drawn=int(data.get("total_drawn", "0")),
        )


@dataclass(frozen=True)
class RedemptionQuote:
    """Payout for a batch of committed tokens.

    rate is the per-token rate in base units (capped at one unit);
    amount is the batch payout, computed multiply-before-divide.
    """
    token_count: int
    rate: int
    amount: int


def to_base_units(value: Decimal, decimals: int) -> int:
    """Convert a display amount to integer base units.

    Raises ValueError if the value has more precision than the unit allows.
    """
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = Decimal(value) * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f"Amount {value} has more than {decimals} decimal places"
        )
    return int(scaled)


def from_base_units(amount: int, decimals: int) -> Decimal:
    """Convert integer base units to a display amount."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(amount) / (Decimal(10) ** decimals)
