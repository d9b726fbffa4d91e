"""Core data models for the redemption ledger."""

from redemption.models.redemption import (
    Phase,
    RedemptionQuote,
    RedemptionState,
    from_base_units,
    to_base_units,
)

__all__ = [
    "Phase",
    "RedemptionQuote",
    "RedemptionState",
    "from_base_units",
    "to_base_units",
]
