"""Reference collaborator implementations."""

from redemption.adapters.memory import (
    CustodyError,
    InMemoryAssetContract,
    InMemoryBeneficiary,
    InMemoryValueRail,
    ManualClock,
)

__all__ = [
    "CustodyError",
    "InMemoryAssetContract",
    "InMemoryBeneficiary",
    "InMemoryValueRail",
    "ManualClock",
]
