"""Call-level machinery: deadline gating, reentrancy guard, undo journal."""

from redemption.engine.deadline import DeadlineGate
from redemption.engine.guard import Journal, ReentrancyGuard

__all__ = ["DeadlineGate", "Journal", "ReentrancyGuard"]
