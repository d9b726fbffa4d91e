"""Error kinds for the redemption ledger.

Every failure is an immediate whole-operation abort. The contract rolls
back any mutation made during the call before the error leaves it, so a
caller that sees one of these can resubmit corrected input against
unchanged state.
"""

from __future__ import annotations


class RedemptionError(Exception):
    """Base class for all redemption ledger failures."""


class InvalidDuration(RedemptionError):
    """Raised when the contract is constructed with a non-positive duration."""


class AfterDeadline(RedemptionError):
    """Raised when an Open-phase operation is attempted after the deadline."""


class BeforeDeadline(RedemptionError):
    """Raised when a Closed-phase operation is attempted before the deadline."""


class UnsortedTokenIds(RedemptionError):
    """Raised when a batch of token IDs is not strictly increasing."""


class IneligibleHash(RedemptionError):
    """Raised when a token may not be committed."""


class UncommittedHash(RedemptionError):
    """Raised when a token is not committed by the caller."""


class TransferFailed(RedemptionError):
    """Raised when a value or custody transfer does not go through."""


class NoCommitments(RedemptionError):
    """Raised when a payout is requested while nothing is committed."""


class ReentrantCall(RedemptionError):
    """Raised when an entry point is re-entered while a call is in flight."""


class InvalidConfiguration(RedemptionError):
    """Raised when the contract's collaborators are missing or inconsistent."""
