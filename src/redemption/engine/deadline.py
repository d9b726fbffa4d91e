"""Deadline gate — derives the Open / Closed phase from an immutable deadline.

Phase is never cached: every check recomputes it from the time supplied
by the caller, so the gate flips to CLOSED exactly when the clock reaches
the deadline and stays there.

    OPEN    now <  deadline   receive, commit, revoke
    CLOSED  now >= deadline   redeem, draw, reclaim
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from redemption.errors import AfterDeadline, BeforeDeadline, InvalidDuration
from redemption.models.redemption import Phase


class DeadlineGate:
    """Two-phase temporal gate over a fixed deadline.

    Usage:
        gate = DeadlineGate.from_duration(86_400, now)
        gate.require_open(now)      # raises AfterDeadline once closed
        gate.require_closed(later)  # raises BeforeDeadline while open
    """

    def __init__(self, deadline: datetime) -> None:
        self._deadline = deadline

    @classmethod
    def from_duration(
        cls,
        duration_seconds: int,
        now: Optional[datetime] = None,
    ) -> "DeadlineGate":
        """Create a gate whose deadline is now + duration_seconds.

        Raises InvalidDuration if the duration is not positive.
        """
        if duration_seconds <= 0:
            raise InvalidDuration(
                f"Duration must be positive, got {duration_seconds}"
            )
        if now is None:
            now = datetime.now(timezone.utc)
        return cls(now + timedelta(seconds=duration_seconds))

    @property
    def deadline(self) -> datetime:
        return self._deadline

    def phase(self, now: Optional[datetime] = None) -> Phase:
        """Return the phase at the given time (defaults to UTC now)."""
        if now is None:
            now = datetime.now(timezone.utc)
        return Phase.OPEN if now < self._deadline else Phase.CLOSED

    def is_open(self, now: Optional[datetime] = None) -> bool:
        return self.phase(now) == Phase.OPEN

    def require_open(self, now: Optional[datetime] = None) -> None:
        """Raise AfterDeadline unless the gate is OPEN."""
        if self.phase(now) != Phase.OPEN:
            raise AfterDeadline(
                f"Deadline {self._deadline.isoformat()} has passed"
            )

    def require_closed(self, now: Optional[datetime] = None) -> None:
        """Raise BeforeDeadline unless the gate is CLOSED."""
        if self.phase(now) != Phase.CLOSED:
            raise BeforeDeadline(
                f"Deadline {self._deadline.isoformat()} has not been reached"
            )
