"""Reentrancy guard and undo journal for top-level contract calls.

Each mutating entry point runs as one indivisible unit. The guard rejects
any call that arrives while another is in flight (for example a callback
from a collaborator during a transfer). The journal records how to undo
each mutation so that a failing call leaves no partial state behind.
"""

from __future__ import annotations

import logging
from typing import Callable, List

from redemption.errors import ReentrantCall

logger = logging.getLogger(__name__)


class ReentrancyGuard:
    """Explicit acquire/release mutual-exclusion flag.

    Usage:
        guard = ReentrancyGuard()
        with guard:
            ...  # any nested `with guard` raises ReentrantCall
    """

    def __init__(self) -> None:
        self._entered = False

    @property
    def entered(self) -> bool:
        """Whether a guarded call is currently in flight."""
        return self._entered

    def acquire(self) -> None:
        if self._entered:
            raise ReentrantCall("Reentrant call rejected: a call is already in flight")
        self._entered = True

    def release(self) -> None:
        self._entered = False

    def __enter__(self) -> "ReentrancyGuard":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class Journal:
    """Undo log for a single top-level call.

    Mutations register an undo callable right after they take effect.
    rollback() runs the undos newest-first; commit() discards them.

    An undo that raises is logged and skipped; the rest still run. The
    exception that triggered the rollback is the one the caller sees.
    """

    def __init__(self) -> None:
        self._undo: List[Callable[[], None]] = []

    def record(self, undo: Callable[[], None]) -> None:
        self._undo.append(undo)

    def __len__(self) -> int:
        return len(self._undo)

    def commit(self) -> None:
        self._undo.clear()

    def rollback(self) -> int:
        """Undo every recorded mutation in reverse order.

        Returns the number of undos that failed.
        """
        logger.debug("Rolling back %d mutation(s)", len(self._undo))
        failed = 0
        while self._undo:
            undo = self._undo.pop()
            try:
                undo()
            except Exception:
                failed += 1
                logger.exception("Undo step failed during rollback")
        return failed
