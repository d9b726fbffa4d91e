"""Strict ordering check for token ID batches.

A batch must be strictly increasing. One pass enforces both ordering and
uniqueness, with no auxiliary set. The whole batch is checked before any
of it is acted on.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from redemption.errors import UnsortedTokenIds


def strictly_increasing(ids: Iterable[int]) -> List[int]:
    """Return ids as a list, raising UnsortedTokenIds at the first violation."""
    batch = list(ids)
    previous: Optional[int] = None
    for position, token_id in enumerate(batch):
        if previous is not None and token_id <= previous:
            raise UnsortedTokenIds(
                f"Token IDs must be strictly increasing: {token_id} at "
                f"position {position} follows {previous}"
            )
        previous = token_id
    return batch
