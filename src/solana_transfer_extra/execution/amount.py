"""Transfer amount selection."""

from __future__ import annotations

import random
from typing import Optional, Protocol


class RandomSource(Protocol):
    def randrange(self, stop: int) -> int: ...


def select_transfer_amount(balance: int, rng: Optional[RandomSource] = None) -> int:
    """Pick a lamport amount uniformly from ``[0, balance // 2)``.

    Balances below two lamports leave the range empty, in which case the
    amount is ``0``. ``rng`` defaults to an OS-backed ``SystemRandom``.
    """

    if balance < 0:
        raise ValueError(f"Balance must be non-negative, got {balance}")
    upper = balance // 2
    if upper == 0:
        return 0
    source = rng if rng is not None else random.SystemRandom()
    return source.randrange(upper)


__all__ = ["RandomSource", "select_transfer_amount"]
