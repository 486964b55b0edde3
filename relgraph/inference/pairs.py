"""Lazy pair iteration over object indices, with cancellation."""

import threading
from typing import Iterator, List, Optional, Tuple

from ..errors import InferenceCancelledError


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a batch run.

    Safe to cancel from another thread; batch loops check it once per
    outer-loop row.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: Optional[str] = None) -> None:
        if self._event.is_set():
            raise InferenceCancelledError(
                f"Inference cancelled during {stage}" if stage else "Inference cancelled",
                stage=stage,
            )


def pair_count(n: int) -> int:
    """Number of unordered pairs among ``n`` objects."""
    return n * (n - 1) // 2 if n > 1 else 0


def iter_pairs(
    n: int,
    start_row: int = 0,
    stop_row: Optional[int] = None,
    token: Optional[CancellationToken] = None,
    stage: Optional[str] = None,
) -> Iterator[Tuple[int, int]]:
    """Yield index pairs ``(i, j)`` with ``i < j`` for rows in ``[start_row, stop_row)``.

    The token is checked before each row, so a cancelled run stops within
    one row of work.
    """
    stop_row = n if stop_row is None else min(stop_row, n)
    for i in range(start_row, stop_row):
        if token is not None:
            token.raise_if_cancelled(stage)
        for j in range(i + 1, n):
            yield i, j


def partition_rows(n: int, workers: int) -> List[Tuple[int, int]]:
    """Split the row range into contiguous chunks with roughly equal pair counts.

    Row ``i`` owns ``n - 1 - i`` pairs, so early rows are heavier. Chunks are
    returned in row order; concatenating their outputs reproduces serial order.
    """
    if n < 2 or workers <= 1:
        return [(0, n)]

    total = pair_count(n)
    target = total / workers
    ranges = []
    start = 0
    acc = 0
    for i in range(n):
        acc += n - 1 - i
        if acc >= target and len(ranges) < workers - 1:
            ranges.append((start, i + 1))
            start = i + 1
            acc = 0
    if start < n:
        ranges.append((start, n))
    return ranges
