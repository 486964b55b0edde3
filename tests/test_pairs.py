"""Tests for pair iteration, partitioning and cancellation."""

import pytest

from relgraph.errors import InferenceCancelledError
from relgraph.inference.pairs import CancellationToken, iter_pairs, pair_count, partition_rows


class TestIterPairs:
    def test_all_pairs_in_order(self):
        assert list(iter_pairs(4)) == [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]

    @pytest.mark.parametrize("n", [0, 1])
    def test_no_pairs(self, n):
        assert list(iter_pairs(n)) == []
        assert pair_count(n) == 0

    def test_row_range(self):
        assert list(iter_pairs(4, start_row=2)) == [(2, 3)]
        assert list(iter_pairs(4, start_row=0, stop_row=1)) == [(0, 1), (0, 2), (0, 3)]

    def test_cancel_mid_run_stops_at_next_row(self):
        token = CancellationToken()
        seen = []

        with pytest.raises(InferenceCancelledError):
            for i, j in iter_pairs(5, token=token, stage="test"):
                seen.append((i, j))
                if (i, j) == (0, 2):
                    token.cancel()

        # The current row finishes, the next one never starts
        assert seen == [(0, 1), (0, 2), (0, 3), (0, 4)]


class TestPartitionRows:
    @pytest.mark.parametrize("n,workers", [(10, 3), (7, 2), (50, 8), (3, 5)])
    def test_partitions_cover_all_pairs(self, n, workers):
        ranges = partition_rows(n, workers)

        assert ranges[0][0] == 0
        assert ranges[-1][1] == n
        assert all(a[1] == b[0] for a, b in zip(ranges, ranges[1:]))
        assert len(ranges) <= workers
        covered = [p for start, stop in ranges for p in iter_pairs(n, start, stop)]
        assert covered == list(iter_pairs(n))

    def test_single_worker(self):
        assert partition_rows(10, 1) == [(0, 10)]


class TestCancellationToken:
    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled("x")
        assert not token.cancelled

        token.cancel()

        assert token.cancelled
        with pytest.raises(InferenceCancelledError) as exc_info:
            token.raise_if_cancelled("similarity")
        assert exc_info.value.stage == "similarity"
