"""Tests for the bounded activity history."""

import pytest

from solana_copytrader.ingestor.history import ActivityHistory
from solana_copytrader.ingestor.models import Activity

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def _activity(signature: str, timestamp: int, wallet: str = WALLET) -> Activity:
    return Activity(
        signature=signature,
        wallet_address=wallet,
        wallet_label="W",
        timestamp=timestamp,
        type="transfer",
    )


class TestActivityHistory:
    def test_seeded_history_is_sorted_and_known(self) -> None:
        history = ActivityHistory([_activity("a", 1), _activity("b", 3), _activity("c", 2)])

        assert [a.signature for a in history.activities] == ["b", "c", "a"]
        assert history.known_signatures == {"a", "b", "c"}
        assert "a" in history
        assert "z" not in history

    def test_merge_prepends_and_sorts(self) -> None:
        history = ActivityHistory([_activity("old", 100)])

        added = history.merge([_activity("new", 200), _activity("older", 50)])

        assert [a.signature for a in added] == ["new", "older"]
        assert [a.signature for a in history.activities] == ["new", "old", "older"]
        assert {"new", "older"} <= history.known_signatures

    def test_merge_is_stable_for_equal_timestamps(self) -> None:
        history = ActivityHistory([_activity("existing", 5)])

        history.merge([_activity("first", 5), _activity("second", 5)])

        assert [a.signature for a in history.activities] == ["first", "second", "existing"]

    def test_merge_truncates_to_cap(self) -> None:
        history = ActivityHistory(max_entries=3)

        history.merge([_activity(f"s{i}", i) for i in range(5)])

        assert len(history) == 3
        assert [a.timestamp for a in history.activities] == [4, 3, 2]

    def test_trimmed_signatures_remain_known(self) -> None:
        history = ActivityHistory(max_entries=2)

        history.merge([_activity(f"s{i}", i) for i in range(4)])

        assert "s0" in history
        assert len(history.known_signatures) == 4

    def test_merge_drops_duplicate_ids(self) -> None:
        history = ActivityHistory([_activity("a", 1)])

        added = history.merge([_activity("a", 1), _activity("b", 2), _activity("b", 2)])

        assert [a.signature for a in added] == ["b"]
        assert len(history) == 2

    def test_same_signature_for_different_wallets(self) -> None:
        history = ActivityHistory()

        added = history.merge([_activity("s", 1, WALLET), _activity("s", 1, OTHER)])

        assert len(added) == 2
        assert len({a.id for a in history.activities}) == 2

    def test_clear(self) -> None:
        history = ActivityHistory([_activity("a", 1)])

        history.clear()

        assert len(history) == 0
        assert "a" not in history
        assert history.known_signatures == frozenset()

    def test_invalid_cap(self) -> None:
        with pytest.raises(ValueError):
            ActivityHistory(max_entries=0)
