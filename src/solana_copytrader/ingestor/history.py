"""Process-wide activity history and known-signature set.

``ActivityHistory`` is owned by the ingestion orchestrator, which is its only
writer. The known-signature set is seeded from the loaded history and grows
monotonically until an explicit ``clear()``; it is never shrunk by capacity
trimming, so trimmed transactions are not refetched.
"""

from __future__ import annotations

from collections.abc import Iterable

from solana_copytrader.ingestor.models import Activity

DEFAULT_MAX_ENTRIES = 500


class ActivityHistory:
    """Bounded, time-ordered activity history with signature dedup."""

    def __init__(
        self,
        activities: Iterable[Activity] = (),
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._max_entries = max_entries
        self._activities: list[Activity] = []
        self._known_signatures: set[str] = set()
        self._replace(list(activities))

    def _replace(self, activities: list[Activity]) -> None:
        # sort() is stable: equal timestamps keep their incoming order.
        activities.sort(key=lambda a: a.timestamp, reverse=True)
        self._activities = activities[: self._max_entries]
        self._known_signatures.update(a.signature for a in activities)

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def activities(self) -> tuple[Activity, ...]:
        """Activities, most recent first."""
        return tuple(self._activities)

    @property
    def known_signatures(self) -> frozenset[str]:
        return frozenset(self._known_signatures)

    def __contains__(self, signature: object) -> bool:
        return signature in self._known_signatures

    def __len__(self) -> int:
        return len(self._activities)

    def merge(self, new_activities: Iterable[Activity]) -> list[Activity]:
        """Merge new activities into history.

        New activities are prepended, the combined list is stably sorted by
        timestamp descending and truncated to ``max_entries``. Activities
        whose id is already present are dropped.

        Returns:
            The activities actually added (before trimming).
        """
        seen_ids = {a.id for a in self._activities}
        added: list[Activity] = []
        for activity in new_activities:
            if activity.id in seen_ids:
                continue
            seen_ids.add(activity.id)
            added.append(activity)

        if added:
            self._replace(added + self._activities)
        return added

    def clear(self) -> None:
        """Drop all activities and forget every known signature."""
        self._activities = []
        self._known_signatures.clear()
