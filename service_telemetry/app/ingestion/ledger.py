"""
Ordered retention of snapshots awaiting delivery acknowledgment.
"""

from collections import Counter
from typing import Dict, List, Optional, Tuple

from shared.logging import get_logger
from .accumulator import Snapshot


class SnapshotLedger:
    """Snapshots extracted since the last acknowledged clear.

    When ``max_snapshots`` is reached the two oldest snapshots are
    coalesced into one, so memory stays bounded during long outages while
    the summed totals stay exact.
    """

    def __init__(self, fields: Tuple[str, ...], max_snapshots: Optional[int] = None, name: str = "ledger"):
        if max_snapshots is not None and max_snapshots < 2:
            raise ValueError("max_snapshots must be at least 2")
        self.fields = fields
        self.max_snapshots = max_snapshots
        self.name = name
        self.coalesced = 0
        self.logger = get_logger(f"telemetry.ledger.{name}")
        self._snapshots: List[Snapshot] = []

    def __len__(self) -> int:
        return len(self._snapshots)

    def append(self, snapshot: Snapshot) -> None:
        if snapshot.fields != self.fields:
            raise ValueError("snapshot fields do not match ledger fields")
        self._snapshots.append(snapshot)

        if self.max_snapshots is not None and len(self._snapshots) > self.max_snapshots:
            oldest, second = self._snapshots[0], self._snapshots[1]
            self._snapshots[0:2] = [oldest.merge(second)]
            self.coalesced += 1
            self.logger.warning(
                "Ledger at capacity, coalesced oldest snapshots",
                ledger=self.name,
                retained=len(self._snapshots),
                coalesced_total=self.coalesced
            )

    def clear(self) -> int:
        """Discard every retained snapshot; returns how many were dropped."""
        dropped = len(self._snapshots)
        self._snapshots = []
        return dropped

    def totals(self) -> Dict[str, Counter]:
        """Sum every retained snapshot, field by field and endpoint by endpoint."""
        totals: Dict[str, Counter] = {name: Counter() for name in self.fields}
        for snapshot in self._snapshots:
            for name in self.fields:
                totals[name].update(snapshot.values[name])
        return totals
