"""
Live per-endpoint counters and their frozen snapshots.

An ``Accumulator`` tracks a fixed set of numeric fields per endpoint. It
is not synchronized on its own: the owning metric holds one lock around
every ``add`` and ``rotate`` call.
"""

from collections import Counter
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple


@dataclass(frozen=True)
class Snapshot:
    """Immutable copy of an accumulator at one extraction instant."""
    fields: Tuple[str, ...]
    values: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    @classmethod
    def freeze(cls, fields: Tuple[str, ...], values: Mapping[str, Mapping[str, float]]) -> "Snapshot":
        frozen = {
            name: MappingProxyType(dict(values.get(name, {})))
            for name in fields
        }
        return cls(fields=fields, values=MappingProxyType(frozen))

    def get(self, name: str, endpoint: str) -> float:
        return self.values[name].get(endpoint, 0)

    def merge(self, other: "Snapshot") -> "Snapshot":
        """Return a snapshot holding the field-wise sum of both."""
        if other.fields != self.fields:
            raise ValueError("cannot merge snapshots with different fields")
        merged: Dict[str, Counter] = {name: Counter() for name in self.fields}
        for snapshot in (self, other):
            for name in self.fields:
                merged[name].update(snapshot.values[name])
        return Snapshot.freeze(self.fields, merged)


class Accumulator:
    """Mutable per-endpoint counters for one metric kind."""

    def __init__(self, fields: Iterable[str]):
        self.fields: Tuple[str, ...] = tuple(fields)
        if not self.fields:
            raise ValueError("accumulator needs at least one field")
        self._values: Dict[str, Counter] = self._empty()

    def _empty(self) -> Dict[str, Counter]:
        return {name: Counter() for name in self.fields}

    def add(self, endpoint: str, **increments: float) -> None:
        """Add increments to the endpoint bucket, creating it on first use."""
        unknown = set(increments) - set(self.fields)
        if unknown:
            raise KeyError(f"unknown accumulator fields: {sorted(unknown)}")
        for name, amount in increments.items():
            self._values[name][endpoint] += amount

    def get(self, name: str, endpoint: str) -> float:
        return self._values[name].get(endpoint, 0)

    def rotate(self) -> Snapshot:
        """Freeze the current values and start again from zero."""
        snapshot = Snapshot.freeze(self.fields, self._values)
        self._values = self._empty()
        return snapshot
