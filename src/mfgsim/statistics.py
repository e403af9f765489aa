"""Run statistics owned by one simulation instance."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from pandas import DataFrame


@dataclass
class Statistics:
    """Accumulators of a single run.

    ``busy_time`` adds work when it is committed (at scheduling), not when it
    has elapsed. ``waiting_time`` adds the processing duration a blocked unit
    could not start, or, with a wait queue, the time it actually waited.
    All values only grow.
    """

    busy_time: dict[str, float] = field(default_factory=dict)
    waiting_time: dict[str, float] = field(default_factory=dict)
    finished_per_type: dict[str, int] = field(default_factory=dict)
    finished: int = 0
    arrivals: int = 0
    arrivals_per_type: Counter = field(default_factory=Counter)
    stalled: Counter = field(default_factory=Counter)
    shift_changes: int = 0
    breakdowns: int = 0

    @classmethod
    def for_line(cls, resources: Iterable[str], product_types: Iterable[str]) -> "Statistics":
        """Start every known resource and product type at zero so they show up in reports."""
        resources = list(resources)
        return cls(
            busy_time={name: 0.0 for name in resources},
            waiting_time={name: 0.0 for name in resources},
            finished_per_type={name: 0 for name in product_types},
        )

    def add_busy(self, resource: str, duration: float) -> None:
        self.busy_time[resource] = self.busy_time.get(resource, 0.0) + duration

    def add_waiting(self, resource: str, duration: float) -> None:
        self.waiting_time[resource] = self.waiting_time.get(resource, 0.0) + duration

    def add_arrival(self, product_type: str) -> None:
        self.arrivals += 1
        self.arrivals_per_type[product_type] += 1

    def add_finished(self, product_type: str) -> None:
        self.finished += 1
        self.finished_per_type[product_type] = self.finished_per_type.get(product_type, 0) + 1

    def utilization(self, run_time: float, capacities: Mapping[str, int]) -> dict[str, float]:
        """Committed busy time over available resource time, per resource."""
        result = {}
        for name, busy in self.busy_time.items():
            capacity = capacities.get(name, 0)
            result[name] = busy / (run_time * capacity) if run_time > 0 and capacity > 0 else 0.0
        return result

    def as_dict(self) -> dict[str, Any]:
        """Plain snapshot handed to reporting."""
        return {
            "busy_time": dict(self.busy_time),
            "waiting_time": dict(self.waiting_time),
            "finished": self.finished,
            "finished_per_type": dict(self.finished_per_type),
            "arrivals": self.arrivals,
            "arrivals_per_type": dict(self.arrivals_per_type),
            "stalled": dict(self.stalled),
            "shift_changes": self.shift_changes,
            "breakdowns": self.breakdowns,
        }

    def to_frame(self) -> DataFrame:
        """
        Return a DataFrame with one row per resource: busy time, waiting time and stalled units.
        """
        names = sorted(set(self.busy_time) | set(self.waiting_time))
        df = DataFrame(
            {
                "resource": names,
                "busy_time": [self.busy_time.get(n, 0.0) for n in names],
                "waiting_time": [self.waiting_time.get(n, 0.0) for n in names],
                "stalled": [self.stalled.get(n, 0) for n in names],
            }
        )
        return df
