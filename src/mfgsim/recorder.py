"""Observers that watch a :class:`mfgsim.engine.ManufacturingSystem` while it runs.

Register an observer with ``system.register_observer(obj)``; the system calls
whichever of the hooks below the object implements.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from pandas import DataFrame

if TYPE_CHECKING:  # pragma: no cover - type hinting only
    from mfgsim.engine import ManufacturingSystem
    from mfgsim.events import Event


class SimulationObserver(Protocol):  # pragma: no cover - interface only
    def on_run_started(self, system, start_time: float):
        ...

    def on_event(self, system, event):
        ...

    def on_run_finished(self, system, start_time: float, end_time: float):
        ...


@dataclass
class RunRecorder:
    """Keeps the statistics snapshot of the last finished run."""

    run_data: dict[str, Any] = field(default_factory=dict)
    runs: int = 0

    def on_run_finished(self, system: "ManufacturingSystem", start_time: float, end_time: float):
        self.runs += 1
        self.run_data = system.snapshot()
        self.run_data["start_time"] = start_time


@dataclass
class TraceRecorder:
    """Records every handled event and the resource availability right after it.

    ``trace`` rows are ``(time, seq, kind, availability)`` where
    ``availability`` maps resource names to their available count.
    """

    trace: list[tuple[float, int, str, dict[str, int]]] = field(default_factory=list)

    def on_event(self, system: "ManufacturingSystem", event: "Event"):
        self.trace.append((event.time, event.seq, event.kind.value, system.pool.availability()))

    def times(self) -> list[float]:
        return [row[0] for row in self.trace]

    def kinds(self) -> list[str]:
        return [row[2] for row in self.trace]

    def to_frame(self) -> DataFrame:
        """
        Return the trace as a DataFrame with one ``available_<resource>`` column per resource.
        """
        rows = []
        for time, seq, kind, availability in self.trace:
            row = {"time": time, "seq": seq, "kind": kind}
            row.update({f"available_{name}": value for name, value in availability.items()})
            rows.append(row)
        return DataFrame(rows)
