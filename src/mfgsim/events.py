"""Time-ordered event queue.

Events are plain values tagged with an :class:`EventKind`; the engine looks at
the kind and payload to decide what to do, so an event can be built, compared
and inspected without running anything.
"""
from __future__ import annotations

import heapq
import math
from dataclasses import dataclass
from enum import Enum
from itertools import count
from typing import TYPE_CHECKING

from mfgsim.errors import EmptySchedule, InvalidTimeError

if TYPE_CHECKING:  # pragma: no cover - type hinting only
    from mfgsim.controller import ProductUnit


class EventKind(Enum):
    ARRIVAL = "raw_material_arrival"
    SETUP_DONE = "setup"
    STAGE_DONE = "stage_done"
    BREAKDOWN = "breakdown"
    MAINTENANCE = "maintenance"
    SHIFT_CHANGE = "shift_change"


@dataclass(frozen=True)
class Event:
    """A scheduled state change.

    ``seq`` is the insertion number assigned by the queue and breaks ties
    between events with the same ``time``. Only the payload field relevant to
    ``kind`` is set: ``product_type`` for arrivals, ``unit`` for setup and
    stage completion, ``resource`` for breakdown and maintenance, with the repair
    ``duration`` on breakdowns.
    """

    time: float
    seq: int
    kind: EventKind
    product_type: str | None = None
    unit: "ProductUnit | None" = None
    resource: str | None = None
    duration: float | None = None

    @property
    def key(self) -> tuple[float, int]:
        return (self.time, self.seq)


class EventQueue:
    """Pending events ordered by ``(time, insertion order)``.

    The queue also keeps the current simulation time: :meth:`pop` moves
    :attr:`now` to the popped event's time, and :meth:`schedule` refuses
    times before it. There is no way to cancel a scheduled event.
    """

    def __init__(self, start: float = 0.0):
        self._heap: list[tuple[float, int, Event]] = []
        self._seq = count()
        self.now: float = start

    def schedule(self, time: float, kind: EventKind, **payload) -> Event:
        """Insert an event and return it.

        Raises
        ------
        InvalidTimeError
            If ``time`` lies before :attr:`now` or is not a number.
        """
        time = float(time)
        if math.isnan(time) or time < self.now:
            raise InvalidTimeError(time, self.now)
        event = Event(time, next(self._seq), kind, **payload)
        heapq.heappush(self._heap, (event.time, event.seq, event))
        return event

    def pop(self) -> Event:
        """Remove the earliest event, advance :attr:`now` to its time and return it."""
        if not self._heap:
            raise EmptySchedule("no events left in the queue")
        _, _, event = heapq.heappop(self._heap)
        self.now = event.time
        return event

    def peek(self) -> Event | None:
        """Return the earliest event without removing it, or ``None``."""
        if not self._heap:
            return None
        return self._heap[0][2]

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)
