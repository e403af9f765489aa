"""Named resource types with capacity and availability bookkeeping.

The pool never blocks: :meth:`ResourcePool.try_acquire` answers yes or no and
the caller decides what a refusal means. Availability is reset wholesale at
shift changes according to a :class:`ShiftResetPolicy`.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from numbers import Integral
from typing import Callable, Mapping

from numpy import array, diff, nansum
from pandas import DataFrame

from mfgsim.errors import ConfigurationError, ResourceAccountingError


class ShiftResetPolicy(Enum):
    """How a shift change refills the pool.

    ``FULL_RESET`` puts every slot back, including the ones units are still
    holding mid-stage, so those slots are counted twice until released.
    ``PRESERVE_IN_FLIGHT`` only returns slots nobody holds.
    """

    FULL_RESET = "full_reset"
    PRESERVE_IN_FLIGHT = "preserve_in_flight"


@dataclass
class ResourceType:
    """One resource type.

    ``in_use`` counts outstanding acquisitions. Under ``FULL_RESET`` it can
    exceed ``capacity`` because held slots are handed out again after a
    reset. ``down`` counts slots taken out by breakdowns.
    """

    name: str
    capacity: int
    available: int
    in_use: int = 0
    down: int = 0


def _validate_capacity(name: str, capacity) -> int:
    if isinstance(capacity, bool) or not isinstance(capacity, Integral):
        raise ConfigurationError(f"capacity of {name!r} must be an integer, got {capacity!r}")
    if capacity < 0:
        raise ConfigurationError(f"capacity of {name!r} must not be negative, got {capacity}")
    return int(capacity)


class ResourcePool:
    """Resource types by name.

    Parameters
    ----------
    capacities : Mapping[str, int], optional
        Initial capacity per resource name; ``available`` starts at capacity.
    clock : Callable[[], float], optional
        Returns the current simulation time, used to stamp the status log.
    log : bool, optional
        When ``True``, record a status row on every change.
    """

    def __init__(self, capacities: Mapping[str, int] | None = None, clock: Callable[[], float] | None = None, log: bool = True):
        self._clock = clock or (lambda: 0.0)
        self.log = log
        self._resources: dict[str, ResourceType] = {}
        # name -> rows of time, available, in_use, down
        self._status_log: dict[str, list[list[float]]] = {}
        self.set_capacities(capacities or {})

    def __contains__(self, name: str) -> bool:
        return name in self._resources

    def __iter__(self):
        return iter(self._resources.values())

    def names(self) -> list[str]:
        return list(self._resources)

    def get(self, name: str) -> ResourceType:
        """Return the resource called ``name``.

        Raises
        ------
        ConfigurationError
            If the pool has no resource with that name.
        """
        try:
            return self._resources[name]
        except KeyError:
            raise ConfigurationError(f"unknown resource {name!r}; configured: {sorted(self._resources)}") from None

    def capacity(self, name: str) -> int:
        return self.get(name).capacity

    def available(self, name: str) -> int:
        return self.get(name).available

    def capacities(self) -> dict[str, int]:
        return {r.name: r.capacity for r in self._resources.values()}

    def availability(self) -> dict[str, int]:
        return {r.name: r.available for r in self._resources.values()}

    def set_capacities(self, capacities: Mapping[str, int]) -> None:
        """Replace all resource types and make every slot available."""
        resources = {}
        for name, capacity in capacities.items():
            capacity = _validate_capacity(name, capacity)
            resources[name] = ResourceType(name, capacity, capacity)
        self._resources = resources
        self._status_log = {name: [] for name in resources}
        for resource in resources.values():
            self._record(resource)

    def try_acquire(self, name: str) -> bool:
        """Take one slot if one is free. Returns ``False`` and changes nothing otherwise."""
        resource = self.get(name)
        if resource.available <= 0:
            return False
        resource.available -= 1
        resource.in_use += 1
        self._record(resource)
        return True

    def release(self, name: str) -> None:
        """Give back one held slot.

        ``available`` never goes above ``capacity``; a slot that was already
        handed back by a full shift reset is absorbed here.

        Raises
        ------
        ResourceAccountingError
            If there is no outstanding acquisition to release.
        """
        resource = self.get(name)
        if resource.in_use <= 0:
            raise ResourceAccountingError(name)
        resource.in_use -= 1
        resource.available = min(resource.available + 1, resource.capacity)
        self._record(resource)

    def reset_all(self, policy: ShiftResetPolicy = ShiftResetPolicy.FULL_RESET) -> None:
        """Refill every resource at a shift change. Broken-down slots come back too."""
        for resource in self._resources.values():
            resource.down = 0
            if policy is ShiftResetPolicy.PRESERVE_IN_FLIGHT:
                resource.available = max(resource.capacity - resource.in_use, 0)
            else:
                resource.available = resource.capacity
            self._record(resource)

    def take_down(self, name: str) -> bool:
        """Take one idle slot out of service. Returns ``False`` when none is idle."""
        resource = self.get(name)
        if resource.available <= 0:
            return False
        resource.available -= 1
        resource.down += 1
        self._record(resource)
        return True

    def restore(self, name: str) -> bool:
        """Put one broken-down slot back.

        Returns ``False`` without touching the pool when a shift reset has
        already returned the slot.
        """
        resource = self.get(name)
        if resource.down <= 0:
            return False
        resource.down -= 1
        resource.available = min(resource.available + 1, resource.capacity)
        self._record(resource)
        return True

    def _record(self, resource: ResourceType) -> None:
        if self.log:
            self._status_log[resource.name].append(
                [self._clock(), resource.available, resource.in_use, resource.down]
            )

    def status_log(self, name: str) -> DataFrame:
        """
        Return a DataFrame of the status of resource ``name`` over time.
        """
        self.get(name)
        return DataFrame(data=self._status_log[name], columns=["time", "available", "in_use", "down"])

    @staticmethod
    def _end_time(name: str, times, until: float | None) -> float:
        if until is None:
            return float(times[-1])
        if until < times[-1]:
            raise ValueError(f"until={until} is before the last logged change of {name!r} at {times[-1]}")
        return until

    def average_utilization(self, name: str, until: float | None = None) -> float:
        """
        Return the time-weighted share of capacity that was neither available nor down.

        The average runs from time 0 to ``until`` (default: the last logged change).
        An ``until`` before the last logged change raises ``ValueError``.
        """
        capacity = self.capacity(name)
        rows = self._status_log[name]
        if capacity == 0 or not rows:
            return 0.0
        log = array(rows, dtype=float)
        times = log[:, 0]
        end = self._end_time(name, times, until)
        if end <= 0:
            return 0.0
        busy = (capacity - log[:, 1] - log[:, 3]) / capacity
        d = diff(times.tolist() + [end])
        return float(nansum(d * busy) / end)

    def total_time_available(self, name: str, until: float | None = None) -> float:
        """
        Return the integral of the available level over time.
        """
        rows = self._status_log[self.get(name).name]
        if not rows:
            return 0.0
        log = array(rows, dtype=float)
        times = log[:, 0]
        end = self._end_time(name, times, until)
        d = diff(times.tolist() + [end])
        return float(nansum(d * log[:, 1]))
