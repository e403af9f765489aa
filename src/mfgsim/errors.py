"""Exceptions raised by the mfgsim engine.

All of them derive from :class:`SimulationError` so callers can catch engine
failures as a group. They signal programming or configuration mistakes; a unit
that cannot get a resource is *not* an error and never raises.
"""
from __future__ import annotations


class SimulationError(Exception):
    """Base class for engine failures."""


class InvalidTimeError(SimulationError):
    """Raised when an event is scheduled before the current simulation time."""

    def __init__(self, time, now, message: str | None = None):
        super().__init__(message or f"cannot schedule an event at {time!r}, current time is {now!r}")
        self.time = time
        self.now = now


class ResourceAccountingError(SimulationError):
    """Raised on a release that has no matching acquisition."""

    def __init__(self, resource: str, message: str | None = None):
        super().__init__(message or f"resource {resource!r} released more often than acquired")
        self.resource = resource


class ConfigurationError(SimulationError, ValueError):
    """Raised for unknown product types, stage indices, resources or bad capacities."""


class EmptySchedule(SimulationError):
    """Raised when popping from an event queue that holds no events."""
