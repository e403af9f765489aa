"""Simulation driver for the manufacturing line.

:class:`ManufacturingSystem` owns the clock, the event queue, the resource
pool and the statistics of one run. It seeds the arrival and shift-change
streams, pops events in time order and hands each one to its handler.

Example
-------
>>> from mfgsim import ManufacturingSystem
>>> system = ManufacturingSystem(seed=1)
>>> system.run(until=100.0)
>>> system.stats.finished > 0
True
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Mapping

from mfgsim.controller import BlockedPolicy, ProcessController, ProductUnit
from mfgsim.dist import RandomSource, SampleSource
from mfgsim.errors import ConfigurationError
from mfgsim.events import Event, EventKind, EventQueue
from mfgsim.log_cfg import logger
from mfgsim.resources import ResourcePool, ShiftResetPolicy
from mfgsim.stages import DEFAULT_CAPACITIES, StageGraph, default_graph
from mfgsim.statistics import Statistics

if TYPE_CHECKING:  # pragma: no cover - type hinting only
    from mfgsim.recorder import SimulationObserver

DEFAULT_SHIFT_LENGTH = 8.0
DEFAULT_REPAIR_TIME = 5.0


class ManufacturingSystem:
    """A manufacturing line simulated event by event.

    Parameters
    ----------
    graph : StageGraph, optional
        Process plans. Defaults to :func:`mfgsim.stages.default_graph`.
    capacities : Mapping[str, int], optional
        Resource capacities. Defaults to 10 machines and 5 operators.
    shift_length : float, optional
        Simulated time between shift changes.
    random_source : SampleSource, optional
        Source of interarrival times, uniform draws and sampled durations.
        When omitted a :class:`mfgsim.dist.RandomSource` is built from
        ``seed``.
    seed : int, optional
        Seed for the default random source.
    arrival_type : str, optional
        Product type of arriving raw material. Defaults to the first type of
        the graph.
    product_mix : Mapping[str, float], optional
        Relative weights of product types. When given, the type of every
        arrival, the first included, is drawn from it.
    reset_policy : ShiftResetPolicy, optional
        How shift changes refill the pool.
    blocked_policy : BlockedPolicy, optional
        What happens to units that cannot get their resource.
    log : bool, optional
        When ``True``, keep a status log per resource.
    name : str, optional
        Label used in log messages.
    """

    def __init__(
        self,
        graph: StageGraph | None = None,
        capacities: Mapping[str, int] | None = None,
        shift_length: float = DEFAULT_SHIFT_LENGTH,
        random_source: SampleSource | None = None,
        seed: int | None = None,
        arrival_type: str | None = None,
        product_mix: Mapping[str, float] | None = None,
        reset_policy: ShiftResetPolicy = ShiftResetPolicy.FULL_RESET,
        blocked_policy: BlockedPolicy = BlockedPolicy.STALL,
        log: bool = True,
        name: str = "ManufacturingSystem",
    ):
        if shift_length <= 0:
            raise ConfigurationError(f"shift_length must be positive, got {shift_length!r}")
        self.name = name
        self.graph = graph if graph is not None else default_graph()
        if not self.graph.names():
            raise ConfigurationError("the stage graph has no product types")
        self.shift_length = float(shift_length)
        self.reset_policy = reset_policy
        self.random_source = random_source if random_source is not None else RandomSource(seed)

        self.arrival_type = arrival_type if arrival_type is not None else self.graph.names()[0]
        self.graph.product(self.arrival_type)
        self.product_mix = self._validate_mix(product_mix) if product_mix else None

        self.queue = EventQueue()
        self.pool = ResourcePool(
            capacities if capacities is not None else DEFAULT_CAPACITIES,
            clock=lambda: self.queue.now,
            log=log,
        )
        self.stats = Statistics.for_line(self._stat_resources(), self.graph.names())
        self.controller = ProcessController(
            self.queue, self.pool, self.graph, self.stats, self.random_source, blocked_policy
        )

        self.started = False
        self.events_processed = 0
        self._observers: list["SimulationObserver"] = []
        self._handlers: dict[EventKind, Callable[[Event], None]] = {
            EventKind.ARRIVAL: self._on_arrival,
            EventKind.SETUP_DONE: self._on_setup_done,
            EventKind.STAGE_DONE: self._on_stage_done,
            EventKind.BREAKDOWN: self._on_breakdown,
            EventKind.MAINTENANCE: self._on_maintenance,
            EventKind.SHIFT_CHANGE: self._on_shift_change,
        }

    def __repr__(self) -> str:
        return f"ManufacturingSystem({self.name!r}, now={self.now}, capacities={self.pool.capacities()})"

    def _validate_mix(self, product_mix: Mapping[str, float]) -> list[tuple[str, float]]:
        total = 0.0
        for product_type, weight in product_mix.items():
            self.graph.product(product_type)
            if weight < 0:
                raise ConfigurationError(f"product mix weight of {product_type!r} is negative")
            total += weight
        if total <= 0:
            raise ConfigurationError("product mix weights must sum to a positive number")
        cumulative = []
        running = 0.0
        for product_type, weight in product_mix.items():
            running += weight / total
            cumulative.append((product_type, running))
        return cumulative

    def _stat_resources(self) -> list[str]:
        names = self.pool.names()
        return names + [r for r in self.graph.resources() if r not in names]

    # ------------------------------------------------------------------
    # Clock and configuration
    # ------------------------------------------------------------------
    @property
    def now(self) -> float:
        """Current simulation time, the time of the last popped event."""
        return self.queue.now

    @property
    def blocked_policy(self) -> BlockedPolicy:
        return self.controller.blocked_policy

    @property
    def units(self) -> list[ProductUnit]:
        return self.controller.units

    def set_capacities(self, capacities: Mapping[str, int]) -> None:
        """Replace resource capacities. Only allowed before the first run."""
        if self.started:
            raise ConfigurationError("capacities can only be changed before the simulation starts")
        self.pool.set_capacities(capacities)
        for name in self.pool.names():
            self.stats.busy_time.setdefault(name, 0.0)
            self.stats.waiting_time.setdefault(name, 0.0)

    # ------------------------------------------------------------------
    # Observer helpers
    # ------------------------------------------------------------------
    def register_observer(self, observer: "SimulationObserver"):
        """Register a new simulation observer."""
        self._observers.append(observer)

    def _notify_observers(self, method_name: str, **kwargs):
        """Invoke a method on all observers if they implement it."""
        for observer in self._observers:
            if hasattr(observer, method_name):
                getattr(observer, method_name)(**kwargs)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------
    def _seed(self) -> None:
        self.queue.schedule(
            self.now + self.random_source.sample_interarrival(),
            EventKind.ARRIVAL,
            product_type=self._next_arrival_type(self.arrival_type),
        )
        self.queue.schedule(self.now + self.shift_length, EventKind.SHIFT_CHANGE)

    def step(self) -> Event:
        """Pop the earliest event, move the clock to it and handle it."""
        event = self.queue.pop()
        self._handlers[event.kind](event)
        self.events_processed += 1
        self._notify_observers("on_event", system=self, event=event)
        return event

    def run(self, until: float = 1000.0) -> None:
        """Process events until the queue is empty or the clock reaches ``until``.

        The bound is checked before each pop, so the last event handled can
        lie at or beyond ``until``. The first call seeds the arrival and
        shift-change streams; later calls continue the same run.
        """
        if not self.started:
            self.started = True
            self._seed()
        start_time = self.now
        self._notify_observers("on_run_started", system=self, start_time=start_time)
        logger.info("%s: run started at sim time %s (until %s)", self.name, start_time, until)

        while self.queue and self.now < until:
            self.step()

        logger.info(
            "%s: run finished at sim time %s, %s events, %s finished products",
            self.name,
            self.now,
            self.events_processed,
            self.stats.finished,
        )
        self._notify_observers("on_run_finished", system=self, start_time=start_time, end_time=self.now)

    def snapshot(self) -> dict[str, Any]:
        """Statistics for the reporting side, plus capacities and the end time."""
        data = self.stats.as_dict()
        data["capacities"] = self.pool.capacities()
        data["end_time"] = self.now
        return data

    # ------------------------------------------------------------------
    # Breakdowns
    # ------------------------------------------------------------------
    def schedule_breakdown(self, resource: str, at: float | None = None, repair_time: float = DEFAULT_REPAIR_TIME) -> Event:
        """Schedule one unit of ``resource`` to break down at ``at`` (default: now).

        The unit stays out of service for ``repair_time`` and comes back with a
        maintenance event, unless a shift change has already returned it.
        """
        self.pool.get(resource)
        if repair_time < 0:
            raise ConfigurationError(f"repair_time must not be negative, got {repair_time!r}")
        return self.queue.schedule(
            self.now if at is None else at, EventKind.BREAKDOWN, resource=resource, duration=float(repair_time)
        )

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _next_arrival_type(self, current: str) -> str:
        if self.product_mix is None:
            return current
        draw = self.random_source.sample_uniform01()
        for product_type, threshold in self.product_mix:
            if draw < threshold:
                return product_type
        return self.product_mix[-1][0]

    def _on_arrival(self, event: Event) -> None:
        product_type = event.product_type
        self.stats.add_arrival(product_type)
        unit = self.controller.new_unit(product_type)
        logger.debug("Raw material for %s arrived at time %s", product_type, self.now)

        self.queue.schedule(
            self.now + self.random_source.sample_interarrival(),
            EventKind.ARRIVAL,
            product_type=self._next_arrival_type(product_type),
        )
        self.controller.start_stage(unit)

    def _on_setup_done(self, event: Event) -> None:
        self.controller.setup_done(event.unit)

    def _on_stage_done(self, event: Event) -> None:
        self.controller.stage_done(event.unit)

    def _on_breakdown(self, event: Event) -> None:
        if not self.pool.take_down(event.resource):
            logger.warning("Breakdown on %s at time %s found no idle unit, ignored", event.resource, self.now)
            return
        self.stats.breakdowns += 1
        logger.debug("Breakdown occurred on %s at time %s", event.resource, self.now)
        self.queue.schedule(self.now + event.duration, EventKind.MAINTENANCE, resource=event.resource)

    def _on_maintenance(self, event: Event) -> None:
        if self.pool.restore(event.resource):
            logger.debug("Maintenance completed on %s at time %s", event.resource, self.now)
            self.controller.notify(event.resource)

    def _on_shift_change(self, event: Event) -> None:
        logger.debug("Shift change at time %s", self.now)
        self.stats.shift_changes += 1
        self.pool.reset_all(self.reset_policy)
        self.queue.schedule(self.now + self.shift_length, EventKind.SHIFT_CHANGE)
        self.controller.notify_all()
