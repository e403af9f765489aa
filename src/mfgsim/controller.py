"""Stage state machine that moves product units through their process plan.

A unit is queued at a stage, optionally set up (first stage only), processed,
and then either moves on to the next stage or finishes. A unit that finds its
resource fully taken is handled according to :class:`BlockedPolicy`.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum

from mfgsim.dist import SampleSource
from mfgsim.events import EventKind, EventQueue
from mfgsim.log_cfg import logger
from mfgsim.resources import ResourcePool
from mfgsim.stages import Stage, StageGraph
from mfgsim.statistics import Statistics


class UnitState(Enum):
    QUEUED = "queued"
    IN_SETUP = "in_setup"
    IN_PROCESS = "in_process"
    WAITING = "waiting"
    STALLED = "stalled"
    FINISHED = "finished"


class BlockedPolicy(Enum):
    """What happens to a unit that cannot get its resource.

    ``STALL`` records the stage's processing time as waiting time and drops
    the unit for good. ``WAIT_QUEUE`` parks the unit in a FIFO per resource
    and retries it whenever a slot comes back.
    """

    STALL = "stall"
    WAIT_QUEUE = "wait_queue"


@dataclass(eq=False)
class ProductUnit:
    """One piece of raw material on its way through the line."""

    id: int
    product_type: str
    stage_index: int = 0
    arrival_time: float = 0.0
    finish_time: float | None = None
    state: UnitState = UnitState.QUEUED
    # processing duration drawn for the current stage
    processing: float | None = None
    blocked_since: float | None = None

    def __str__(self) -> str:
        return f"{self.product_type} ({self.id})"

    @property
    def finished(self) -> bool:
        return self.state is UnitState.FINISHED


class ProcessController:
    """Drives units through stages, taking and returning resources and updating statistics."""

    def __init__(
        self,
        queue: EventQueue,
        pool: ResourcePool,
        graph: StageGraph,
        stats: Statistics,
        random_source: SampleSource,
        blocked_policy: BlockedPolicy = BlockedPolicy.STALL,
    ):
        self.queue = queue
        self.pool = pool
        self.graph = graph
        self.stats = stats
        self.random_source = random_source
        self.blocked_policy = blocked_policy
        self.units: list[ProductUnit] = []
        self._waiting: dict[str, deque[ProductUnit]] = {}
        self._last_unit_id = 0

    @property
    def now(self) -> float:
        return self.queue.now

    def new_unit(self, product_type: str) -> ProductUnit:
        """Create a unit at stage 0 of ``product_type``."""
        self.graph.product(product_type)
        self._last_unit_id += 1
        unit = ProductUnit(self._last_unit_id, product_type, arrival_time=self.now)
        self.units.append(unit)
        return unit

    def waiting_units(self, resource: str) -> list[ProductUnit]:
        return list(self._waiting.get(resource, ()))

    def start_stage(self, unit: ProductUnit) -> bool:
        """Try to start the unit's current stage. Returns ``True`` if it got its resource."""
        stage = self.graph.stage(unit.product_type, unit.stage_index)
        if unit.processing is None:
            unit.processing = self.random_source.sample(stage.processing)
        unit.state = UnitState.QUEUED
        if not self.pool.try_acquire(stage.resource):
            self._blocked(unit, stage)
            return False
        self._begin(unit, stage)
        return True

    def _begin(self, unit: ProductUnit, stage: Stage) -> None:
        if unit.stage_index == 0 and stage.has_setup:
            setup = self.random_source.sample(stage.setup)
            if setup > 0:
                unit.state = UnitState.IN_SETUP
                self.stats.add_busy(stage.resource, setup)
                self.queue.schedule(self.now + setup, EventKind.SETUP_DONE, unit=unit)
                return
        self._process(unit, stage)

    def _process(self, unit: ProductUnit, stage: Stage) -> None:
        unit.state = UnitState.IN_PROCESS
        self.stats.add_busy(stage.resource, unit.processing)
        self.queue.schedule(self.now + unit.processing, EventKind.STAGE_DONE, unit=unit)

    def _blocked(self, unit: ProductUnit, stage: Stage) -> None:
        if self.blocked_policy is BlockedPolicy.WAIT_QUEUE:
            unit.state = UnitState.WAITING
            unit.blocked_since = self.now
            self._waiting.setdefault(stage.resource, deque()).append(unit)
            logger.debug("%s waits for %s at time %s", unit, stage.resource, self.now)
            return
        unit.state = UnitState.STALLED
        self.stats.add_waiting(stage.resource, unit.processing)
        self.stats.stalled[stage.resource] += 1
        logger.debug("%s stalled at %s, no %s available at time %s", unit, stage.name, stage.resource, self.now)

    def setup_done(self, unit: ProductUnit) -> None:
        stage = self.graph.stage(unit.product_type, unit.stage_index)
        logger.debug("Setup of %s for %s completed at time %s", stage.name, unit, self.now)
        self._process(unit, stage)

    def stage_done(self, unit: ProductUnit) -> None:
        """Release the stage's resource and move the unit on."""
        stage = self.graph.stage(unit.product_type, unit.stage_index)
        logger.debug("%s for %s completed at time %s", stage.name, unit, self.now)
        self.pool.release(stage.resource)
        self.notify(stage.resource)

        unit.stage_index += 1
        unit.processing = None
        if unit.stage_index >= self.graph.stage_count(unit.product_type):
            unit.state = UnitState.FINISHED
            unit.finish_time = self.now
            self.stats.add_finished(unit.product_type)
            logger.debug("%s finished at time %s", unit, self.now)
        else:
            self.start_stage(unit)

    def notify(self, resource: str) -> None:
        """Hand free slots of ``resource`` to waiting units, oldest first."""
        waiting = self._waiting.get(resource)
        while waiting and self.pool.try_acquire(resource):
            unit = waiting.popleft()
            self.stats.add_waiting(resource, self.now - unit.blocked_since)
            unit.blocked_since = None
            self._begin(unit, self.graph.stage(unit.product_type, unit.stage_index))

    def notify_all(self) -> None:
        for resource in list(self._waiting):
            self.notify(resource)
