from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Union

import numpy as np
from pandas import DataFrame

from .controller import BlockedPolicy
from .engine import DEFAULT_SHIFT_LENGTH, ManufacturingSystem
from .log_cfg import logger
from .report import report_filename, write_report
from .resources import ShiftResetPolicy
from .stages import StageGraph


@dataclass
class Scenario:
    """One configuration of the line to simulate."""

    product: str = "ProductA"
    capacities: dict[str, int] = field(default_factory=lambda: {"machines": 10, "operators": 5})
    run_time: float = 1000.0
    seed: int | None = None
    shift_length: float = DEFAULT_SHIFT_LENGTH
    reset_policy: ShiftResetPolicy = ShiftResetPolicy.FULL_RESET
    blocked_policy: BlockedPolicy = BlockedPolicy.STALL
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or report_filename(self.product, self.capacities)[: -len(".txt")]

    def build(self, graph: StageGraph | None = None) -> ManufacturingSystem:
        """Create a fresh system for this scenario."""
        system = ManufacturingSystem(
            graph=graph,
            shift_length=self.shift_length,
            seed=self.seed,
            arrival_type=self.product,
            reset_policy=self.reset_policy,
            blocked_policy=self.blocked_policy,
            name=self.label,
        )
        system.set_capacities(self.capacities)
        return system


DEFAULT_SCENARIOS = (
    Scenario("ProductA", {"machines": 10, "operators": 5}),
    Scenario("ProductB", {"machines": 8, "operators": 6}),
    Scenario("ProductA", {"machines": 12, "operators": 7}),
)


def run_scenario(scenario: Scenario, log_dir: str | Path | None = None, graph: StageGraph | None = None) -> ManufacturingSystem:
    """Build, run and optionally report one scenario.

    When ``log_dir`` is given, the report lands in
    ``log_dir/scenario_<product>_<resource>_<n>....txt``.
    """
    system = scenario.build(graph)
    system.run(until=scenario.run_time)
    if log_dir is not None:
        write_report(system.snapshot(), Path(log_dir) / report_filename(scenario.product, scenario.capacities))
    return system


def run_scenarios(scenarios=DEFAULT_SCENARIOS, log_dir: str | Path | None = None) -> list[ManufacturingSystem]:
    """Run scenarios one after another, each on its own fresh system."""
    return [run_scenario(scenario, log_dir) for scenario in scenarios]


def run(
    system_or_factory: Union[ManufacturingSystem, Callable[[], ManufacturingSystem]],
    *,
    until: float = 1000.0,
    number_runs: int = 1,
):
    """Run one or many simulations.

    Parameters
    ----------
    system_or_factory:
        Either

        - a ready-made :class:`mfgsim.engine.ManufacturingSystem`, or
        - a *factory* callable with signature ``() -> ManufacturingSystem``
          that builds a fresh system for each replication.

    until:
        Simulation end time passed to :meth:`ManufacturingSystem.run`.

    number_runs:
        Number of independent replications to execute when a factory is used.
        If ``system_or_factory`` is a concrete system, this must be 1.

    Returns
    -------
    ManufacturingSystem or list[ManufacturingSystem]
        - The system itself when a concrete system was passed.
        - A list of systems when a factory is used.
    """
    if isinstance(system_or_factory, ManufacturingSystem):
        if number_runs != 1:
            raise ValueError("number_runs > 1 requires a system *factory*; " "you passed a concrete ManufacturingSystem instance.")
        system_or_factory.run(until=until)
        return system_or_factory

    if not callable(system_or_factory):
        raise TypeError("First argument to mfgsim.run must be either a ManufacturingSystem " "or a factory callable () -> ManufacturingSystem.")

    if number_runs < 1:
        raise ValueError("number_runs must be >= 1")

    factory: Callable[[], ManufacturingSystem] = system_or_factory
    all_systems: List[ManufacturingSystem] = []

    for i in range(number_runs):
        system = factory()
        if not isinstance(system, ManufacturingSystem):
            raise TypeError(f"factory() must return mfgsim.ManufacturingSystem, " f"got {type(system)!r} on run {i + 1}.")
        system.run(until=until)
        all_systems.append(system)

    logger.info("Finished %s replications", number_runs)
    return all_systems


def replicate(factory: Callable[[int], ManufacturingSystem], runs: int = 10, until: float = 1000.0) -> DataFrame:
    """Monte Carlo replications, one row per run.

    ``factory`` receives the replication index (useful as a seed) and must
    return a fresh system. Columns: ``run``, ``finished``, ``arrivals``, and
    ``busy_<resource>`` / ``waiting_<resource>`` for every resource.
    """
    if runs < 1:
        raise ValueError("runs must be >= 1")
    rows = []
    for i in range(runs):
        system = factory(i)
        system.run(until=until)
        stats = system.stats
        row = {"run": i, "finished": stats.finished, "arrivals": stats.arrivals}
        row.update({f"busy_{name}": value for name, value in stats.busy_time.items()})
        row.update({f"waiting_{name}": value for name, value in stats.waiting_time.items()})
        rows.append(row)
    return DataFrame(rows)


def summarize(results: DataFrame) -> DataFrame:
    """Mean, standard deviation and a normal 95% half-width per numeric column of :func:`replicate`."""
    values = results.drop(columns=["run"]).astype(float)
    n = len(values)
    std = values.std(ddof=1) if n > 1 else values.std(ddof=0)
    half_width = 1.96 * std / np.sqrt(n)
    return DataFrame({"mean": values.mean(), "std": std, "ci95": half_width})
