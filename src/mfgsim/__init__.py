"""mfgsim is a discrete event simulation of a multi-stage manufacturing line: stochastic raw material arrivals, ordered processing stages competing for shared resources, and periodic shift resets. Current subpackage includes the engine, the resource pool, process plans, distributions and reporting helpers.
"""
from mfgsim.controller import BlockedPolicy, ProcessController, ProductUnit, UnitState
from mfgsim.dist import RandomSource
from mfgsim.engine import ManufacturingSystem
from mfgsim.errors import (
    ConfigurationError,
    EmptySchedule,
    InvalidTimeError,
    ResourceAccountingError,
    SimulationError,
)
from mfgsim.events import Event, EventKind, EventQueue
from mfgsim.log_cfg import LogConfig, logger
from mfgsim.report import format_report, write_report
from mfgsim.resources import ResourcePool, ResourceType, ShiftResetPolicy
from mfgsim.runner import DEFAULT_SCENARIOS, Scenario, replicate, run, run_scenario, run_scenarios
from mfgsim.stages import STAGE_NAMES, ProductType, Stage, StageGraph, default_graph, stage_name
from mfgsim.statistics import Statistics

__version__ = "1.0.0"
