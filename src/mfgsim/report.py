"""Text reports of a run's statistics.

The layout is the plain log file format of the line's scenario runs::

    Resource Usage Times:
    machines: 1234.5 time units
    ...
    Total finished products: 987
    ProductA: 987 units
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from mfgsim.log_cfg import logger


def _fmt(value: float) -> str:
    return f"{value:g}"


def format_report(snapshot: Mapping[str, Any]) -> str:
    """Render a statistics snapshot (see :meth:`ManufacturingSystem.snapshot`)."""
    lines = ["Resource Usage Times:"]
    for name, value in sorted(snapshot["busy_time"].items()):
        lines.append(f"{name}: {_fmt(value)} time units")
    lines.append("Resource Waiting Times:")
    for name, value in sorted(snapshot["waiting_time"].items()):
        lines.append(f"{name}: {_fmt(value)} time units")
    lines.append(f"Total finished products: {snapshot['finished']}")
    for name, value in sorted(snapshot["finished_per_type"].items()):
        lines.append(f"{name}: {value} units")
    return "\n".join(lines) + "\n"


def report_filename(product_type: str, capacities: Mapping[str, int]) -> str:
    """Name like ``scenario_ProductA_machines_10_operators_5.txt``."""
    parts = [f"{name}_{capacity}" for name, capacity in capacities.items()]
    return "_".join(["scenario", product_type, *parts]) + ".txt"


def write_report(snapshot: Mapping[str, Any], path: str | Path) -> Path:
    """Write :func:`format_report` output to ``path`` and return the path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_report(snapshot))
    logger.info("Wrote report to %s", path)
    return path
