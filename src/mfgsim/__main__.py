"""Command line entry point: ``python -m mfgsim`` runs the reference scenarios."""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace

from mfgsim.controller import BlockedPolicy
from mfgsim.log_cfg import LogConfig
from mfgsim.report import format_report
from mfgsim.resources import ShiftResetPolicy
from mfgsim.runner import DEFAULT_SCENARIOS, run_scenario


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="mfgsim", description="Simulate the manufacturing line scenarios.")
    parser.add_argument("--run-time", type=float, default=1000.0, help="simulated time per scenario")
    parser.add_argument("--seed", type=int, default=None, help="random seed, same seed gives the same run")
    parser.add_argument("--shift-length", type=float, default=8.0)
    parser.add_argument("--log-dir", default=".", help="directory for the scenario report files")
    parser.add_argument(
        "--reset-policy",
        choices=[p.value for p in ShiftResetPolicy],
        default=ShiftResetPolicy.FULL_RESET.value,
    )
    parser.add_argument(
        "--blocked-policy",
        choices=[p.value for p in BlockedPolicy],
        default=BlockedPolicy.STALL.value,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log every event")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    LogConfig(enabled=True, console_level=logging.DEBUG if args.verbose else logging.INFO, file_path=None)

    for scenario in DEFAULT_SCENARIOS:
        scenario = replace(
            scenario,
            run_time=args.run_time,
            seed=args.seed,
            shift_length=args.shift_length,
            reset_policy=ShiftResetPolicy(args.reset_policy),
            blocked_policy=BlockedPolicy(args.blocked_policy),
        )
        system = run_scenario(scenario, log_dir=args.log_dir)
        print(f"== {scenario.label}")
        print(format_report(system.snapshot()), end="")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
