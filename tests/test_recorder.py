"""Tests for observer behavior."""

from mfgsim.engine import ManufacturingSystem
from mfgsim.recorder import RunRecorder, TraceRecorder


def test_run_recorder_keeps_final_snapshot():
    system = ManufacturingSystem(seed=3)
    recorder = RunRecorder()
    system.register_observer(recorder)

    system.run(until=30.0)

    assert recorder.runs == 1
    assert recorder.run_data["finished"] == system.stats.finished
    assert recorder.run_data["start_time"] == 0.0
    assert recorder.run_data["end_time"] == system.now


def test_trace_recorder_frame():
    system = ManufacturingSystem(seed=3)
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=30.0)

    frame = recorder.to_frame()
    assert list(frame.columns) == ["time", "seq", "kind", "available_machines", "available_operators"]
    assert len(frame) == system.events_processed
    assert frame["time"].is_monotonic_increasing


def test_observers_without_hooks_are_skipped():
    system = ManufacturingSystem(seed=3)
    system.register_observer(object())

    system.run(until=5.0)

    assert system.events_processed > 0
