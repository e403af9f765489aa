import pytest

from mfgsim.controller import BlockedPolicy, UnitState
from mfgsim.dist import RandomSource
from mfgsim.engine import ManufacturingSystem
from mfgsim.recorder import TraceRecorder
from mfgsim.stages import ProductType, StageGraph


def _line(blocked_policy=BlockedPolicy.STALL):
    """One machining slot (2.0 + 0.5 setup) feeding one assembly slot (1.0), an arrival every 1.0."""
    graph = StageGraph([ProductType.from_durations("P", [2.0, 1.0], setup=0.5)])
    system = ManufacturingSystem(
        graph=graph,
        capacities={"machining": 1, "assembly": 1},
        shift_length=1000.0,
        random_source=RandomSource(seed=0, interarrival=1.0),
        blocked_policy=blocked_policy,
    )
    recorder = TraceRecorder()
    system.register_observer(recorder)
    return system, recorder


def test_stall_policy_accounting():
    system, recorder = _line()

    system.run(until=4.5)

    assert recorder.times() == [1.0, 1.5, 2.0, 3.0, 3.5, 4.0, 4.5]
    assert recorder.kinds() == [
        "raw_material_arrival",
        "setup",
        "raw_material_arrival",
        "raw_material_arrival",
        "stage_done",
        "raw_material_arrival",
        "stage_done",
    ]
    stats = system.stats
    # setup and processing of unit 1, setup of unit 4, all committed when scheduled
    assert stats.busy_time["machining"] == pytest.approx(3.0)
    assert stats.busy_time["assembly"] == pytest.approx(1.0)
    # units 2 and 3 found machining taken
    assert stats.waiting_time["machining"] == pytest.approx(4.0)
    assert stats.stalled["machining"] == 2
    assert stats.arrivals == 4
    assert stats.finished == 1
    assert stats.finished_per_type == {"P": 1}

    u1, u2, u3, u4 = system.units
    assert u1.state is UnitState.FINISHED and u1.finish_time == 4.5
    assert u1.stage_index == 2
    assert u2.state is UnitState.STALLED and u3.state is UnitState.STALLED
    assert u4.state is UnitState.IN_SETUP


def test_stalled_units_never_resume():
    system, _ = _line()

    system.run(until=50.0)

    stalled = [u for u in system.units if u.state is UnitState.STALLED]
    assert stalled
    assert all(u.stage_index == 0 for u in stalled)
    assert system.stats.stalled["machining"] == len(stalled)


def test_wait_queue_policy_retries_on_release():
    system, _ = _line(BlockedPolicy.WAIT_QUEUE)

    system.run(until=4.5)

    u1, u2, u3, u4 = system.units
    # unit 2 waited from 2.0 until machining came back at 3.5
    assert system.stats.waiting_time["machining"] == pytest.approx(1.5)
    assert u2.state is UnitState.IN_PROCESS
    assert system.controller.waiting_units("machining") == [u3, u4]
    assert all(u.state is UnitState.WAITING for u in (u3, u4))
    assert not system.stats.stalled


def test_wait_queue_units_eventually_finish():
    system, _ = _line(BlockedPolicy.WAIT_QUEUE)

    system.run(until=30.0)

    finished = [u for u in system.units if u.finished]
    assert [u.id for u in finished] == list(range(1, len(finished) + 1))
    assert len(finished) > 5


def test_no_setup_event_without_setup_duration():
    graph = StageGraph([ProductType.from_durations("P", [1.0])])
    system = ManufacturingSystem(
        graph=graph,
        capacities={"machining": 1},
        shift_length=1000.0,
        random_source=RandomSource(seed=0, interarrival=5.0),
    )
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=6.0)

    assert recorder.kinds() == ["raw_material_arrival", "stage_done"]
    assert system.stats.finished == 1
