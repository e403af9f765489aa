import logging

import pytest

from mfgsim.controller import BlockedPolicy, UnitState
from mfgsim.dist import RandomSource, make_norm
from mfgsim.engine import ManufacturingSystem
from mfgsim.errors import ConfigurationError, InvalidTimeError
from mfgsim.recorder import TraceRecorder
from mfgsim.resources import ShiftResetPolicy
from mfgsim.stages import DEFAULT_ROUTING, ProductType, Stage, StageGraph


def _product_a_line(**kwargs):
    graph = StageGraph(
        [ProductType.from_durations("ProductA", [2.0, 1.5, 1.0, 1.0], setup=0.5, routing=DEFAULT_ROUTING)]
    )
    kwargs.setdefault("capacities", {"machines": 10, "operators": 5})
    return ManufacturingSystem(graph=graph, **kwargs)


def _assert_availability_in_bounds(system, recorder):
    capacities = system.pool.capacities()
    for _, _, _, availability in recorder.trace:
        for name, available in availability.items():
            assert 0 <= available <= capacities[name]


def test_reference_line_produces_finished_products():
    system = _product_a_line(seed=42)
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=1000.0)

    stats = system.stats
    assert stats.finished > 0
    capacities = system.pool.capacities()
    for name, busy in stats.busy_time.items():
        assert busy <= 1000.0 * capacities[name]
    assert sum(stats.busy_time.values()) <= 1000.0 * sum(capacities.values())
    _assert_availability_in_bounds(system, recorder)


def test_finished_units_completed_every_stage():
    system = ManufacturingSystem(seed=5, product_mix={"ProductA": 2, "ProductB": 1})

    system.run(until=500.0)

    finished = [u for u in system.units if u.state is UnitState.FINISHED]
    assert len(finished) == system.stats.finished > 0
    for unit in finished:
        assert unit.stage_index == system.graph.stage_count(unit.product_type)
    assert sum(system.stats.finished_per_type.values()) == system.stats.finished
    assert system.stats.arrivals_per_type["ProductA"] > 0
    assert system.stats.arrivals_per_type["ProductB"] > 0
    assert system.stats.arrivals == len(system.units)


def test_product_mix_applies_to_the_first_arrival():
    system = ManufacturingSystem(seed=1, product_mix={"ProductB": 1.0})

    system.run(until=20.0)

    assert system.stats.arrivals_per_type["ProductA"] == 0
    assert system.stats.arrivals_per_type["ProductB"] == system.stats.arrivals > 0
    assert all(u.product_type == "ProductB" for u in system.units)


def test_always_negative_duration_raises_instead_of_hanging():
    graph = StageGraph([ProductType("P", (Stage("machining", make_norm(-50.0, 1.0)),))])
    system = ManufacturingSystem(graph=graph, capacities={"machining": 1}, seed=1)

    with pytest.raises(ConfigurationError):
        system.run(until=5.0)


def test_zero_capacity_stage_stalls_every_unit():
    graph = StageGraph([ProductType.from_durations("ProductA", [2.0, 1.5, 1.0, 1.0], setup=0.5)])

    short = ManufacturingSystem(graph=graph, capacities={"machining": 0}, seed=3)
    short.run(until=100.0)
    long = ManufacturingSystem(graph=graph, capacities={"machining": 0}, seed=3)
    long.run(until=1000.0)

    for system in (short, long):
        assert system.stats.finished == 0
        assert all(u.state is UnitState.STALLED and u.stage_index == 0 for u in system.units)
        assert system.stats.stalled["machining"] == system.stats.arrivals
        assert system.stats.waiting_time["machining"] == pytest.approx(2.0 * system.stats.arrivals)
    assert long.stats.waiting_time["machining"] > 5 * short.stats.waiting_time["machining"]


def test_three_shift_changes_in_24_time_units():
    system = _product_a_line(seed=11, shift_length=8.0)
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=24.0)

    shift_rows = [row for row in recorder.trace if row[2] == "shift_change"]
    assert [row[0] for row in shift_rows] == [8.0, 16.0, 24.0]
    assert system.stats.shift_changes == 3
    for _, _, _, availability in shift_rows:
        assert availability == system.pool.capacities()


def test_full_reset_ignores_units_in_process():
    # a long machining stage guarantees units are mid-stage at the shift change
    graph = StageGraph([ProductType.from_durations("P", [5.0], routing={"machining": "machines"})])
    system = ManufacturingSystem(
        graph=graph,
        capacities={"machines": 3},
        shift_length=4.0,
        random_source=RandomSource(seed=0, interarrival=1.0),
    )
    system.run(until=4.0)

    resource = system.pool.get("machines")
    assert resource.in_use == 3
    assert resource.available == 3


def test_preserve_in_flight_keeps_held_slots():
    graph = StageGraph([ProductType.from_durations("P", [5.0], routing={"machining": "machines"})])
    system = ManufacturingSystem(
        graph=graph,
        capacities={"machines": 3},
        shift_length=4.0,
        random_source=RandomSource(seed=0, interarrival=1.0),
        reset_policy=ShiftResetPolicy.PRESERVE_IN_FLIGHT,
    )
    recorder = TraceRecorder()
    system.register_observer(recorder)
    system.run(until=200.0)

    resource = system.pool.get("machines")
    assert resource.available == resource.capacity - resource.in_use
    _assert_availability_in_bounds(system, recorder)


@pytest.mark.parametrize("reset_policy", list(ShiftResetPolicy))
@pytest.mark.parametrize("blocked_policy", list(BlockedPolicy))
def test_availability_never_leaves_bounds(reset_policy, blocked_policy):
    system = ManufacturingSystem(
        seed=21,
        capacities={"machines": 3, "operators": 2},
        product_mix={"ProductA": 1, "ProductB": 1},
        reset_policy=reset_policy,
        blocked_policy=blocked_policy,
    )
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=300.0)

    _assert_availability_in_bounds(system, recorder)
    times = recorder.times()
    assert times == sorted(times)


def test_same_seed_same_statistics_and_trace():
    runs = []
    for _ in range(2):
        system = ManufacturingSystem(seed=7, product_mix={"ProductA": 1, "ProductB": 3})
        recorder = TraceRecorder()
        system.register_observer(recorder)
        system.run(until=400.0)
        runs.append((system.stats, recorder.trace))

    assert runs[0][0] == runs[1][0]
    assert runs[0][1] == runs[1][1]


def test_bound_is_checked_before_popping():
    system = _product_a_line(random_source=RandomSource(seed=0, interarrival=1.0), shift_length=100.0)

    system.run(until=3.9)

    # the arrival at 4.0 is still handled because the clock was 3.5 when it was popped
    assert system.now == 4.0
    assert system.stats.arrivals == 4


def test_run_continues_where_it_stopped():
    split = _product_a_line(seed=9)
    split.run(until=250.0)
    split.run(until=500.0)

    whole = _product_a_line(seed=9)
    whole.run(until=500.0)

    assert split.stats == whole.stats
    assert split.now == whole.now


def test_breakdown_takes_slot_out_until_maintenance():
    system = _product_a_line(
        capacities={"machines": 2, "operators": 1},
        random_source=RandomSource(seed=0, interarrival=100.0),
        shift_length=500.0,
    )
    system.schedule_breakdown("machines", at=1.0, repair_time=5.0)
    recorder = TraceRecorder()
    system.register_observer(recorder)

    system.run(until=6.0)

    assert recorder.kinds() == ["breakdown", "maintenance"]
    assert [row[3]["machines"] for row in recorder.trace] == [1, 2]
    assert system.stats.breakdowns == 1


def test_maintenance_after_shift_reset_does_not_overflow():
    system = _product_a_line(
        capacities={"machines": 2, "operators": 1},
        random_source=RandomSource(seed=0, interarrival=100.0),
        shift_length=3.0,
    )
    system.schedule_breakdown("machines", at=1.0, repair_time=5.0)

    system.run(until=7.0)

    assert system.pool.available("machines") == 2


def test_breakdown_without_idle_unit_is_logged(caplog):
    system = _product_a_line(capacities={"machines": 0, "operators": 1}, seed=1)
    system.schedule_breakdown("machines", at=0.0)

    with caplog.at_level(logging.WARNING, logger="mfgsim"):
        system.run(until=1.0)

    assert system.stats.breakdowns == 0
    assert "found no idle unit" in caplog.text


def test_breakdown_configuration_errors():
    system = _product_a_line(seed=1)

    with pytest.raises(ConfigurationError):
        system.schedule_breakdown("robots")
    with pytest.raises(ConfigurationError):
        system.schedule_breakdown("machines", repair_time=-1.0)

    system.run(until=10.0)
    with pytest.raises(InvalidTimeError):
        system.schedule_breakdown("machines", at=1.0)


def test_configuration_is_validated():
    with pytest.raises(ConfigurationError):
        ManufacturingSystem(shift_length=0)
    with pytest.raises(ConfigurationError):
        ManufacturingSystem(arrival_type="ProductZ")
    with pytest.raises(ConfigurationError):
        ManufacturingSystem(product_mix={"ProductA": 0.0})
    with pytest.raises(ConfigurationError):
        ManufacturingSystem(product_mix={"ProductA": 1.0, "ProductB": -1.0})


def test_unknown_resource_surfaces_during_run():
    system = ManufacturingSystem(capacities={"machining": 5}, seed=1)

    with pytest.raises(ConfigurationError):
        system.run(until=10.0)


def test_set_capacities_only_before_start():
    system = _product_a_line(seed=1)
    system.set_capacities({"machines": 12, "operators": 7})
    assert system.pool.capacities() == {"machines": 12, "operators": 7}

    system.run(until=5.0)
    with pytest.raises(ConfigurationError):
        system.set_capacities({"machines": 1, "operators": 1})


def test_snapshot_contents():
    system = _product_a_line(seed=2)
    system.run(until=50.0)

    snapshot = system.snapshot()

    assert snapshot["capacities"] == {"machines": 10, "operators": 5}
    assert snapshot["end_time"] == system.now
    assert set(snapshot["busy_time"]) == {"machines", "operators"}
    assert snapshot["finished"] == system.stats.finished
