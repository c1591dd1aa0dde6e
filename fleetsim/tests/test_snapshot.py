import pytest

from fleetsim.schemas import SimConfig
from fleetsim.runner import load_run
from fleetsim.sim.engine import SimulationEngine
from fleetsim.sim.entities import TargetRef
from fleetsim.sim.metrics import compute_metrics
from fleetsim.snapshot import (
    HEADER,
    SnapshotFormatError,
    create_snapshot,
    decode_plan,
    dumps,
    encode_plan,
    loads,
    read_file,
    write_file,
)


def _runner(seed=11):
    runner = load_run(
        SimConfig(seed=seed),
        scale="mini",
        truck_count=2,
        targets_per_truck=3,
        fixed_step=0.1,
        arrive_epsilon=0.1,
        diagnostics=False,
    )
    runner.world.depot.command_to_stop(1)
    return runner


def test_plan_codec():
    plan = [TargetRef.customer(3), TargetRef.depot(), TargetRef.station(9)]
    assert encode_plan(plan) == "C:3|D:1|S:9"
    assert decode_plan("C:3|D:1|S:9") == plan
    assert decode_plan("") == []


def test_snapshot_restores_identical_world():
    runner = _runner()
    for _ in range(137):
        runner.step_once()

    snap = create_snapshot(runner.world, runner.engine.queue.to_list(), seed=11)
    text = dumps(snap)
    restored = loads(text)

    assert text.startswith(HEADER + "\n")
    assert restored.seed == 11
    assert restored.events == snap.events
    assert restored.world == snap.world
    assert dumps(restored) == text


def test_snapshot_is_detached_from_live_world():
    runner = _runner()
    runner.step_once()
    snap = create_snapshot(runner.world, runner.engine.queue.to_list())
    time_at_snapshot = snap.world.time

    for _ in range(10):
        runner.step_once()

    assert snap.world.time == time_at_snapshot
    assert runner.world.time > time_at_snapshot


def test_restored_engine_continues_like_the_live_one():
    runner = _runner(seed=5)
    for _ in range(80):
        runner.step_once()
    restored = loads(dumps(create_snapshot(runner.world, runner.engine.queue.to_list(), seed=5)))
    engine_b = SimulationEngine.from_snapshot(restored)

    for _ in range(400):
        runner.engine.step(0.1)
        engine_b.step(0.1)

    assert engine_b.queue.to_list() == runner.engine.queue.to_list()
    assert compute_metrics(engine_b.world) == compute_metrics(runner.world)


def test_write_and_read_file(tmp_path):
    runner = _runner()
    snap = create_snapshot(runner.world, [], seed=3)
    path = tmp_path / "run.snap"

    write_file(path, snap)

    assert read_file(path).world == snap.world


def test_count_mismatch_is_rejected():
    text = "# SNAPSHOT v1\ntime=0.0\ncustomers=2\ncustomer 2 1.0 1.0 1 0.0 1.0 1 -1\n"
    with pytest.raises(SnapshotFormatError):
        loads(text)


def test_bad_value_reports_line():
    with pytest.raises(SnapshotFormatError) as excinfo:
        loads("# SNAPSHOT v1\ntime=abc\n")
    assert excinfo.value.line_no == 2


def test_minimal_snapshot_gets_default_stop():
    snap = loads("# SNAPSHOT v1\ntime=2.5\nseed=4\ndepot=1.0,2.0,0.0\n")
    assert snap.world.time == 2.5
    assert snap.world.customers == []
    assert [s.stop_id for s in snap.world.depot.candidate_stops] == [1]


def test_bad_leg_line_reports_line():
    text = (
        "# SNAPSHOT v1\ntime=0.0\ntrucks=1\n"
        "truck 1 0.0 0.0 1.0 0 0 0 0.0 0.0 0.0 0 0 0\n"
        "leg 1 - - -1 0.0 -1 C:x 0 0.0 0.0\n"
    )
    with pytest.raises(SnapshotFormatError) as excinfo:
        loads(text)
    assert excinfo.value.line_no == 5
