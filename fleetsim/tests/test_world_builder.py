import pytest

from fleetsim.schemas import CustomerSpec, SimConfig
from fleetsim.sim.entities import CustomerStatus, TargetRef
from fleetsim.sim.features import FeatureFlags
from fleetsim.sim.world import (
    assign_demo_plans,
    build_world,
    create_demo_fleet,
    generate_instance,
    insert_customer,
)


def test_instance_generation_deterministic():
    instance_a, hash_a = generate_instance(seed=42, scale="small", world_size=100)
    instance_b, hash_b = generate_instance(seed=42, scale="small", world_size=100)

    assert hash_a == hash_b
    assert instance_a == instance_b
    assert len(instance_a.node_pos) == 26


def test_instance_generation_changes_with_seed():
    _, hash_a = generate_instance(seed=42, scale="small", world_size=100)
    _, hash_b = generate_instance(seed=43, scale="small", world_size=100)
    assert hash_a != hash_b


def test_generation_with_all_features():
    instance, _ = generate_instance(
        seed=9,
        scale="mini",
        world_size=50,
        customers_override=8,
        dynamic=True,
        electric=True,
        moving_depot=True,
    )
    flags = FeatureFlags(instance.features)

    assert flags & FeatureFlags.ELECTRIC
    assert flags & FeatureFlags.MOVING_DEPOT
    assert len(instance.station_node_ids) == 2
    assert len(instance.depot_candidate_stops) == 4
    assert instance.node_pos[1] == (25.0, 25.0)

    world = build_world(instance)
    assert len(world.customers) == 8
    assert world.energy_capacity == 100.0
    assert world.depot.speed == 0.5


def test_generation_rejects_bad_arguments():
    with pytest.raises(ValueError):
        generate_instance(seed=1, scale="huge", world_size=100)
    with pytest.raises(ValueError):
        generate_instance(seed=1, scale="mini", world_size=100, customers_override=0)


def test_depot_speed_override_applies():
    instance, _ = generate_instance(seed=1, scale="mini", world_size=100, moving_depot=True)
    world = build_world(instance, SimConfig(override_depot_speed=2.0))
    assert world.depot.speed == 2.0


def test_demo_fleet_and_plans():
    instance, _ = generate_instance(seed=3, scale="mini", world_size=100, electric=True)
    world = build_world(instance)

    trucks = create_demo_fleet(world, 2, 1.5)
    assign_demo_plans(world, targets_per_truck=3, locked_prefix_count=1)

    assert [t.id for t in trucks] == [1, 2]
    assert all(t.pos == world.depot.pos for t in trucks)
    assert all(t.battery == t.battery_capacity == 100.0 for t in trucks)
    assert all(t.speed == 1.5 for t in trucks)
    customer_ids = [c.id for c in world.customers]
    assert trucks[0].plan == [TargetRef.customer(cid) for cid in customer_ids[:3]]
    assert trucks[1].plan == [TargetRef.customer(cid) for cid in customer_ids[3:5]]
    assert all(t.locked_prefix_count == 1 and t.current_target_index == 0 for t in trucks)


def test_insert_customer_gets_fresh_id():
    instance, _ = generate_instance(seed=3, scale="mini", world_size=100, electric=True)
    world = build_world(instance)
    world.time = 4.0

    now = insert_customer(world, CustomerSpec(x=1.0, y=2.0, demand=2))
    later = insert_customer(world, CustomerSpec(x=3.0, y=4.0, release_time=10.0))

    # 1 depot + 5 customers + 2 stations
    assert now.id == 9
    assert later.id == 10
    assert now.status == CustomerStatus.WAITING
    assert now.release_time == 4.0
    assert later.status == CustomerStatus.UNRELEASED
    assert world.find_customer(10) is later
