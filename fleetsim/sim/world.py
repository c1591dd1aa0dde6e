from __future__ import annotations

"""
File: fleetsim/sim/world.py
Purpose: Build initial worlds from parsed instances and generate reproducible scenarios.
Key responsibilities:
- Map a ProblemInstance (plus run config overrides) into a World.
- Materialize a uniform demo fleet and hand out simple demo plans.
- Insert customers into a running world.
- Use a seeded RNG to create instances and compute a scenario hash.
"""

import hashlib
import json

from fleetsim.schemas import CustomerSpec, DepotStopSpec, ProblemInstance, SimConfig
from fleetsim.sim.entities import (
    Customer,
    CustomerStatus,
    DepotCandidateStop,
    DepotCarrier,
    TargetRef,
    Truck,
    TruckState,
    World,
)
from fleetsim.sim.features import FeatureFlags, problem_kind_code
from fleetsim.sim.geometry import Vec2
from fleetsim.sim.rng import DeterministicRng
from fleetsim.settings import SCALE_MAP


def _vec(pair: tuple[float, float]) -> Vec2:
    return Vec2(float(pair[0]), float(pair[1]))


def build_world(instance: ProblemInstance, config: SimConfig | None = None) -> World:
    """Convert a parsed instance into a runtime World. Does not create trucks or routes."""
    config = config or SimConfig()
    depot_speed = config.override_depot_speed if config.override_depot_speed is not None else instance.depot_speed

    depot_node_ids = instance.depot_node_ids or [1]
    depot_pos = _vec(instance.node_pos.get(depot_node_ids[0], (0.0, 0.0)))
    depot = DepotCarrier(pos=depot_pos, speed=depot_speed)
    for stop in instance.depot_candidate_stops:
        depot.candidate_stops.append(DepotCandidateStop(stop.stop_id, Vec2(stop.x, stop.y)))
    if not depot.candidate_stops:
        depot.candidate_stops.append(DepotCandidateStop(1, depot_pos))

    world = World(
        depot=depot,
        capacity=instance.capacity,
        features=FeatureFlags(instance.features),
        energy_capacity=instance.energy_capacity,
        energy_consumption=instance.energy_consumption,
        depot_node_id=depot_node_ids[0],
    )

    excluded = set(depot_node_ids) | set(instance.station_node_ids)
    for station_id in instance.station_node_ids:
        if station_id in instance.node_pos:
            world.station_ids.append(station_id)
            world.station_pos[station_id] = _vec(instance.node_pos[station_id])

    for node_id in sorted(instance.node_pos):
        if node_id in excluded:
            continue
        release = float(instance.release_time.get(node_id, 0.0))
        world.customers.append(
            Customer(
                id=node_id,
                pos=_vec(instance.node_pos[node_id]),
                demand=int(instance.demand.get(node_id, 0)),
                release_time=release,
                service_time=instance.service_time,
                status=CustomerStatus.WAITING if release <= 0 else CustomerStatus.UNRELEASED,
            )
        )
    return world


def create_demo_fleet(world: World, truck_count: int, truck_speed: float) -> list[Truck]:
    """Replace the fleet with truck_count identical trucks parked at the depot."""
    if truck_count < 0:
        raise ValueError("truck_count must be >= 0")
    battery_capacity = world.energy_capacity or 0.0
    consumption = world.energy_consumption or 0.0

    world.trucks.clear()
    for idx in range(1, truck_count + 1):
        world.trucks.append(
            Truck(
                id=idx,
                pos=world.depot.pos,
                capacity=world.capacity,
                speed=truck_speed,
                battery_capacity=battery_capacity,
                battery=battery_capacity,
                energy_consumption=consumption,
            )
        )
    return world.trucks


def assign_demo_plans(world: World, targets_per_truck: int, locked_prefix_count: int = 0) -> None:
    """Hand out customers in list order, targets_per_truck to each truck, and reset cursors."""
    if targets_per_truck < 0:
        raise ValueError("targets_per_truck must be >= 0")
    if not world.trucks or not world.customers:
        return

    next_customer = 0
    for truck in world.trucks:
        truck.plan.clear()
        truck.current_target_index = 0
        truck.locked_prefix_count = locked_prefix_count
        truck.clear_leg()
        truck.state = TruckState.IDLE

        for _ in range(targets_per_truck):
            if next_customer >= len(world.customers):
                break
            customer = world.customers[next_customer]
            if customer.service_time <= 0:
                customer.service_time = 1.0
            truck.plan.append(TargetRef.customer(customer.id))
            next_customer += 1


def insert_customer(world: World, spec: CustomerSpec) -> Customer:
    """Append a customer with a fresh id; released now unless a later release time is given."""
    release = world.time if spec.release_time is None else spec.release_time
    customer = Customer(
        id=world.next_customer_id(),
        pos=Vec2(spec.x, spec.y),
        demand=spec.demand,
        release_time=release,
        service_time=spec.service_time,
        status=CustomerStatus.WAITING if release <= world.time else CustomerStatus.UNRELEASED,
    )
    world.customers.append(customer)
    return customer


def generate_instance(
    seed: int,
    scale: str,
    world_size: int,
    customers_override: int | None = None,
    dynamic: bool = False,
    electric: bool = False,
    moving_depot: bool = False,
    capacity: int = 20,
) -> tuple[ProblemInstance, str]:
    """Generate a problem instance deterministically and return it with a scenario hash."""
    if scale not in SCALE_MAP:
        raise ValueError(f"invalid scale: {scale}")
    if customers_override is not None and customers_override <= 0:
        raise ValueError("customers_override must be > 0")

    customer_count = customers_override if customers_override is not None else SCALE_MAP[scale]["customers"]
    rng = DeterministicRng(seed)

    # node 1 is the depot, customers follow
    center = world_size / 2.0
    node_pos: dict[int, tuple[float, float]] = {1: (center, center)}
    demand: dict[int, int] = {1: 0}
    release_time: dict[int, float] = {1: 0.0}
    for node_id in range(2, customer_count + 2):
        node_pos[node_id] = (
            round(rng.next_float(0, world_size), 3),
            round(rng.next_float(0, world_size), 3),
        )
        demand[node_id] = rng.next_int(1, 10)
        release_time[node_id] = float(rng.next_int(1, 120)) if dynamic and rng.next_bool(0.5) else 0.0

    station_ids: list[int] = []
    if electric:
        for offset in range(2):
            station_id = customer_count + 2 + offset
            node_pos[station_id] = (
                round(rng.next_float(0, world_size), 3),
                round(rng.next_float(0, world_size), 3),
            )
            demand[station_id] = 0
            release_time[station_id] = 0.0
            station_ids.append(station_id)

    stops = [DepotStopSpec(stop_id=1, x=center, y=center)]
    if moving_depot:
        for stop_id in range(2, 5):
            stops.append(
                DepotStopSpec(
                    stop_id=stop_id,
                    x=round(rng.next_float(0, world_size), 3),
                    y=round(rng.next_float(0, world_size), 3),
                )
            )

    flags = FeatureFlags.CAPACITATED
    if dynamic and any(r > 0 for r in release_time.values()):
        flags |= FeatureFlags.DYNAMIC
    if electric:
        flags |= FeatureFlags.ELECTRIC
    if moving_depot:
        flags |= FeatureFlags.MOVING_DEPOT

    instance = ProblemInstance(
        name=f"generated-{scale}-{seed}",
        type="CVRP",
        dimension=len(node_pos),
        capacity=capacity,
        truck_speed=1.0,
        depot_speed=0.5 if moving_depot else 0.0,
        energy_capacity=100.0 if electric else None,
        energy_consumption=1.0 if electric else None,
        node_pos=node_pos,
        demand=demand,
        release_time=release_time,
        depot_node_ids=[1],
        depot_candidate_stops=stops,
        station_node_ids=station_ids,
        features=int(flags),
        detected_problem_kind=problem_kind_code(flags),
    )

    encoded = json.dumps(instance.model_dump(mode="json"), sort_keys=True, separators=(",", ":")).encode("utf-8")
    scenario_hash = hashlib.sha256(encoded).hexdigest()
    return instance, scenario_hash
