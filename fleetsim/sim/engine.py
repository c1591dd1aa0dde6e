from __future__ import annotations

"""
File: fleetsim/sim/engine.py
Purpose: Deterministic stepping engine for the depot, trucks and customers.
Key responsibilities:
- Advance the clock and release customers whose release time has passed.
- Move the mobile depot toward its commanded stop.
- Drive each truck through its plan: travel, arrive once per leg, service, advance.
- Drain batteries and report energy when the electric feature is on.
- Append every observable transition to the event queue.
"""

import logging
from typing import TYPE_CHECKING

from fleetsim.sim.diagnostics import check_invariants
from fleetsim.sim.entities import (
    Customer,
    CustomerStatus,
    TargetKind,
    Truck,
    TruckState,
    World,
    resolve_target,
)
from fleetsim.sim.events import EventKind, EventQueue, SimEvent
from fleetsim.sim.features import FeatureFlags
from fleetsim.sim.geometry import move_toward

if TYPE_CHECKING:
    from fleetsim.snapshot import Snapshot

logger = logging.getLogger("fleet-sim.engine")

DEFAULT_ARRIVE_EPSILON = 0.1


class SimulationEngine:
    """Simulation engine that owns a world and advances it per step."""
    def __init__(
        self,
        world: World,
        arrive_epsilon: float = DEFAULT_ARRIVE_EPSILON,
        diagnostics: bool = False,
        queue: EventQueue | None = None,
    ) -> None:
        """Initialize the engine; the world is mutated in place by step()."""
        self.world = world
        self.queue = queue if queue is not None else EventQueue()
        self.arrive_epsilon = arrive_epsilon
        self.diagnostics = diagnostics

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Snapshot,
        arrive_epsilon: float = DEFAULT_ARRIVE_EPSILON,
        diagnostics: bool = False,
    ) -> SimulationEngine:
        """Resume from a restored world and event log."""
        queue = EventQueue()
        for event in snapshot.events:
            queue.enqueue(event)
        return cls(snapshot.world, arrive_epsilon=arrive_epsilon, diagnostics=diagnostics, queue=queue)

    @property
    def time(self) -> float:
        return self.world.time

    def step(self, dt: float) -> None:
        """Advance the simulation by dt. Non-positive dt is a no-op."""
        if dt <= 0:
            return

        world = self.world
        world.time += dt

        self._release_customers()

        if world.features & FeatureFlags.MOVING_DEPOT:
            self._move_depot(dt)

        for truck in world.trucks:
            self._advance_truck(truck, dt)

        if self.diagnostics:
            check_invariants(world)

    def all_customers_served(self) -> bool:
        return all(c.status == CustomerStatus.SERVED for c in self.world.customers)

    def plans_exhausted(self) -> bool:
        """True when no truck has remaining work (plan consumed and not servicing)."""
        return all(
            t.plan_exhausted and t.state != TruckState.SERVICING
            for t in self.world.trucks
        )

    def should_stop(self) -> bool:
        return self.all_customers_served() or self.plans_exhausted()

    def snapshot(self) -> dict:
        """Return a JSON-friendly view of the current world."""
        world = self.world
        depot = world.depot
        return {
            "time": world.time,
            "features": int(world.features),
            "capacity": world.capacity,
            "depot": {
                "x": depot.pos.x,
                "y": depot.pos.y,
                "speed": depot.speed,
                "target_stop_id": depot.target_stop_id,
                "candidate_stops": [
                    {"stop_id": s.stop_id, "x": s.pos.x, "y": s.pos.y}
                    for s in depot.candidate_stops
                ],
            },
            "customers": [
                {
                    "id": c.id,
                    "x": c.pos.x,
                    "y": c.pos.y,
                    "demand": c.demand,
                    "release_time": c.release_time,
                    "service_time": c.service_time,
                    "status": c.status.name.lower(),
                    "assigned_truck_id": c.assigned_truck_id,
                }
                for c in world.customers
            ],
            "trucks": [
                {
                    "id": t.id,
                    "x": t.pos.x,
                    "y": t.pos.y,
                    "speed": t.speed,
                    "capacity": t.capacity,
                    "load": t.load,
                    "state": t.state.name.lower(),
                    "battery": t.battery,
                    "battery_capacity": t.battery_capacity,
                    "current_target_index": t.current_target_index,
                    "locked_prefix_count": t.locked_prefix_count,
                    "plan": [str(ref) for ref in t.plan],
                    "distance_traveled": t.distance_traveled,
                    "energy_used": t.energy_used,
                }
                for t in world.trucks
            ],
            "event_count": len(self.queue),
        }

    def _emit(self, kind: EventKind, a: int = 0, b: int = 0) -> None:
        self.queue.enqueue(SimEvent(self.world.time, kind, a, b))

    def _release_customers(self) -> None:
        now = self.world.time
        for customer in self.world.customers:
            if customer.status == CustomerStatus.UNRELEASED and customer.release_time <= now:
                customer.status = CustomerStatus.WAITING
                self._emit(EventKind.CUSTOMER_RELEASED, customer.id)

    def _move_depot(self, dt: float) -> None:
        depot = self.world.depot
        if depot.target_pos is None:
            return

        target = depot.target_pos
        depot.pos = move_toward(depot.pos, target, depot.speed * dt)

        if depot.pos.distance_to(target) <= self.arrive_epsilon:
            depot.pos = target
            self._emit(EventKind.DEPOT_ARRIVED, depot.target_stop_id)
            depot.clear_target()

    def _advance_truck(self, truck: Truck, dt: float) -> None:
        """Advance a single truck for the current tick."""
        if truck.state == TruckState.SERVICING:
            truck.service_remaining -= dt
            if truck.service_remaining <= 0:
                self._complete_service(truck)
            return

        if not self._resolve_leg(truck):
            return

        target = truck.target_pos
        is_customer_leg = truck.active_target.kind == TargetKind.CUSTOMER

        # Already on top of the customer; no move needed this tick.
        if is_customer_leg and truck.pos.distance_to(target) <= self.arrive_epsilon:
            self._signal_arrival(truck)
            self._handle_customer_arrival(truck)
            return

        self._move_truck(truck, dt)

        if truck.pos.distance_to(target) > self.arrive_epsilon:
            return

        truck.pos = target
        self._signal_arrival(truck)
        if is_customer_leg:
            self._handle_customer_arrival(truck)
        else:
            self._advance_plan(truck)

    def _resolve_leg(self, truck: Truck) -> bool:
        """Resolve plan[current_target_index] against the live world.

        Returns False (truck idle this tick) when the plan is exhausted or the
        target cannot be resolved.
        """
        if truck.plan_exhausted:
            if truck.active_target is not None:
                truck.clear_leg()
            truck.state = TruckState.IDLE
            return False

        ref = truck.plan[truck.current_target_index]
        if ref != truck.active_target:
            truck.active_target = ref
            truck.arrival_signaled = False

        pos = resolve_target(self.world, ref)
        if pos is None:
            truck.target_pos = None
            truck.target_id = -1
            truck.state = TruckState.IDLE
            return False

        truck.target_pos = pos
        truck.target_id = ref.id
        truck.state = TruckState.TRAVELING
        return True

    def _move_truck(self, truck: Truck, dt: float) -> None:
        start = truck.pos
        truck.pos = move_toward(start, truck.target_pos, truck.speed * dt)
        moved = start.distance_to(truck.pos)
        if moved <= 0:
            return
        truck.distance_traveled += moved

        if self.world.features & FeatureFlags.ELECTRIC and truck.energy_consumption > 0:
            before = truck.battery
            truck.battery = max(0.0, before - moved * truck.energy_consumption)
            truck.energy_used += before - truck.battery
            self._emit(EventKind.TRUCK_ENERGY_CHANGED, truck.id, int(round(truck.battery)))

    def _signal_arrival(self, truck: Truck) -> None:
        """Emit TruckArrived once per active target."""
        if truck.arrival_signaled:
            return
        self._emit(EventKind.TRUCK_ARRIVED, truck.id, truck.target_id)
        truck.arrival_signaled = True

    def _handle_customer_arrival(self, truck: Truck) -> None:
        customer = self.world.find_customer(truck.active_target.id)
        if customer is None:
            logger.warning(
                "truck=%s arrived at unknown customer=%s t=%.3f",
                truck.id,
                truck.active_target.id,
                self.world.time,
            )
            return

        if customer.status == CustomerStatus.UNRELEASED:
            logger.warning(
                "truck=%s visited customer=%s before release t=%.3f release=%.3f",
                truck.id,
                customer.id,
                self.world.time,
                customer.release_time,
            )
            truck.state = TruckState.IDLE
            return

        if customer.status == CustomerStatus.SERVED:
            logger.warning(
                "truck=%s revisited already-served customer=%s t=%.3f",
                truck.id,
                customer.id,
                self.world.time,
            )
            self._advance_plan(truck)
            return

        if customer.status != CustomerStatus.WAITING:
            logger.warning(
                "truck=%s found customer=%s in status=%s t=%.3f",
                truck.id,
                customer.id,
                customer.status.name,
                self.world.time,
            )
            return

        self._start_service(truck, customer)

    def _start_service(self, truck: Truck, customer: Customer) -> None:
        customer.status = CustomerStatus.IN_SERVICE
        customer.assigned_truck_id = truck.id
        truck.state = TruckState.SERVICING
        truck.servicing_customer_id = customer.id
        truck.service_remaining = customer.service_time
        if customer.service_time <= 0:
            self._complete_service(truck)

    def _complete_service(self, truck: Truck) -> None:
        customer = self.world.find_customer(truck.servicing_customer_id)
        if customer is None or customer.status != CustomerStatus.IN_SERVICE:
            logger.warning(
                "truck=%s cannot complete service of customer=%s status=%s t=%.3f",
                truck.id,
                truck.servicing_customer_id,
                customer.status.name if customer is not None else "missing",
                self.world.time,
            )
            return

        customer.status = CustomerStatus.SERVED
        truck.load += customer.demand
        if truck.capacity > 0 and truck.load > truck.capacity:
            logger.warning(
                "truck=%s over capacity load=%s capacity=%s after customer=%s",
                truck.id,
                truck.load,
                truck.capacity,
                customer.id,
            )
        self._emit(EventKind.CUSTOMER_SERVED, truck.id, customer.id)

        truck.servicing_customer_id = -1
        truck.service_remaining = 0.0
        self._advance_plan(truck)

    @staticmethod
    def _advance_plan(truck: Truck) -> None:
        truck.current_target_index += 1
        truck.clear_leg()
        truck.state = TruckState.IDLE
