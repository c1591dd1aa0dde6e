from __future__ import annotations

"""
File: fleetsim/sim/entities.py
Purpose: Core dataclasses and enums for simulation state.
Key responsibilities:
- Customers, trucks and the depot carrier mutated by the engine.
- Tagged routing targets resolved lazily against the live world.
- World container with id lookups.
"""

from dataclasses import dataclass, field
from enum import IntEnum

from fleetsim.sim.features import FeatureFlags
from fleetsim.sim.geometry import Vec2


class CustomerStatus(IntEnum):
    """Customer lifecycle; only ever advances in this order."""
    UNRELEASED = 0
    WAITING = 1
    IN_SERVICE = 2
    SERVED = 3


class TruckState(IntEnum):
    IDLE = 0
    TRAVELING = 1
    SERVICING = 2
    # declared for future charging stops; no transition enters it yet
    CHARGING = 3


class TargetKind(IntEnum):
    DEPOT = 0
    CUSTOMER = 1
    STATION = 2


@dataclass(frozen=True)
class TargetRef:
    """Routing waypoint reference; equality is by (kind, id)."""
    kind: TargetKind
    id: int

    @classmethod
    def depot(cls, target_id: int = 1) -> TargetRef:
        return cls(TargetKind.DEPOT, target_id)

    @classmethod
    def customer(cls, target_id: int) -> TargetRef:
        return cls(TargetKind.CUSTOMER, target_id)

    @classmethod
    def station(cls, target_id: int) -> TargetRef:
        return cls(TargetKind.STATION, target_id)

    def __str__(self) -> str:
        return f"{self.kind.name.title()}:{self.id}"


@dataclass
class Customer:
    """Customer request tracked by the simulation engine."""
    id: int
    pos: Vec2
    demand: int
    release_time: float
    service_time: float = 1.0
    status: CustomerStatus = CustomerStatus.UNRELEASED
    assigned_truck_id: int | None = None


@dataclass(frozen=True)
class DepotCandidateStop:
    """Rendezvous point the mobile depot may be sent to."""
    stop_id: int
    pos: Vec2


@dataclass
class DepotCarrier:
    """The single depot; stationary unless the moving-depot feature is on."""
    pos: Vec2
    speed: float = 0.0
    candidate_stops: list[DepotCandidateStop] = field(default_factory=list)
    target_pos: Vec2 | None = None
    target_stop_id: int = -1

    def find_stop(self, stop_id: int) -> DepotCandidateStop | None:
        for stop in self.candidate_stops:
            if stop.stop_id == stop_id:
                return stop
        return None

    def command_to_stop(self, stop_id: int) -> bool:
        """Set the movement target to a candidate stop. Returns False for unknown stops."""
        stop = self.find_stop(stop_id)
        if stop is None:
            return False
        self.target_pos = stop.pos
        self.target_stop_id = stop.stop_id
        return True

    def clear_target(self) -> None:
        self.target_pos = None
        self.target_stop_id = -1


@dataclass
class Truck:
    """Truck state; the leg fields below `state` are owned by the engine."""
    id: int
    pos: Vec2
    capacity: int
    speed: float
    battery_capacity: float = 0.0
    battery: float = 0.0
    energy_consumption: float = 0.0
    load: int = 0
    plan: list[TargetRef] = field(default_factory=list)
    locked_prefix_count: int = 0
    current_target_index: int = 0
    state: TruckState = TruckState.IDLE
    target_pos: Vec2 | None = None
    target_id: int = -1
    service_remaining: float = 0.0
    servicing_customer_id: int = -1
    active_target: TargetRef | None = None
    arrival_signaled: bool = False
    distance_traveled: float = 0.0
    energy_used: float = 0.0

    @property
    def plan_exhausted(self) -> bool:
        return self.current_target_index >= len(self.plan)

    def clear_leg(self) -> None:
        """Forget the leg in progress (resolved target, active ref and debounce flag)."""
        self.target_pos = None
        self.target_id = -1
        self.active_target = None
        self.arrival_signaled = False


@dataclass
class World:
    """Container for all simulation entities; mutated in place every tick."""
    depot: DepotCarrier
    capacity: int = 0
    time: float = 0.0
    customers: list[Customer] = field(default_factory=list)
    trucks: list[Truck] = field(default_factory=list)
    features: FeatureFlags = FeatureFlags.NONE
    energy_capacity: float | None = None
    energy_consumption: float | None = None
    station_ids: list[int] = field(default_factory=list)
    station_pos: dict[int, Vec2] = field(default_factory=dict)
    depot_node_id: int = 1
    _customer_index: dict[int, int] = field(default_factory=dict, init=False, repr=False, compare=False)
    _truck_index: dict[int, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def find_customer(self, customer_id: int) -> Customer | None:
        customer = _lookup(self.customers, self._customer_index, customer_id)
        if customer is None:
            self._customer_index = _positions(self.customers)
            customer = _lookup(self.customers, self._customer_index, customer_id)
        return customer

    def find_truck(self, truck_id: int) -> Truck | None:
        truck = _lookup(self.trucks, self._truck_index, truck_id)
        if truck is None:
            self._truck_index = _positions(self.trucks)
            truck = _lookup(self.trucks, self._truck_index, truck_id)
        return truck

    def next_customer_id(self) -> int:
        """Smallest id above every customer, station and depot-node id in use."""
        used = [c.id for c in self.customers] + list(self.station_ids) + [self.depot_node_id]
        return max(used) + 1


def _positions(items) -> dict[int, int]:
    return {item.id: pos for pos, item in enumerate(items)}


def _lookup(items, index: dict[int, int], item_id: int):
    """Return items[index[item_id]] if that slot still holds item_id; lists are mutated externally."""
    pos = index.get(item_id)
    if pos is None or pos >= len(items) or items[pos].id != item_id:
        return None
    return items[pos]


def resolve_target(world: World, target: TargetRef) -> Vec2 | None:
    """Resolve a routing target to its current position, or None if it does not exist."""
    if target.kind == TargetKind.DEPOT:
        return world.depot.pos
    if target.kind == TargetKind.CUSTOMER:
        customer = world.find_customer(target.id)
        return customer.pos if customer is not None else None
    if target.kind == TargetKind.STATION:
        return world.station_pos.get(target.id)
    return None
