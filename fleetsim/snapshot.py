from __future__ import annotations

"""
File: fleetsim/snapshot.py
Purpose: Point-in-time snapshots of a run in a plain-text line format.
Key responsibilities:
- Capture clock, seed, features, depot, customers, trucks and the event log.
- Write/read the v1 line format; extension lines carry the remaining world fields.
- Restore a World plus event list that an engine can resume from.
Key entrypoints:
- create_snapshot(), dumps(), loads(), write_file(), read_file()
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path

from fleetsim.sim.entities import (
    Customer,
    CustomerStatus,
    DepotCandidateStop,
    DepotCarrier,
    TargetKind,
    TargetRef,
    Truck,
    TruckState,
    World,
)
from fleetsim.sim.events import EventKind, SimEvent
from fleetsim.sim.features import FeatureFlags
from fleetsim.sim.geometry import Vec2

HEADER = "# SNAPSHOT v1"
MISSING = "-"

_KIND_CODES = {TargetKind.DEPOT: "D", TargetKind.CUSTOMER: "C", TargetKind.STATION: "S"}
_CODE_KINDS = {code: kind for kind, code in _KIND_CODES.items()}


class SnapshotFormatError(ValueError):
    """Raised for malformed snapshot text."""

    def __init__(self, line_no: int, message: str) -> None:
        super().__init__(f"line {line_no}: {message}")
        self.line_no = line_no


@dataclass
class Snapshot:
    """A detached copy of a world and its event log."""
    world: World
    events: list[SimEvent] = field(default_factory=list)
    seed: int = 0


def create_snapshot(world: World, events: list[SimEvent], seed: int = 0) -> Snapshot:
    """Copy the world and events so later stepping does not alter the snapshot."""
    return Snapshot(world=copy.deepcopy(world), events=list(events), seed=seed)


def _f(value: float) -> str:
    # repr is the shortest text that parses back to the same float
    return repr(float(value))


def _opt_f(value: float | None) -> str:
    return MISSING if value is None else _f(value)


def encode_target(ref: TargetRef) -> str:
    return f"{_KIND_CODES[ref.kind]}:{ref.id}"


def encode_plan(plan: list[TargetRef]) -> str:
    return "|".join(encode_target(ref) for ref in plan)


def decode_target(raw: str) -> TargetRef:
    code, _, target_id = raw.partition(":")
    kind = _CODE_KINDS.get(code[:1], TargetKind.CUSTOMER)
    return TargetRef(kind, int(target_id))


def decode_plan(raw: str) -> list[TargetRef]:
    return [decode_target(item) for item in raw.split("|") if item.strip() and ":" in item]


def dumps(snapshot: Snapshot) -> str:
    """Serialize a snapshot to text."""
    world = snapshot.world
    depot = world.depot
    lines = [
        HEADER,
        f"time={_f(world.time)}",
        f"seed={snapshot.seed}",
        f"features={int(world.features)}",
        f"depot={_f(depot.pos.x)},{_f(depot.pos.y)},{_f(depot.speed)}",
        f"capacity={world.capacity}",
        f"depot_node={world.depot_node_id}",
        f"energy={_opt_f(world.energy_capacity)},{_opt_f(world.energy_consumption)}",
    ]
    if depot.target_pos is not None:
        lines.append(f"depot_target={depot.target_stop_id},{_f(depot.target_pos.x)},{_f(depot.target_pos.y)}")
    for stop in depot.candidate_stops:
        lines.append(f"stop {stop.stop_id} {_f(stop.pos.x)} {_f(stop.pos.y)}")
    for station_id in world.station_ids:
        pos = world.station_pos.get(station_id)
        coords = f"{_f(pos.x)} {_f(pos.y)}" if pos is not None else f"{MISSING} {MISSING}"
        lines.append(f"station {station_id} {coords}")

    lines.append(f"customers={len(world.customers)}")
    for c in world.customers:
        assigned = c.assigned_truck_id if c.assigned_truck_id is not None else -1
        lines.append(
            f"customer {c.id} {_f(c.pos.x)} {_f(c.pos.y)} {c.demand} {_f(c.release_time)} "
            f"{_f(c.service_time)} {int(c.status)} {assigned}"
        )

    lines.append(f"trucks={len(world.trucks)}")
    for t in world.trucks:
        parts = [
            "truck", str(t.id), _f(t.pos.x), _f(t.pos.y), _f(t.speed), str(t.capacity), str(t.load),
            str(int(t.state)), _f(t.battery), _f(t.battery_capacity), _f(t.energy_consumption),
            str(t.locked_prefix_count), str(t.current_target_index), str(len(t.plan)),
        ]
        if t.plan:
            parts.append(encode_plan(t.plan))
        lines.append(" ".join(parts))
    for t in world.trucks:
        target_x = _f(t.target_pos.x) if t.target_pos is not None else MISSING
        target_y = _f(t.target_pos.y) if t.target_pos is not None else MISSING
        active = encode_target(t.active_target) if t.active_target is not None else MISSING
        lines.append(
            f"leg {t.id} {target_x} {target_y} {t.target_id} {_f(t.service_remaining)} "
            f"{t.servicing_customer_id} {active} {int(t.arrival_signaled)} "
            f"{_f(t.distance_traveled)} {_f(t.energy_used)}"
        )

    lines.append(f"events={len(snapshot.events)}")
    for e in snapshot.events:
        lines.append(f"event {_f(e.time)} {int(e.kind)} {e.a} {e.b}")
    return "\n".join(lines) + "\n"


def _vec_or_none(raw_x: str, raw_y: str) -> Vec2 | None:
    if raw_x == MISSING or raw_y == MISSING:
        return None
    return Vec2(float(raw_x), float(raw_y))


def _parse_line(line: str, state: dict) -> None:
    """Apply one snapshot line to the partially built state. Unknown lines are ignored."""
    key, sep, value = line.partition("=")
    if sep and " " not in key:
        if key == "time":
            state["time"] = float(value)
        elif key == "seed":
            state["seed"] = int(value)
        elif key == "features":
            state["features"] = FeatureFlags(int(value))
        elif key == "depot":
            x, y, speed = value.split(",")[:3]
            state["depot"] = (Vec2(float(x), float(y)), float(speed))
        elif key == "capacity":
            state["capacity"] = int(value)
        elif key == "depot_node":
            state["depot_node_id"] = int(value)
        elif key == "energy":
            cap, cons = value.split(",")[:2]
            state["energy"] = (
                None if cap == MISSING else float(cap),
                None if cons == MISSING else float(cons),
            )
        elif key == "depot_target":
            stop_id, x, y = value.split(",")[:3]
            state["depot_target"] = (int(stop_id), Vec2(float(x), float(y)))
        elif key in ("customers", "trucks", "events"):
            state["counts"][key] = int(value)
        return

    tokens = line.split()
    tag = tokens[0]
    if tag == "stop" and len(tokens) >= 4:
        state["stops"].append(DepotCandidateStop(int(tokens[1]), Vec2(float(tokens[2]), float(tokens[3]))))
    elif tag == "station" and len(tokens) >= 4:
        state["stations"].append((int(tokens[1]), _vec_or_none(tokens[2], tokens[3])))
    elif tag == "customer" and len(tokens) >= 9:
        assigned = int(tokens[8])
        state["customers"].append(
            Customer(
                id=int(tokens[1]),
                pos=Vec2(float(tokens[2]), float(tokens[3])),
                demand=int(tokens[4]),
                release_time=float(tokens[5]),
                service_time=float(tokens[6]),
                status=CustomerStatus(int(tokens[7])),
                assigned_truck_id=assigned if assigned >= 0 else None,
            )
        )
    elif tag == "truck" and len(tokens) >= 14:
        plan_count = int(tokens[13])
        plan = decode_plan(tokens[14]) if plan_count > 0 and len(tokens) > 14 else []
        state["trucks"].append(
            Truck(
                id=int(tokens[1]),
                pos=Vec2(float(tokens[2]), float(tokens[3])),
                speed=float(tokens[4]),
                capacity=int(tokens[5]),
                load=int(tokens[6]),
                state=TruckState(int(tokens[7])),
                battery=float(tokens[8]),
                battery_capacity=float(tokens[9]),
                energy_consumption=float(tokens[10]),
                locked_prefix_count=int(tokens[11]),
                current_target_index=int(tokens[12]),
                plan=plan,
            )
        )
    elif tag == "leg" and len(tokens) >= 11:
        state["legs"][int(tokens[1])] = _parse_leg(tokens[2:])
    elif tag == "event" and len(tokens) >= 5:
        state["events"].append(SimEvent(float(tokens[1]), EventKind(int(tokens[2])), int(tokens[3]), int(tokens[4])))


def _parse_leg(fields: list[str]) -> dict:
    """Convert the fields of a leg line; applied to its truck once all trucks are read."""
    if fields[6] not in ("0", "1"):
        raise ValueError(f"invalid arrival flag {fields[6]!r}")
    return {
        "target_pos": _vec_or_none(fields[0], fields[1]),
        "target_id": int(fields[2]),
        "service_remaining": float(fields[3]),
        "servicing_customer_id": int(fields[4]),
        "active_target": None if fields[5] == MISSING else decode_target(fields[5]),
        "arrival_signaled": fields[6] == "1",
        "distance_traveled": float(fields[7]),
        "energy_used": float(fields[8]),
    }


def _apply_leg(truck: Truck, leg: dict) -> None:
    for name, value in leg.items():
        setattr(truck, name, value)


def loads(text: str) -> Snapshot:
    """Parse snapshot text back into a Snapshot."""
    state: dict = {
        "time": 0.0,
        "seed": 0,
        "features": FeatureFlags.NONE,
        "depot": (Vec2(0.0, 0.0), 0.0),
        "capacity": 0,
        "depot_node_id": 1,
        "energy": (None, None),
        "depot_target": None,
        "stops": [],
        "stations": [],
        "customers": [],
        "trucks": [],
        "legs": {},
        "events": [],
        "counts": {},
    }

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            _parse_line(line, state)
        except ValueError as exc:
            raise SnapshotFormatError(line_no, str(exc)) from exc

    for key in ("customers", "trucks", "events"):
        expected = state["counts"].get(key)
        if expected is not None and expected != len(state[key]):
            raise SnapshotFormatError(0, f"{key}={expected} but {len(state[key])} entries found")

    depot_pos, depot_speed = state["depot"]
    depot = DepotCarrier(pos=depot_pos, speed=depot_speed, candidate_stops=state["stops"])
    if not depot.candidate_stops:
        depot.candidate_stops.append(DepotCandidateStop(1, depot_pos))
    if state["depot_target"] is not None:
        depot.target_stop_id, depot.target_pos = state["depot_target"]

    for truck in state["trucks"]:
        leg = state["legs"].get(truck.id)
        if leg is not None:
            _apply_leg(truck, leg)

    energy_capacity, energy_consumption = state["energy"]
    world = World(
        depot=depot,
        capacity=state["capacity"],
        time=state["time"],
        customers=state["customers"],
        trucks=state["trucks"],
        features=state["features"],
        energy_capacity=energy_capacity,
        energy_consumption=energy_consumption,
        depot_node_id=state["depot_node_id"],
    )
    for station_id, pos in state["stations"]:
        world.station_ids.append(station_id)
        if pos is not None:
            world.station_pos[station_id] = pos

    return Snapshot(world=world, events=state["events"], seed=state["seed"])


def write_file(path: str | Path, snapshot: Snapshot) -> None:
    Path(path).write_text(dumps(snapshot), encoding="utf-8")


def read_file(path: str | Path) -> Snapshot:
    return loads(Path(path).read_text(encoding="utf-8"))
