from __future__ import annotations

"""
File: fleetsim/instance.py
Purpose: Parse TSPLIB-style instance files into a ProblemInstance.
Key responsibilities:
- Read headers and node/demand/depot/release/stop/station sections.
- Fill defaults for missing node data and depot stops.
- Detect problem features from content rather than the TYPE header.
Key entrypoints:
- parse_instance_text(), parse_instance_file()
"""

from dataclasses import dataclass, field
from pathlib import Path

from fleetsim.schemas import DepotStopSpec, ProblemInstance
from fleetsim.sim.features import FeatureFlags, problem_kind_code

NODE_COORD_SECTION = "NODE_COORD_SECTION"
DEMAND_SECTION = "DEMAND_SECTION"
DEPOT_SECTION = "DEPOT_SECTION"
RELEASE_TIME_SECTION = "RELEASE_TIME_SECTION"
DEPOT_STOP_SECTION = "DEPOT_STOP_SECTION"
DEPOT_CANDIDATE_STOP_SECTION = "DEPOT_CANDIDATE_STOP_SECTION"
# EVRP files usually list only station node ids here; coords live in NODE_COORD_SECTION
STATIONS_COORD_SECTION = "STATIONS_COORD_SECTION"
EOF_MARKER = "EOF"

SECTIONS = {
    NODE_COORD_SECTION,
    DEMAND_SECTION,
    DEPOT_SECTION,
    RELEASE_TIME_SECTION,
    DEPOT_STOP_SECTION,
    DEPOT_CANDIDATE_STOP_SECTION,
    STATIONS_COORD_SECTION,
    EOF_MARKER,
}
STOP_SECTIONS = {DEPOT_STOP_SECTION, DEPOT_CANDIDATE_STOP_SECTION}
ENERGY_HEADERS = {"ENERGY_CAPACITY", "ENERGY_CONSUMPTION"}


class InstanceFormatError(ValueError):
    """Raised when an instance file contains an unparsable value."""


@dataclass
class _ParseState:
    headers: dict[str, str] = field(default_factory=dict)
    coords: dict[int, tuple[float, float]] = field(default_factory=dict)
    demands: dict[int, int] = field(default_factory=dict)
    release_times: dict[int, float] = field(default_factory=dict)
    depot_ids: list[int] = field(default_factory=list)
    stops: list[DepotStopSpec] = field(default_factory=list)
    station_ids: list[int] = field(default_factory=list)
    seen_sections: set[str] = field(default_factory=set)


def _float(raw: str, line_no: int) -> float:
    try:
        return float(raw)
    except ValueError:
        raise InstanceFormatError(f"line {line_no}: invalid number {raw!r}") from None


def _node_id(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _parse_section_line(state: _ParseState, section: str, tokens: list[str], line_no: int) -> bool:
    """Consume one line of a section. Returns False when the line ends the section."""
    if tokens[0] == "-1" and section != NODE_COORD_SECTION and section != DEMAND_SECTION:
        return False

    node_id = _node_id(tokens[0])
    if node_id is None:
        return True

    if section == NODE_COORD_SECTION and len(tokens) >= 3:
        state.coords[node_id] = (_float(tokens[1], line_no), _float(tokens[2], line_no))
    elif section == DEMAND_SECTION and len(tokens) >= 2:
        state.demands[node_id] = int(_float(tokens[1], line_no))
    elif section == RELEASE_TIME_SECTION and len(tokens) >= 2:
        state.release_times[node_id] = _float(tokens[1], line_no)
    elif section in STOP_SECTIONS and len(tokens) >= 3:
        state.stops.append(
            DepotStopSpec(stop_id=node_id, x=_float(tokens[1], line_no), y=_float(tokens[2], line_no))
        )
    elif section == STATIONS_COORD_SECTION:
        state.station_ids.append(node_id)
    elif section == DEPOT_SECTION:
        state.depot_ids.append(node_id)
    return True


def _header_value(state: _ParseState, key: str, line_no: int, cast=float):
    raw = state.headers.get(key)
    if raw is None:
        return None
    return cast(_float(raw, line_no))


def parse_instance_text(text: str) -> ProblemInstance:
    """Parse instance text into a ProblemInstance with detected features."""
    state = _ParseState()
    section = ""
    header_lines: dict[str, int] = {}

    for line_no, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue

        upper = line.upper()
        if upper in SECTIONS:
            section = upper
            if section == EOF_MARKER:
                break
            state.seen_sections.add(section)
            continue

        if section:
            if not _parse_section_line(state, section, line.split(), line_no):
                section = ""
            continue

        if ":" in line:
            key, value = line.split(":", 1)
            key = key.strip().upper()
            if key:
                state.headers[key] = value.strip()
                header_lines[key] = line_no

    return _build_instance(state, header_lines)


def parse_instance_file(path: str | Path) -> ProblemInstance:
    return parse_instance_text(Path(path).read_text(encoding="utf-8"))


def _build_instance(state: _ParseState, header_lines: dict[str, int]) -> ProblemInstance:
    def number(key: str, cast=float):
        return _header_value(state, key, header_lines.get(key, 0), cast)

    dimension = number("DIMENSION", int) or 0
    if dimension <= 0 and state.coords:
        dimension = max(state.coords)

    node_pos = {i: state.coords.get(i, (0.0, 0.0)) for i in range(1, dimension + 1)}
    demand = {i: state.demands.get(i, 0) for i in range(1, dimension + 1)}
    release_time = {i: state.release_times.get(i, 0.0) for i in range(1, dimension + 1)}
    depot_ids = state.depot_ids or [1]

    stops = list(state.stops)
    if not stops:
        x, y = node_pos.get(depot_ids[0], (0.0, 0.0))
        stops.append(DepotStopSpec(stop_id=1, x=x, y=y))

    instance = ProblemInstance(
        name=state.headers.get("NAME", ""),
        comment=state.headers.get("COMMENT", ""),
        type=state.headers.get("TYPE", ""),
        dimension=dimension,
        capacity=number("CAPACITY", int) or 0,
        edge_weight_type=state.headers.get("EDGE_WEIGHT_TYPE", ""),
        truck_speed=number("TRUCK_SPEED") if "TRUCK_SPEED" in state.headers else 1.0,
        depot_speed=number("DEPOT_SPEED") if "DEPOT_SPEED" in state.headers else 0.0,
        service_time=number("SERVICE_TIME") if "SERVICE_TIME" in state.headers else 1.0,
        energy_capacity=number("ENERGY_CAPACITY"),
        energy_consumption=number("ENERGY_CONSUMPTION"),
        station_count_header=number("STATIONS", int),
        vehicles_header=number("VEHICLES", int),
        node_pos=node_pos,
        demand=demand,
        release_time=release_time,
        depot_node_ids=depot_ids,
        depot_candidate_stops=stops,
        station_node_ids=state.station_ids,
    )
    flags = detect_features(
        instance,
        saw_demand_section=DEMAND_SECTION in state.seen_sections,
        saw_release_section=RELEASE_TIME_SECTION in state.seen_sections,
        saw_depot_stop_section=bool(STOP_SECTIONS & state.seen_sections),
        saw_stations_section=STATIONS_COORD_SECTION in state.seen_sections,
        saw_energy_header=bool(ENERGY_HEADERS & state.headers.keys()),
    )
    instance.features = int(flags)
    instance.detected_problem_kind = problem_kind_code(flags)
    return instance


def detect_features(
    instance: ProblemInstance,
    saw_demand_section: bool = False,
    saw_release_section: bool = False,
    saw_depot_stop_section: bool = False,
    saw_stations_section: bool = False,
    saw_energy_header: bool = False,
) -> FeatureFlags:
    """Detect features from content; the TYPE header is not trusted."""
    flags = FeatureFlags.NONE

    any_demand = any(d != 0 for d in instance.demand.values())
    if instance.capacity > 0 and (saw_demand_section or any_demand):
        flags |= FeatureFlags.CAPACITATED

    if saw_release_section or any(r > 0 for r in instance.release_time.values()):
        flags |= FeatureFlags.DYNAMIC

    many_stops = len(instance.depot_candidate_stops) > 1
    if instance.depot_speed > 0 and (saw_depot_stop_section or many_stops):
        flags |= FeatureFlags.MOVING_DEPOT

    has_stations = saw_stations_section or bool(instance.station_node_ids)
    has_energy = (
        saw_energy_header
        or instance.energy_capacity is not None
        or instance.energy_consumption is not None
    )
    if has_stations or has_energy:
        flags |= FeatureFlags.ELECTRIC

    return flags
