import pytest

from fleetsim.instance import InstanceFormatError, parse_instance_file, parse_instance_text
from fleetsim.sim.entities import CustomerStatus
from fleetsim.sim.features import FeatureFlags
from fleetsim.sim.geometry import Vec2
from fleetsim.sim.world import build_world

CVRP_TEXT = """\
NAME : sample
COMMENT : four nodes
TYPE : CVRP
DIMENSION : 4
CAPACITY : 10
EDGE_WEIGHT_TYPE : EUC_2D
NODE_COORD_SECTION
1 0 0
2 3 4
3 6 8
4 1 1
DEMAND_SECTION
1 0
2 3
3 4
4 0
DEPOT_SECTION
1
-1
EOF
"""

EVRP_TEXT = """\
NAME: e-sample
TYPE: EVRP
CAPACITY: 10
ENERGY_CAPACITY: 50
ENERGY_CONSUMPTION: 1.5
STATIONS: 1
NODE_COORD_SECTION
1 0 0
2 3 4
3 6 8
4 1 1
DEMAND_SECTION
2 3
3 4
STATIONS_COORD_SECTION
4
-1
EOF
"""

DYNAMIC_MOVING_TEXT = """\
# dynamic run with a mobile depot
NAME: dm-sample
CAPACITY: 10
DEPOT_SPEED: 0.5
SERVICE_TIME: 2
NODE_COORD_SECTION
1 0 0   # depot
2 5 0
3 0 5
DEMAND_SECTION
2 1
3 1
RELEASE_TIME_SECTION
2 5.0
-1
DEPOT_STOP_SECTION
1 0 0
2 10 0
-1
EOF
"""


def test_parse_cvrp_headers_and_sections():
    instance = parse_instance_text(CVRP_TEXT)

    assert instance.name == "sample"
    assert instance.comment == "four nodes"
    assert instance.type == "CVRP"
    assert instance.dimension == 4
    assert instance.capacity == 10
    assert instance.edge_weight_type == "EUC_2D"
    assert instance.node_pos[3] == (6.0, 8.0)
    assert instance.demand == {1: 0, 2: 3, 3: 4, 4: 0}
    assert instance.depot_node_ids == [1]
    assert [(s.stop_id, s.x, s.y) for s in instance.depot_candidate_stops] == [(1, 0.0, 0.0)]
    assert instance.features == int(FeatureFlags.CAPACITATED)
    assert instance.detected_problem_kind == "C"


def test_cvrp_world_has_waiting_customers_excluding_depot():
    world = build_world(parse_instance_text(CVRP_TEXT))

    assert [c.id for c in world.customers] == [2, 3, 4]
    assert all(c.status == CustomerStatus.WAITING for c in world.customers)
    assert world.depot.pos == Vec2(0.0, 0.0)
    assert world.capacity == 10
    assert world.trucks == []


def test_parse_evrp_detects_electric_and_stations():
    instance = parse_instance_text(EVRP_TEXT)

    assert instance.dimension == 4
    assert instance.energy_capacity == 50.0
    assert instance.energy_consumption == 1.5
    assert instance.station_count_header == 1
    assert instance.station_node_ids == [4]
    assert instance.detected_problem_kind == "CE"

    world = build_world(instance)
    assert [c.id for c in world.customers] == [2, 3]
    assert world.station_ids == [4]
    assert world.station_pos[4] == Vec2(1.0, 1.0)
    assert world.features & FeatureFlags.ELECTRIC


def test_parse_dynamic_moving_depot_with_comments():
    instance = parse_instance_text(DYNAMIC_MOVING_TEXT)

    assert instance.dimension == 3
    assert instance.release_time[2] == 5.0
    assert instance.service_time == 2.0
    assert len(instance.depot_candidate_stops) == 2
    assert instance.detected_problem_kind == "CDM"

    world = build_world(instance)
    by_id = {c.id: c for c in world.customers}
    assert by_id[2].status == CustomerStatus.UNRELEASED
    assert by_id[3].status == CustomerStatus.WAITING
    assert by_id[2].service_time == 2.0
    assert world.depot.speed == 0.5
    assert world.depot.find_stop(2).pos == Vec2(10.0, 0.0)


def test_uncapacitated_without_capacity_header():
    instance = parse_instance_text("NODE_COORD_SECTION\n1 0 0\n2 1 1\nEOF\n")
    assert instance.detected_problem_kind == "U"
    assert instance.features == 0


def test_invalid_number_raises():
    with pytest.raises(InstanceFormatError) as excinfo:
        parse_instance_text("NODE_COORD_SECTION\n1 abc 0\nEOF\n")
    assert "line 2" in str(excinfo.value)


def test_parse_instance_file(tmp_path):
    path = tmp_path / "sample.vrp"
    path.write_text(CVRP_TEXT, encoding="utf-8")
    assert parse_instance_file(path).name == "sample"
