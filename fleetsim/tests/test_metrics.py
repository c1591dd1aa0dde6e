from fleetsim.sim.entities import Customer, CustomerStatus, DepotCarrier, Truck, TruckState, World
from fleetsim.sim.geometry import Vec2
from fleetsim.sim.metrics import compute_metrics


def test_compute_metrics_counts_and_totals():
    customers = [
        Customer(id=2, pos=Vec2(0, 0), demand=1, release_time=0, status=CustomerStatus.SERVED),
        Customer(id=3, pos=Vec2(0, 0), demand=1, release_time=0, status=CustomerStatus.SERVED),
        Customer(id=4, pos=Vec2(0, 0), demand=1, release_time=0, status=CustomerStatus.WAITING),
        Customer(id=5, pos=Vec2(0, 0), demand=1, release_time=9, status=CustomerStatus.UNRELEASED),
    ]
    trucks = [
        Truck(id=1, pos=Vec2(0, 0), capacity=5, speed=1, load=2, distance_traveled=4.5, energy_used=1.5),
        Truck(id=2, pos=Vec2(0, 0), capacity=5, speed=1, state=TruckState.TRAVELING, distance_traveled=0.5),
    ]
    world = World(depot=DepotCarrier(pos=Vec2(0, 0)), time=12.0, customers=customers, trucks=trucks)

    metrics = compute_metrics(world)

    assert metrics == {
        "time": 12.0,
        "total_customers": 4,
        "unreleased": 1,
        "waiting": 1,
        "in_service": 0,
        "served": 2,
        "served_rate": 50.0,
        "total_distance": 5.0,
        "total_energy": 1.5,
        "total_load": 2,
        "busy_trucks": 1,
        "total_trucks": 2,
    }


def test_compute_metrics_empty_world():
    metrics = compute_metrics(World(depot=DepotCarrier(pos=Vec2(0, 0))))
    assert metrics["served_rate"] == 0.0
    assert metrics["total_customers"] == 0
