from __future__ import annotations

"""
File: fleetsim/sim/metrics.py
Purpose: Compute aggregate run statistics from world state.
Key responsibilities:
- Customer counts per status and served rate.
- Fleet distance, energy and delivered load totals.
"""

from fleetsim.sim.entities import CustomerStatus, TruckState, World


def compute_metrics(world: World) -> dict[str, float | int]:
    """Compute run-level statistics used by the API and logs."""
    counts = {status: 0 for status in CustomerStatus}
    for customer in world.customers:
        counts[customer.status] += 1

    total_customers = len(world.customers)
    served = counts[CustomerStatus.SERVED]
    served_rate = (served / total_customers * 100.0) if total_customers else 0.0

    total_distance = sum(t.distance_traveled for t in world.trucks)
    total_energy = sum(t.energy_used for t in world.trucks)
    total_load = sum(t.load for t in world.trucks)
    busy_trucks = sum(1 for t in world.trucks if t.state != TruckState.IDLE)

    return {
        "time": round(world.time, 6),
        "total_customers": total_customers,
        "unreleased": counts[CustomerStatus.UNRELEASED],
        "waiting": counts[CustomerStatus.WAITING],
        "in_service": counts[CustomerStatus.IN_SERVICE],
        "served": served,
        "served_rate": round(served_rate, 6),
        "total_distance": round(total_distance, 6),
        "total_energy": round(total_energy, 6),
        "total_load": total_load,
        "busy_trucks": busy_trucks,
        "total_trucks": len(world.trucks),
    }
