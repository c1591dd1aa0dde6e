from __future__ import annotations

"""
File: fleetsim/sim/diagnostics.py
Purpose: Consistency pass run after each step when diagnostics are enabled.
Key responsibilities:
- Load, battery and plan cursor bounds plus servicing bookkeeping per truck.
- Exactly one servicing truck for every customer in service.
"""

from collections import Counter

from fleetsim.sim.entities import CustomerStatus, TruckState, World


class InvariantViolation(AssertionError):
    """Raised when the world is internally inconsistent (a bug, not a user error)."""

    def __init__(self, violations: list[str]) -> None:
        super().__init__("; ".join(violations))
        self.violations = violations


def find_violations(world: World) -> list[str]:
    """Return a description of every invariant the world currently breaks."""
    violations: list[str] = []
    servicers: Counter[int] = Counter()

    for truck in world.trucks:
        if truck.capacity > 0 and not 0 <= truck.load <= truck.capacity:
            violations.append(f"truck={truck.id} load={truck.load} outside [0, {truck.capacity}]")
        if not 0 <= truck.battery <= truck.battery_capacity:
            violations.append(
                f"truck={truck.id} battery={truck.battery} outside [0, {truck.battery_capacity}]"
            )
        if truck.state == TruckState.SERVICING:
            if truck.servicing_customer_id < 0:
                violations.append(f"truck={truck.id} servicing without a customer")
            else:
                servicers[truck.servicing_customer_id] += 1
        if not 0 <= truck.current_target_index <= len(truck.plan):
            violations.append(
                f"truck={truck.id} target index={truck.current_target_index} outside [0, {len(truck.plan)}]"
            )

    for customer in world.customers:
        count = servicers.get(customer.id, 0)
        if customer.status == CustomerStatus.IN_SERVICE and count != 1:
            violations.append(f"customer={customer.id} in service by {count} trucks")
        elif customer.status != CustomerStatus.IN_SERVICE and count:
            violations.append(f"customer={customer.id} status={customer.status.name} but {count} trucks servicing")

    return violations


def check_invariants(world: World) -> None:
    """Raise InvariantViolation if any invariant is broken."""
    violations = find_violations(world)
    if violations:
        raise InvariantViolation(violations)
