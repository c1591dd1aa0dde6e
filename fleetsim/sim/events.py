from __future__ import annotations

"""
File: fleetsim/sim/events.py
Purpose: Event records emitted by the simulation and the time-ordered queue holding them.
Key responsibilities:
- Define wire-stable numeric codes for every event kind.
- Keep events sorted by time with stable insertion for equal timestamps.
- Render events as one-line feed entries for logs and consumers.
"""

from bisect import bisect_right
from dataclasses import dataclass
from enum import IntEnum


class EventKind(IntEnum):
    """Event kinds; values are persisted and must not change."""
    CUSTOMER_RELEASED = 0
    TRUCK_ARRIVED = 1
    DEPOT_ARRIVED = 2
    TRUCK_ENERGY_CHANGED = 3
    CUSTOMER_SERVED = 4

    # reserved, no producer yet
    CUSTOMER_INSERTED = 10
    REPLAN_REQUESTED = 11


@dataclass(frozen=True)
class SimEvent:
    """Immutable event record with two kind-specific integer payload slots."""
    time: float
    kind: EventKind
    a: int = 0
    b: int = 0

    def __str__(self) -> str:
        return f"{self.time:.3f} {self.kind.name} (A={self.a}, B={self.b})"


class EventQueue:
    """Ascending-time event list with stable insertion.

    Among events with equal timestamps, the one enqueued first stays first.
    Single writer; not thread-safe.
    """

    def __init__(self) -> None:
        self._events: list[SimEvent] = []
        self._times: list[float] = []

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))

    def enqueue(self, event: SimEvent) -> None:
        """Insert after every queued event whose time is <= event.time."""
        idx = bisect_right(self._times, event.time)
        self._times.insert(idx, event.time)
        self._events.insert(idx, event)

    def peek_earliest(self) -> SimEvent | None:
        """Return the earliest event without removing it, or None when empty."""
        if not self._events:
            return None
        return self._events[0]

    def pop_earliest(self) -> SimEvent | None:
        """Remove and return the earliest event, or None when empty."""
        if not self._events:
            return None
        self._times.pop(0)
        return self._events.pop(0)

    def to_list(self) -> list[SimEvent]:
        """Return an order-preserving copy; the queue is left untouched."""
        return list(self._events)

    def since(self, index: int) -> list[SimEvent]:
        """Return a copy of the events from position index onward."""
        return self._events[max(0, index):]

    def clear(self) -> None:
        self._events.clear()
        self._times.clear()


def format_event(event: SimEvent) -> str:
    """Render an event as a single human-readable feed line."""
    stamp = f"[{event.time:.2f}]"
    kind = event.kind
    if kind == EventKind.CUSTOMER_INSERTED:
        return f"{stamp} CustomerInserted id={event.a} demand={event.b}"
    if kind == EventKind.CUSTOMER_RELEASED:
        return f"{stamp} CustomerReleased id={event.a}"
    if kind == EventKind.TRUCK_ARRIVED:
        return f"{stamp} TruckArrived truck={event.a} target={event.b}"
    if kind == EventKind.CUSTOMER_SERVED:
        return f"{stamp} CustomerServed truck={event.a} customer={event.b}"
    if kind == EventKind.DEPOT_ARRIVED:
        return f"{stamp} DepotArrived stop={event.a}"
    if kind == EventKind.TRUCK_ENERGY_CHANGED:
        return f"{stamp} TruckEnergyChanged truck={event.a} battery={event.b}"
    return f"{stamp} {kind.name} (A={event.a}, B={event.b})"
