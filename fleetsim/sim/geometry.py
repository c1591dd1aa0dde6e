from __future__ import annotations

"""
File: fleetsim/sim/geometry.py
Purpose: 2D coordinates and straight-line steering.
"""

from dataclasses import dataclass
from math import hypot

ZERO_DISTANCE = 1e-9


@dataclass(frozen=True)
class Vec2:
    """Immutable 2D point/vector."""
    x: float
    y: float

    def __add__(self, other: Vec2) -> Vec2:
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vec2) -> Vec2:
        return Vec2(self.x - other.x, self.y - other.y)

    @property
    def sqr_magnitude(self) -> float:
        return self.x * self.x + self.y * self.y

    @property
    def magnitude(self) -> float:
        return hypot(self.x, self.y)

    def distance_to(self, other: Vec2) -> float:
        return hypot(self.x - other.x, self.y - other.y)

    @staticmethod
    def distance(a: Vec2, b: Vec2) -> float:
        return a.distance_to(b)


def move_toward(start: Vec2, target: Vec2, max_dist: float) -> Vec2:
    """Step from start toward target by at most max_dist, never overshooting."""
    delta = target - start
    dist = delta.magnitude
    if dist <= ZERO_DISTANCE or dist <= max_dist:
        return target
    ratio = max_dist / dist
    return Vec2(start.x + delta.x * ratio, start.y + delta.y * ratio)
