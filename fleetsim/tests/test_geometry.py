import pytest

from fleetsim.sim.geometry import Vec2, move_toward


def test_vector_ops():
    a = Vec2(1.0, 2.0)
    b = Vec2(4.0, 6.0)
    assert a + b == Vec2(5.0, 8.0)
    assert b - a == Vec2(3.0, 4.0)
    assert (b - a).magnitude == 5.0
    assert (b - a).sqr_magnitude == 25.0
    assert Vec2.distance(a, b) == a.distance_to(b) == 5.0


def test_move_toward_partial_step():
    pos = move_toward(Vec2(0.0, 0.0), Vec2(3.0, 4.0), 2.5)
    assert pos.x == pytest.approx(1.5)
    assert pos.y == pytest.approx(2.0)


def test_move_toward_never_overshoots():
    target = Vec2(3.0, 4.0)
    assert move_toward(Vec2(0.0, 0.0), target, 5.0) == target
    assert move_toward(Vec2(0.0, 0.0), target, 50.0) == target


def test_move_toward_zero_distance_returns_target():
    target = Vec2(1.0, 1.0)
    assert move_toward(Vec2(1.0, 1.0 + 1e-12), target, 0.0) == target
