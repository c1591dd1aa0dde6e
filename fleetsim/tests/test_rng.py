import pytest

from fleetsim.sim.rng import DeterministicRng


def _draws(rng):
    return [rng.next_int(0, 1000) for _ in range(20)] + [rng.next_float01() for _ in range(5)]


def test_same_seed_same_sequence():
    assert _draws(DeterministicRng(42)) == _draws(DeterministicRng(42))
    assert _draws(DeterministicRng(42)) != _draws(DeterministicRng(43))


def test_ranges():
    rng = DeterministicRng(7)
    for _ in range(200):
        assert 3 <= rng.next_int(3, 9) < 9
        assert 0.0 <= rng.next_float01() < 1.0
        assert -2.0 <= rng.next_float(-2.0, 2.0) < 2.0


def test_next_bool_edges():
    rng = DeterministicRng(1)
    assert not any(rng.next_bool(0.0) for _ in range(50))
    assert all(rng.next_bool(1.0) for _ in range(50))


def test_shuffle_is_a_deterministic_permutation():
    items_a = list(range(10))
    items_b = list(range(10))
    DeterministicRng(5).shuffle(items_a)
    DeterministicRng(5).shuffle(items_b)

    assert items_a == items_b
    assert sorted(items_a) == list(range(10))


def test_pick():
    rng = DeterministicRng(3)
    assert rng.pick(["only"]) == "only"
    assert rng.pick([1, 2, 3]) in {1, 2, 3}
    with pytest.raises(ValueError):
        rng.pick([])
