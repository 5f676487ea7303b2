import pytest

from randomized_core.lcg import LcgRandom, to_signed32, to_signed64


def test_golden_first_draws():
    # pinned once, a change here breaks reproduction of every recorded seed
    assert LcgRandom(12345).next_int() == 1553932502
    assert LcgRandom(0).next_int() == -1155484576


def test_same_seed_same_sequence():
    a = LcgRandom(987654321)
    b = LcgRandom(987654321)

    draws_a = [
        (a.next_int(), a.next_int(17), a.next_long(), a.next_boolean(), a.next_double())
        for _ in range(200)
    ]
    draws_b = [
        (b.next_int(), b.next_int(17), b.next_long(), b.next_boolean(), b.next_double())
        for _ in range(200)
    ]
    assert draws_a == draws_b


def test_random_helpers_follow_the_lcg():
    a = LcgRandom(42)
    b = LcgRandom(42)
    items = list(range(20))
    shuffled_a = items[:]
    shuffled_b = items[:]
    a.shuffle(shuffled_a)
    b.shuffle(shuffled_b)

    assert shuffled_a == shuffled_b
    assert [a.randint(0, 10) for _ in range(50)] == [b.randint(0, 10) for _ in range(50)]
    assert a.choice("abcdef") == b.choice("abcdef")
    assert a.getrandbits(100) == b.getrandbits(100)


def test_zero_and_negative_seeds_are_plain_seeds():
    zero = [LcgRandom(0).next_int() for _ in range(3)]
    assert zero == [LcgRandom(0).next_int() for _ in range(3)]

    negative = LcgRandom(-1)
    positive = LcgRandom(1)
    assert [negative.next_int() for _ in range(5)] != [positive.next_int() for _ in range(5)]


def test_bounded_draws_stay_in_range():
    rng = LcgRandom(7)
    for bound in (1, 2, 3, 10, 16, 1000, 0x7FFFFFFF):
        for _ in range(200):
            assert 0 <= rng.next_int(bound) < bound
    for _ in range(200):
        assert 0 <= rng.random_int_between(0, 10) <= 10
        assert 0.0 <= rng.random() < 1.0


@pytest.mark.parametrize("bound", [0, -5, 1 << 31])
def test_invalid_bound(bound):
    with pytest.raises(ValueError):
        LcgRandom(1).next_int(bound)


def test_empty_range():
    with pytest.raises(ValueError):
        LcgRandom(1).random_int_between(5, 4)


def test_state_roundtrip_replays_draws():
    rng = LcgRandom(31337)
    rng.next_int()
    state = rng.getstate()
    expected = [rng.next_int() for _ in range(10)]

    rng.setstate(state)
    assert [rng.next_int() for _ in range(10)] == expected


def test_reseeding_restarts_the_stream():
    rng = LcgRandom(5)
    first = [rng.next_int() for _ in range(4)]
    rng.seed(5)
    assert [rng.next_int() for _ in range(4)] == first


def test_non_integer_seed_is_rejected():
    with pytest.raises(TypeError):
        LcgRandom("12345")


def test_signed_conversions():
    assert to_signed32(0xFFFFFFFF) == -1
    assert to_signed32(0x7FFFFFFF) == 0x7FFFFFFF
    assert to_signed64(0x8000000000000000) == -(1 << 63)
    assert to_signed64(5) == 5
