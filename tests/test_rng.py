from netstack.rng import get_random_engine


def test_engines_are_independently_seeded():
    first = get_random_engine()
    second = get_random_engine()
    assert [first.getrandbits(32) for _ in range(8)] != [second.getrandbits(32) for _ in range(8)]


def test_draws_stay_in_range():
    engine = get_random_engine()
    draws = [engine.randint(0, 2**32 - 1) for _ in range(1000)]
    assert all(0 <= d <= 2**32 - 1 for d in draws)
    assert len(set(draws)) > 900


def test_shuffle_is_permutation():
    engine = get_random_engine()
    items = list(range(100))
    shuffled = items[:]
    engine.shuffle(shuffled)
    assert sorted(shuffled) == items