import threading
from contextlib import contextmanager

import pytest

import tekken_stats.ingestion.existence as existence
from tekken_stats.ingestion.existence import ExistenceFilter, seed_existence_filter
from tekken_stats.ingestion.writer import BatchWriter


def test_added_ids_are_always_reported():
    existence_filter = ExistenceFilter(expected_insertions=5_000, false_positive_rate=0.01)
    ids = [f"battle-{i}" for i in range(5_000)]
    existence_filter.update(ids)

    assert all(existence_filter.might_contain(match_id) for match_id in ids)
    assert "battle-42" in existence_filter


def test_false_positive_rate_stays_near_configuration():
    existence_filter = ExistenceFilter(expected_insertions=5_000, false_positive_rate=0.01)
    existence_filter.update(f"stored-{i}" for i in range(5_000))

    false_positives = sum(
        existence_filter.might_contain(f"unseen-{i}") for i in range(10_000)
    )

    assert false_positives < 300


def test_add_is_idempotent():
    existence_filter = ExistenceFilter(expected_insertions=100, false_positive_rate=0.01)

    assert existence_filter.add("m1") is True
    assert existence_filter.add("m1") is False
    assert existence_filter.approximate_count == 1


def test_concurrent_adds_lose_nothing():
    existence_filter = ExistenceFilter(expected_insertions=20_000, false_positive_rate=0.01)

    def worker(offset):
        for i in range(2_000):
            existence_filter.add(f"{offset}-{i}")

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert all(
        existence_filter.might_contain(f"{n}-{i}") for n in range(8) for i in range(2_000)
    )


@pytest.mark.parametrize(
    "expected_insertions, false_positive_rate",
    [(0, 0.01), (100, 0.0), (100, 1.0)],
)
def test_rejects_invalid_parameters(expected_insertions, false_positive_rate):
    with pytest.raises(ValueError):
        ExistenceFilter(expected_insertions, false_positive_rate)


def test_seed_from_storage(session_factory, match_factory):
    matches = [match_factory(match_id=f"m{i}", match_at=1_000 + i) for i in range(5)]
    BatchWriter(session_factory).flush_matches(matches)

    existence_filter = ExistenceFilter(expected_insertions=1_000, false_positive_rate=0.001)
    loaded = seed_existence_filter(existence_filter, session_factory)

    assert loaded == 5
    assert all(existence_filter.might_contain(f"m{i}") for i in range(5))


def test_seed_limit_takes_most_recent(session_factory, match_factory):
    matches = [match_factory(match_id=f"m{i}", match_at=1_000 + i) for i in range(5)]
    BatchWriter(session_factory).flush_matches(matches)

    existence_filter = ExistenceFilter(expected_insertions=1_000, false_positive_rate=0.001)
    loaded = seed_existence_filter(existence_filter, session_factory, limit=2)

    assert loaded == 2
    assert existence_filter.might_contain("m4")
    assert existence_filter.might_contain("m3")


@pytest.fixture
def fresh_singleton(monkeypatch):
    monkeypatch.setattr(existence, "_existence_filter", None)
    monkeypatch.setattr(existence, "_seeded", False)


def test_process_wide_filter_is_built_once(fresh_singleton):
    first = existence.get_existence_filter(1_000, 0.01)
    second = existence.get_existence_filter(1_000, 0.01)

    assert first is second


def test_seeded_filter_seeds_once_across_threads(fresh_singleton, session_factory, match_factory):
    BatchWriter(session_factory).flush_matches([match_factory(match_id=f"m{i}") for i in range(3)])
    seed_calls = []

    @contextmanager
    def counting_factory():
        seed_calls.append(1)
        with session_factory() as db:
            yield db

    results = []

    def worker():
        results.append(
            existence.get_seeded_existence_filter(1_000, 0.001, session_factory=counting_factory)
        )

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seed_calls) == 1
    assert len(results) == 8
    assert all(result is results[0] for result in results)
    assert all(results[0].might_contain(f"m{i}") for i in range(3))
