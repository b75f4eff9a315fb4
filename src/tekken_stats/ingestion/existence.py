"""
Process-wide existence filter over previously stored match ids.

The filter is a Bloom filter: it never reports a stored id as absent, but may
report an unseen id as present. It only short-circuits the deduplicator and is
never the sole basis for treating a match as a duplicate; storage stays the
authority. Ids are only ever added, so there is no removal.
"""

import hashlib
import math
import threading

from sqlalchemy import select

import tekken_stats.schema.postgres as schema
from tekken_stats.constants import (
    EXISTENCE_FILTER_EXPECTED_INSERTIONS,
    EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
)
from tekken_stats.util.logging import get_logger
from tekken_stats.util.postgres import managed_session

logger = get_logger(__name__)


class ExistenceFilter:
    def __init__(
        self,
        expected_insertions=EXISTENCE_FILTER_EXPECTED_INSERTIONS,
        false_positive_rate=EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
    ):
        if expected_insertions <= 0:
            raise ValueError("expected_insertions must be positive")
        if not 0 < false_positive_rate < 1:
            raise ValueError("false_positive_rate must be between 0 and 1")

        self.expected_insertions = expected_insertions
        self.false_positive_rate = false_positive_rate
        self.bit_count = max(
            8,
            math.ceil(
                -expected_insertions * math.log(false_positive_rate) / (math.log(2) ** 2)
            ),
        )
        self.hash_count = max(
            1, round(self.bit_count / expected_insertions * math.log(2))
        )
        self._bits = bytearray((self.bit_count + 7) // 8)
        self._lock = threading.Lock()
        self._count = 0

    def _positions(self, match_id):
        digest = hashlib.blake2b(str(match_id).encode("utf-8"), digest_size=16).digest()
        h1 = int.from_bytes(digest[:8], "little")
        h2 = int.from_bytes(digest[8:], "little") | 1
        return [(h1 + i * h2) % self.bit_count for i in range(self.hash_count)]

    def might_contain(self, match_id) -> bool:
        positions = self._positions(match_id)
        with self._lock:
            return all(self._bits[p >> 3] & (1 << (p & 7)) for p in positions)

    def add(self, match_id):
        positions = self._positions(match_id)
        with self._lock:
            changed = False
            for p in positions:
                mask = 1 << (p & 7)
                if not self._bits[p >> 3] & mask:
                    self._bits[p >> 3] |= mask
                    changed = True
            if changed:
                self._count += 1
        return changed

    def update(self, match_ids):
        for match_id in match_ids:
            self.add(match_id)

    def __contains__(self, match_id):
        return self.might_contain(match_id)

    @property
    def approximate_count(self):
        return self._count


_existence_filter = None
_existence_filter_lock = threading.Lock()
_seeded = False


def get_existence_filter(
    expected_insertions=EXISTENCE_FILTER_EXPECTED_INSERTIONS,
    false_positive_rate=EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
) -> ExistenceFilter:
    """Return the process-wide filter, building it on first use."""
    global _existence_filter
    with _existence_filter_lock:
        if _existence_filter is None:
            _existence_filter = ExistenceFilter(expected_insertions, false_positive_rate)
        return _existence_filter


def seed_existence_filter(existence_filter, session_factory=managed_session, limit=None):
    """
    Load stored match ids into the filter.

    Args:
        existence_filter: Filter to populate
        session_factory: Context manager factory yielding a session
        limit: Only load the most recent ``limit`` ids when set

    Returns:
        Number of ids loaded
    """
    query = select(schema.replay.match.c.match_id)
    if limit is not None:
        query = query.order_by(schema.replay.match.c.match_at.desc()).limit(limit)

    loaded = 0
    with session_factory() as db:
        for match_id in db.execute(query.execution_options(yield_per=10_000)).scalars():
            existence_filter.add(match_id)
            loaded += 1

    logger.info(f"Seeded existence filter with {loaded} match ids")
    return loaded


def get_seeded_existence_filter(
    expected_insertions=EXISTENCE_FILTER_EXPECTED_INSERTIONS,
    false_positive_rate=EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
    seed_limit=None,
    session_factory=managed_session,
) -> ExistenceFilter:
    """Return the process-wide filter, seeding it from storage exactly once."""
    global _seeded
    existence_filter = get_existence_filter(expected_insertions, false_positive_rate)
    with _existence_filter_lock:
        if not _seeded:
            seed_existence_filter(existence_filter, session_factory, seed_limit)
            _seeded = True
    return existence_filter
