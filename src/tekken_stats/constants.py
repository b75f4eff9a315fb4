class CATEGORY:
    # each participant's most played character only
    STANDARD = "standard"
    # every character every participant has played
    OVERALL = "overall"


WINNER_SLOTS = (1, 2)

DEDUP_WINDOW_SIZE = 250_000
DEDUP_POSITIVE_THRESHOLD = 0.5

FLUSH_CHUNK_SIZE = 1000
FLUSH_MAX_ATTEMPTS = 3
FLUSH_BACKOFF_BASE_SECONDS = 0.1

# SQLSTATE codes Postgres raises for transactions that may succeed when retried
DEADLOCK_DETECTED = "40P01"
SERIALIZATION_FAILURE = "40001"
CONFLICT_SQLSTATES = frozenset({DEADLOCK_DETECTED, SERIALIZATION_FAILURE})

EXISTENCE_FILTER_EXPECTED_INSERTIONS = 10_000_000
EXISTENCE_FILTER_FALSE_POSITIVE_RATE = 0.01

STATISTICS_INTERVAL_SECONDS = 60
