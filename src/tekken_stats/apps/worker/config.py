import os

from dotenv import load_dotenv

from tekken_stats import constants

load_dotenv()


def _flag(name, default):
    return os.environ.get(name, str(default)).strip().lower() in ("1", "true", "yes", "on")


def _optional_int(name):
    value = os.environ.get(name)
    return int(value) if value else None


class Settings:
    CELERY_BROKER_URL = os.environ["CELERY_BROKER_URL"]
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    HUMANIZE_LOGS = _flag("HUMANIZE_LOGS", False)
    WORKER_CONCURRENCY = int(os.environ.get("WORKER_CONCURRENCY", 4))

    STATISTICS_INTERVAL_SECONDS = float(
        os.environ.get("STATISTICS_INTERVAL_SECONDS", constants.STATISTICS_INTERVAL_SECONDS)
    )
    STATISTICS_LOCK_TTL_SECONDS = int(os.environ.get("STATISTICS_LOCK_TTL_SECONDS", 3600))

    DEDUP_WINDOW_SIZE = int(os.environ.get("DEDUP_WINDOW_SIZE", constants.DEDUP_WINDOW_SIZE))
    DEDUP_POSITIVE_THRESHOLD = float(
        os.environ.get("DEDUP_POSITIVE_THRESHOLD", constants.DEDUP_POSITIVE_THRESHOLD)
    )
    FLUSH_CHUNK_SIZE = int(os.environ.get("FLUSH_CHUNK_SIZE", constants.FLUSH_CHUNK_SIZE))
    FLUSH_MAX_ATTEMPTS = int(os.environ.get("FLUSH_MAX_ATTEMPTS", constants.FLUSH_MAX_ATTEMPTS))
    FLUSH_BACKOFF_BASE_SECONDS = float(
        os.environ.get("FLUSH_BACKOFF_BASE_SECONDS", constants.FLUSH_BACKOFF_BASE_SECONDS)
    )
    SEED_FROM_STORAGE = _flag("SEED_FROM_STORAGE", True)

    EXISTENCE_FILTER_EXPECTED_INSERTIONS = int(
        os.environ.get(
            "EXISTENCE_FILTER_EXPECTED_INSERTIONS",
            constants.EXISTENCE_FILTER_EXPECTED_INSERTIONS,
        )
    )
    EXISTENCE_FILTER_FALSE_POSITIVE_RATE = float(
        os.environ.get(
            "EXISTENCE_FILTER_FALSE_POSITIVE_RATE",
            constants.EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
        )
    )
    EXISTENCE_FILTER_SEED_LIMIT = _optional_int("EXISTENCE_FILTER_SEED_LIMIT")


settings = Settings()
