from celery.signals import worker_init

from tekken_stats.ingestion.existence import get_seeded_existence_filter
from tekken_stats.util.celery import make_worker_celery_app
from tekken_stats.util.logging import configure_logging, get_logger

from .config import settings

configure_logging(humanize=settings.HUMANIZE_LOGS, level=settings.LOG_LEVEL)

logger = get_logger(__name__)

app = make_worker_celery_app(concurrency=settings.WORKER_CONCURRENCY)
app.conf.beat_schedule = {
    "compute-statistics": {
        "task": "statistics.compute_statistics",
        "schedule": settings.STATISTICS_INTERVAL_SECONDS,
    },
}


def get_match_filter():
    return get_seeded_existence_filter(
        settings.EXISTENCE_FILTER_EXPECTED_INSERTIONS,
        settings.EXISTENCE_FILTER_FALSE_POSITIVE_RATE,
        seed_limit=settings.EXISTENCE_FILTER_SEED_LIMIT,
    )


@worker_init.connect
def seed_match_filter(**kwargs):
    get_match_filter()


# Explicitly import tasks to ensure they're registered
import tekken_stats.apps.worker.tasks

logger.info(f"Registered tasks: {list(app.tasks.keys())}")
