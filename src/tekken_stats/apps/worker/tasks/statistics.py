from tekken_stats.statistics import compute_statistics as run_statistics
from tekken_stats.util.logging import get_logger
from tekken_stats.util.redis import RedisDatabase, get_redis_client

from ..app import app
from ..config import settings

logger = get_logger(__name__)

LOCK_KEY = "statistics_calculation_in_progress"


@app.task(name="statistics.compute_statistics")
def compute_statistics():
    """
    Recompute the aggregated statistics of every game version.

    Runs on the beat schedule. A tick that finds the previous run still holding
    the lock is skipped.
    """
    redis = get_redis_client(RedisDatabase.STATISTICS)

    if not redis.set(LOCK_KEY, "1", ex=settings.STATISTICS_LOCK_TTL_SECONDS, nx=True):
        logger.info("Statistics calculation already in progress, skipping")
        redis.close()
        return {"processed": [], "failed": [], "skipped": True}

    try:
        result = run_statistics()
    finally:
        try:
            redis.delete(LOCK_KEY)
        finally:
            redis.close()

    return {**result, "skipped": False}
