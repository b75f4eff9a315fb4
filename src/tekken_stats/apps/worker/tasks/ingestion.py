import threading

from celery.exceptions import Reject
from sqlalchemy.exc import OperationalError

from tekken_stats.ingestion import (
    FlushRetriesExhausted,
    MalformedBatchError,
    PipelineOptions,
    parse_match_batch,
    process_match_batch as run_pipeline,
)
from tekken_stats.util.logging import get_logger

from ..app import app, get_match_filter
from ..config import settings

logger = get_logger(__name__)


@app.task(
    name="ingestion.process_match_batch",
    autoretry_for=(FlushRetriesExhausted, OperationalError),
    retry_backoff=True,
    max_retries=5,
)
def process_match_batch(message, unix_timestamp=None):
    """
    Ingest one delivery of match records.

    Args:
        message: JSON array of match objects
        unix_timestamp: Delivery timestamp, only used for logging

    Returns:
        dict: Summary of the processed batch
    """
    thread_name = threading.current_thread().name
    logger.info(f"Thread: {thread_name}, received match data, timestamped: {unix_timestamp}")

    try:
        matches = parse_match_batch(message)
    except MalformedBatchError as e:
        logger.error(f"Rejecting malformed match batch: {e}")
        raise Reject(str(e), requeue=False)

    options = PipelineOptions(
        dedup_window_size=settings.DEDUP_WINDOW_SIZE,
        dedup_threshold=settings.DEDUP_POSITIVE_THRESHOLD,
        chunk_size=settings.FLUSH_CHUNK_SIZE,
        max_attempts=settings.FLUSH_MAX_ATTEMPTS,
        backoff_base=settings.FLUSH_BACKOFF_BASE_SECONDS,
        seed_from_storage=settings.SEED_FROM_STORAGE,
    )
    summary = run_pipeline(matches, get_match_filter(), options=options)

    logger.info(f"Thread: {thread_name}, total operation time: {summary.elapsed_ms:.0f} ms")
    return summary.as_dict()
