import time
from dataclasses import asdict, dataclass
from typing import List

from pydantic import TypeAdapter, ValidationError

from tekken_stats.constants import (
    DEDUP_POSITIVE_THRESHOLD,
    DEDUP_WINDOW_SIZE,
    FLUSH_BACKOFF_BASE_SECONDS,
    FLUSH_CHUNK_SIZE,
    FLUSH_MAX_ATTEMPTS,
)
from tekken_stats.util.logging import get_logger
from tekken_stats.util.postgres import managed_session

from .accumulator import accumulate, fetch_existing_participants
from .dedup import deduplicate
from .errors import MalformedBatchError
from .types import MatchRecord
from .writer import BatchWriter

logger = get_logger(__name__)

_match_list_adapter = TypeAdapter(List[MatchRecord])


@dataclass
class PipelineOptions:
    dedup_window_size: int = DEDUP_WINDOW_SIZE
    dedup_threshold: float = DEDUP_POSITIVE_THRESHOLD
    chunk_size: int = FLUSH_CHUNK_SIZE
    max_attempts: int = FLUSH_MAX_ATTEMPTS
    backoff_base: float = FLUSH_BACKOFF_BASE_SECONDS
    seed_from_storage: bool = True


@dataclass
class BatchSummary:
    received: int = 0
    new: int = 0
    duplicates: int = 0
    authoritative_lookup: bool = False
    participants: int = 0
    character_stats: int = 0
    names: int = 0
    matches_written: int = 0
    elapsed_ms: float = 0.0

    def as_dict(self):
        return asdict(self)


def parse_match_batch(message) -> List[MatchRecord]:
    """
    Parse one delivery: a JSON array of match objects.

    Raises:
        MalformedBatchError: the message is not valid JSON or any record fails
            validation; nothing from the delivery is processed
    """
    try:
        return _match_list_adapter.validate_json(message)
    except ValidationError as e:
        raise MalformedBatchError(f"Invalid match batch: {e.error_count()} errors") from e


def process_match_batch(
    matches,
    existence_filter,
    session_factory=managed_session,
    options=None,
    sleep=time.sleep,
) -> BatchSummary:
    options = options or PipelineOptions()
    start = time.perf_counter()
    summary = BatchSummary(received=len(matches))

    result = deduplicate(
        matches,
        existence_filter,
        session_factory=session_factory,
        window_size=options.dedup_window_size,
        threshold=options.dedup_threshold,
    )
    summary.new = len(result.new_matches)
    summary.duplicates = len(result.duplicate_ids) + result.in_batch_repeats
    summary.authoritative_lookup = result.authoritative_lookup

    if not result.new_matches:
        logger.warning("Entire batch already exists in database!")
        summary.elapsed_ms = (time.perf_counter() - start) * 1000
        return summary

    if not result.authoritative_lookup and result.positive_fraction > 0:
        # stored matches among these would be counted again
        logger.warning(
            f"Skipped authoritative duplicate check with {result.positive_fraction * 100:.1f}% "
            f"existence filter positives; {summary.new} matches treated as new"
        )

    existing = None
    if options.seed_from_storage:
        participant_ids = {
            match.side(slot).user_id for match in result.new_matches for slot in (1, 2)
        }
        with session_factory() as db:
            existing = fetch_existing_participants(db, participant_ids)

    batch = accumulate(result.new_matches, existing)

    writer = BatchWriter(
        session_factory=session_factory,
        chunk_size=options.chunk_size,
        max_attempts=options.max_attempts,
        backoff_base=options.backoff_base,
        sleep=sleep,
    )
    written = writer.write(batch, existence_filter)
    summary.participants = written["participants"]
    summary.character_stats = written["character_stats"]
    summary.names = written["names"]
    summary.matches_written = written["matches"]

    summary.elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Total operation time: {summary.elapsed_ms:.0f} ms")
    return summary
