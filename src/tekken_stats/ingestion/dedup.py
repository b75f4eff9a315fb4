"""
Decide which matches of a micro-batch are genuinely new.

The existence filter is consulted first. When the share of filter positives
reaches the threshold, one bounded authoritative read of the most recent
stored matches decides the duplicate set. Below the threshold the read is
skipped and every candidate is treated as new.

A stored match older than the window, or any stored match when the read is
skipped, is classified as new. The match row itself stays unique because the
match flush is insert-or-ignore, but that match's wins and losses are counted
again. DedupResult.authoritative_lookup makes that case visible to callers.
"""

import time
from dataclasses import dataclass, field
from typing import List, Set

from sqlalchemy import select

import tekken_stats.schema.postgres as schema
from tekken_stats.constants import DEDUP_POSITIVE_THRESHOLD, DEDUP_WINDOW_SIZE
from tekken_stats.util.logging import get_logger
from tekken_stats.util.postgres import managed_session

from .types import MatchRecord

logger = get_logger(__name__)


@dataclass
class DedupResult:
    new_matches: List[MatchRecord] = field(default_factory=list)
    duplicate_ids: Set[str] = field(default_factory=set)
    positive_fraction: float = 0.0
    authoritative_lookup: bool = False
    in_batch_repeats: int = 0


def filter_positive_fraction(candidate_ids, existence_filter, threshold=DEDUP_POSITIVE_THRESHOLD):
    """
    Fraction of candidates the filter reports as seen, stopping early once the
    running fraction reaches ``threshold``.
    """
    if not candidate_ids:
        return 0.0

    total = len(candidate_ids)
    positives = 0
    for match_id in candidate_ids:
        if existence_filter.might_contain(match_id):
            positives += 1
            if positives / total >= threshold:
                break

    return positives / total


def fetch_recent_match_ids(db, window_size=DEDUP_WINDOW_SIZE):
    match = schema.replay.match
    query = (
        select(match.c.match_id)
        .order_by(match.c.match_at.desc())
        .limit(window_size)
    )
    return set(db.execute(query).scalars())


def deduplicate(
    matches,
    existence_filter,
    session_factory=managed_session,
    window_size=DEDUP_WINDOW_SIZE,
    threshold=DEDUP_POSITIVE_THRESHOLD,
) -> DedupResult:
    if not matches:
        logger.warning("No match ids provided. Skipping duplicate check.")
        return DedupResult()

    start = time.perf_counter()

    # repeats of one id inside a batch collapse to the first occurrence
    unique = {}
    for match in matches:
        unique.setdefault(match.match_id, match)
    in_batch_repeats = len(matches) - len(unique)
    candidate_ids = list(unique)

    positive_fraction = filter_positive_fraction(candidate_ids, existence_filter, threshold)
    logger.info(f"Positive matches in existence filter: {positive_fraction * 100:.1f}%")

    duplicate_ids = set()
    authoritative_lookup = positive_fraction >= threshold
    if authoritative_lookup:
        with session_factory() as db:
            recent_ids = fetch_recent_match_ids(db, window_size)
        logger.info(f"Fetched {len(recent_ids)} recent match ids from database")
        duplicate_ids = recent_ids.intersection(candidate_ids)
    else:
        logger.info("Matches fell below existence filter threshold. Skipping database read.")

    new_matches = [
        match.with_formatted_date()
        for match_id, match in unique.items()
        if match_id not in duplicate_ids
    ]

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Duplicate check took {elapsed_ms:.0f} ms: {len(new_matches)} new, "
        f"{len(duplicate_ids)} stored duplicates, {in_batch_repeats} in-batch repeats"
    )

    return DedupResult(
        new_matches=new_matches,
        duplicate_ids=duplicate_ids,
        positive_fraction=positive_fraction,
        authoritative_lookup=authoritative_lookup,
        in_batch_repeats=in_batch_repeats,
    )
