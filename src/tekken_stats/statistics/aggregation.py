"""
Recompute population-wide rollups from character_stats.

Each run rebuilds every (character, dan rank) rollup of every game version from
scratch rather than adding onto stored totals, so drift in the running
statistics or out-of-order participant updates never accumulate. Results are
eventually consistent snapshots; ingestion keeps writing while a run scans.
"""

import datetime
import time
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import distinct, select

import tekken_stats.schema.postgres as schema
from tekken_stats.constants import CATEGORY
from tekken_stats.models.statistics import AggregatedStatistic
from tekken_stats.util.logging import get_logger
from tekken_stats.util.postgres import managed_session

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlayerCharacterData:
    character_id: int
    dan_rank: int
    wins: int
    losses: int

    @property
    def total_plays(self):
        return self.wins + self.losses


def fetch_game_versions(db):
    character_stat = schema.replay.character_stat
    return list(
        db.execute(
            select(distinct(character_stat.c.game_version)).order_by(
                character_stat.c.game_version
            )
        ).scalars()
    )


def fetch_character_stats(db, game_version):
    """Rows of (participant_id, PlayerCharacterData) in a stable scan order."""
    character_stat = schema.replay.character_stat
    rows = db.execute(
        select(
            character_stat.c.participant_id,
            character_stat.c.character_id,
            character_stat.c.dan_rank,
            character_stat.c.wins,
            character_stat.c.losses,
        )
        .where(character_stat.c.game_version == game_version)
        .order_by(character_stat.c.participant_id, character_stat.c.character_id)
    )
    return [
        (
            row.participant_id,
            PlayerCharacterData(row.character_id, row.dan_rank or 0, row.wins, row.losses),
        )
        for row in rows
    ]


def identify_main_characters(stats):
    """Each participant's most played character; the first seen wins a tie."""
    main_characters = {}
    for participant_id, data in stats:
        current = main_characters.get(participant_id)
        if current is None or data.total_plays > current.total_plays:
            main_characters[participant_id] = data
    return main_characters


def group_all_characters(stats):
    characters = defaultdict(list)
    for participant_id, data in stats:
        characters[participant_id].append(data)
    return characters


def load_existing_statistics(db, game_version, category):
    existing = db.scalars(
        select(AggregatedStatistic).where(
            AggregatedStatistic.game_version == game_version,
            AggregatedStatistic.category == category,
        )
    ).all()
    return {stat.key: stat for stat in existing}


def aggregate(db, contributions, game_version, category, computed_at):
    """
    Rebuild the rollups of one category from (participant_id, data) pairs.

    Stored rows are reused as the base but zeroed the first time their key is
    touched in this run; keys without a stored row become new rows.
    """
    existing = load_existing_statistics(db, game_version, category)
    aggregated = {}
    participants_per_stat = defaultdict(set)

    for participant_id, data in contributions:
        key = (game_version, data.character_id, data.dan_rank, category)
        stat = aggregated.get(key)
        if stat is None:
            stat = existing.get(key)
            if stat is None:
                stat = AggregatedStatistic(
                    game_version=game_version,
                    character_id=data.character_id,
                    dan_rank=data.dan_rank,
                    category=category,
                )
                db.add(stat)
            stat.reset(computed_at)
            aggregated[key] = stat

        stat.total_wins += data.wins
        stat.total_losses += data.losses
        stat.total_matches += data.total_plays
        participants_per_stat[key].add(participant_id)

    for key, stat in aggregated.items():
        stat.total_participants = len(participants_per_stat[key])

    return aggregated


def process_game_version(db, game_version, computed_at):
    logger.info(f"Processing statistics for game version: {game_version}")
    stats = fetch_character_stats(db, game_version)

    main_characters = identify_main_characters(stats)
    standard = aggregate(
        db, main_characters.items(), game_version, CATEGORY.STANDARD, computed_at
    )

    all_characters = group_all_characters(stats)
    overall = aggregate(
        db,
        (
            (participant_id, data)
            for participant_id, characters in all_characters.items()
            for data in characters
        ),
        game_version,
        CATEGORY.OVERALL,
        computed_at,
    )

    return {CATEGORY.STANDARD: len(standard), CATEGORY.OVERALL: len(overall)}


def compute_statistics(session_factory=managed_session, now=None):
    """
    Recompute the rollups of every game version found in character_stats.

    A failure in one game version is logged and skips only that version for
    this run.

    Returns:
        dict: processed and failed game versions
    """
    start = time.perf_counter()
    computed_at = now or datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)
    logger.info("Computing statistics")

    with session_factory() as db:
        game_versions = fetch_game_versions(db)

    if not game_versions:
        logger.warning("No game versions found.")
        return {"processed": [], "failed": []}

    processed = []
    failed = []
    for game_version in game_versions:
        try:
            with session_factory() as db:
                counts = process_game_version(db, game_version, computed_at)
            processed.append(game_version)
            logger.info(
                f"Saved statistics for game version {game_version}: "
                f"{counts[CATEGORY.STANDARD]} standard, {counts[CATEGORY.OVERALL]} overall"
            )
        except Exception as e:
            logger.error(f"Error computing statistics for game version {game_version}: {e}", exc_info=True)
            failed.append(game_version)

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(f"Statistics computed in {elapsed_ms:.0f} ms")
    return {"processed": processed, "failed": failed}
