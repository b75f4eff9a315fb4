"""
Fold new matches into per-participant and per-character working state.

Wins and losses always count, in whatever order matches arrive. Rank, power
and the high-water marks only move forward: a match older than the stored
high-water mark leaves them untouched.
"""

import time

from sqlalchemy import select

import tekken_stats.schema.postgres as schema
from tekken_stats.constants import WINNER_SLOTS
from tekken_stats.util.logging import get_logger

from .types import (
    AccumulatedBatch,
    CharacterStat,
    NameHistoryEntry,
    ParticipantProfile,
)

logger = get_logger(__name__)


def fetch_existing_participants(db, participant_ids):
    """
    Load stored profiles, character stats and known names for the given ids.

    Returns:
        dict: participant_id -> ParticipantProfile
    """
    if not participant_ids:
        return {}

    participant = schema.replay.participant
    character_stat = schema.replay.character_stat
    participant_name = schema.replay.participant_name
    ids = sorted(participant_ids)

    profiles = {}
    for row in db.execute(
        select(participant).where(participant.c.participant_id.in_(ids))
    ).mappings():
        profiles[row["participant_id"]] = ParticipantProfile(
            participant_id=row["participant_id"],
            name=row["name"],
            polaris_id=row["polaris_id"],
            power=row["power"],
            latest_match_at=row["latest_match_at"] or 0,
        )

    for row in db.execute(
        select(character_stat).where(character_stat.c.participant_id.in_(ids))
    ).mappings():
        profile = profiles.get(row["participant_id"])
        if profile is None:
            continue
        profile.character_stats[row["character_id"]] = CharacterStat(
            participant_id=row["participant_id"],
            character_id=row["character_id"],
            game_version=row["game_version"],
            dan_rank=row["dan_rank"],
            wins=row["wins"],
            losses=row["losses"],
            latest_match_at=row["latest_match_at"] or 0,
        )

    for participant_id, name in db.execute(
        select(participant_name.c.participant_id, participant_name.c.name).where(
            participant_name.c.participant_id.in_(ids)
        )
    ):
        if participant_id in profiles:
            profiles[participant_id].known_names.add(name)

    return profiles


class StatsAccumulator:
    def __init__(self, existing=None):
        self.batch = AccumulatedBatch(profiles=dict(existing or {}))
        self._touched = set()

    def _get_or_create_profile(self, side):
        profile = self.batch.profiles.get(side.user_id)
        if profile is None:
            profile = ParticipantProfile(
                participant_id=side.user_id,
                name=side.name,
                polaris_id=side.polaris_id,
                power=side.power,
            )
            self.batch.profiles[side.user_id] = profile
        return profile

    def _get_or_create_stat(self, profile, side, match):
        stat = profile.character_stats.get(side.character_id)
        if stat is None:
            stat = CharacterStat(
                participant_id=profile.participant_id,
                character_id=side.character_id,
                game_version=match.game_version,
                dan_rank=side.dan_rank,
            )
            profile.character_stats[side.character_id] = stat
        return stat

    def _record_name(self, profile, name):
        if name is None or name in profile.known_names:
            return
        profile.known_names.add(name)
        self.batch.name_history.append(NameHistoryEntry(profile.participant_id, name))

    def add(self, match):
        for slot in WINNER_SLOTS:
            side = match.side(slot)
            profile = self._get_or_create_profile(side)
            stat = self._get_or_create_stat(profile, side, match)

            if match.winner == slot:
                stat.pending.wins += 1
                stat.wins += 1
            else:
                stat.pending.losses += 1
                stat.losses += 1

            if match.match_at > stat.latest_match_at:
                stat.latest_match_at = match.match_at
                stat.dan_rank = side.dan_rank
                stat.game_version = match.game_version

            if match.match_at > profile.latest_match_at:
                profile.latest_match_at = match.match_at
                profile.power = side.power

            self._record_name(profile, side.name)

            self._touched.add(profile.participant_id)
            self.batch.character_stats[stat.key] = stat

        self.batch.matches.append(match)

    def result(self) -> AccumulatedBatch:
        # profiles loaded from storage but not part of this batch are not flushed
        self.batch.profiles = {
            participant_id: profile
            for participant_id, profile in self.batch.profiles.items()
            if participant_id in self._touched
        }
        return self.batch


def accumulate(matches, existing=None) -> AccumulatedBatch:
    start = time.perf_counter()

    accumulator = StatsAccumulator(existing)
    for match in matches:
        accumulator.add(match)
    batch = accumulator.result()

    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Updated participant and match information: {elapsed_ms:.0f} ms, "
        f"{len(batch.profiles)} participants, {len(batch.character_stats)} character stats"
    )
    return batch
