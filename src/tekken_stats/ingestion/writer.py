"""
Flush an accumulated batch to storage.

Every write is an upsert, so replaying a flush never duplicates rows:

- matches: insert-or-ignore on match_id. Failures are logged and swallowed.
- participants: insert, or overwrite power and latest_match_at.
- character_stats: insert, or add the pending deltas onto wins and losses and
  overwrite dan_rank, game_version and latest_match_at.
- participant_names: insert-or-ignore.

Participant, character stat and name rows are sorted by key so concurrent
workers take row locks in the same order, and are written in chunks, each in
its own transaction. A chunk that fails on a deadlock or serialization
conflict is retried with exponential backoff; any other error, or running out
of attempts, is raised to the caller.
"""

import time

from sqlalchemy.dialects import postgresql, sqlite

import tekken_stats.schema.postgres as schema
from tekken_stats.constants import (
    FLUSH_BACKOFF_BASE_SECONDS,
    FLUSH_CHUNK_SIZE,
    FLUSH_MAX_ATTEMPTS,
)
from tekken_stats.util.logging import get_logger
from tekken_stats.util.postgres import managed_session

from .errors import FlushRetriesExhausted, is_conflict_error

logger = get_logger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert(db, table):
    """Dialect specific INSERT supporting ON CONFLICT clauses."""
    return _DIALECT_INSERTS[db.get_bind().dialect.name](table)


def chunked(items, size):
    for start in range(0, len(items), size):
        yield items[start : start + size]


def match_insert_statement(db):
    stmt = upsert(db, schema.replay.match)
    return stmt.on_conflict_do_nothing(index_elements=["match_id"])


def participant_upsert_statement(db):
    participant = schema.replay.participant
    stmt = upsert(db, participant)
    return stmt.on_conflict_do_update(
        index_elements=[participant.c.participant_id],
        set_={
            "power": stmt.excluded.power,
            "latest_match_at": stmt.excluded.latest_match_at,
        },
    )


def character_stat_upsert_statement(db):
    character_stat = schema.replay.character_stat
    stmt = upsert(db, character_stat)
    return stmt.on_conflict_do_update(
        index_elements=[character_stat.c.participant_id, character_stat.c.character_id],
        set_={
            "dan_rank": stmt.excluded.dan_rank,
            "game_version": stmt.excluded.game_version,
            "latest_match_at": stmt.excluded.latest_match_at,
            "wins": character_stat.c.wins + stmt.excluded.wins,
            "losses": character_stat.c.losses + stmt.excluded.losses,
        },
    )


def participant_name_insert_statement(db):
    participant_name = schema.replay.participant_name
    stmt = upsert(db, participant_name)
    return stmt.on_conflict_do_nothing(index_elements=["participant_id", "name"])


class BatchWriter:
    def __init__(
        self,
        session_factory=managed_session,
        chunk_size=FLUSH_CHUNK_SIZE,
        max_attempts=FLUSH_MAX_ATTEMPTS,
        backoff_base=FLUSH_BACKOFF_BASE_SECONDS,
        sleep=time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.session_factory = session_factory
        self.chunk_size = chunk_size
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.sleep = sleep

    def run_with_retry(self, table, statement_factory, rows):
        """
        Execute one chunk in its own transaction, retrying on conflicts.

        Raises:
            FlushRetriesExhausted: every attempt hit a conflict
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                with self.session_factory() as db:
                    db.execute(statement_factory(db), rows)
                return
            except Exception as e:
                if not is_conflict_error(e):
                    raise
                if attempt >= self.max_attempts:
                    raise FlushRetriesExhausted(table, attempt, e) from e
                logger.warning(
                    f"Conflict detected during {table} batch update. "
                    f"Retrying... attempt {attempt}/{self.max_attempts}"
                )
                self.sleep(self.backoff_base * 2**attempt)

    def flush_matches(self, matches):
        if not matches:
            logger.warning("No matches to insert.")
            return 0

        start = time.perf_counter()
        try:
            rows = [match.to_row() for match in matches]
            with self.session_factory() as db:
                db.execute(match_insert_statement(db), rows)
        except Exception as e:
            logger.error(f"MATCH INSERTION FAILED: {e}", exc_info=True)
            return 0

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Match insertion: {elapsed_ms:.0f} ms, submitted: {len(rows)}")
        return len(rows)

    def flush_participants(self, profiles):
        if not profiles:
            logger.warning("Participant set is empty, nothing to upsert.")
            return 0

        start = time.perf_counter()
        ordered = sorted(profiles, key=lambda profile: profile.participant_id)
        for chunk in chunked(ordered, self.chunk_size):
            rows = [
                {
                    "participant_id": profile.participant_id,
                    "name": profile.name,
                    "polaris_id": profile.polaris_id,
                    "power": profile.power,
                    "latest_match_at": profile.latest_match_at,
                }
                for profile in chunk
            ]
            self.run_with_retry("participants", participant_upsert_statement, rows)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Participant bulk upsert: {elapsed_ms:.0f} ms, processed: {len(ordered)}")
        return len(ordered)

    def flush_character_stats(self, stats):
        if not stats:
            logger.warning("Character stat set is empty, nothing to upsert.")
            return 0

        start = time.perf_counter()
        # consistent lock acquisition order across workers
        ordered = sorted(stats, key=lambda stat: stat.key)
        for chunk in chunked(ordered, self.chunk_size):
            rows = [
                {
                    "participant_id": stat.participant_id,
                    "character_id": stat.character_id,
                    "game_version": stat.game_version,
                    "dan_rank": stat.dan_rank,
                    "latest_match_at": stat.latest_match_at,
                    "wins": stat.pending.wins,
                    "losses": stat.pending.losses,
                }
                for stat in chunk
            ]
            self.run_with_retry("character_stats", character_stat_upsert_statement, rows)
            for stat in chunk:
                stat.pending.reset()

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"CharacterStats bulk upsert: {elapsed_ms:.0f} ms, processed: {len(ordered)}")
        return len(ordered)

    def flush_name_history(self, entries):
        if not entries:
            return 0

        ordered = sorted(entries, key=lambda entry: (entry.participant_id, entry.name))
        for chunk in chunked(ordered, self.chunk_size):
            rows = [{"participant_id": entry.participant_id, "name": entry.name} for entry in chunk]
            self.run_with_retry("participant_names", participant_name_insert_statement, rows)
        return len(ordered)

    def write(self, batch, existence_filter=None):
        """
        Flush participants, character stats, names and matches, in that order.

        Match ids reach the existence filter only once their insert succeeded.
        """
        participants = self.flush_participants(list(batch.profiles.values()))
        character_stats = self.flush_character_stats(list(batch.character_stats.values()))
        names = self.flush_name_history(batch.name_history)
        matches = self.flush_matches(batch.matches)

        if matches and existence_filter is not None:
            existence_filter.update(match.match_id for match in batch.matches)

        return {
            "participants": participants,
            "character_stats": character_stats,
            "names": names,
            "matches": matches,
        }
