"""
Cumulative wins and losses of one participant on one character.

wins and losses only ever grow through additive upserts
(stored = stored + delta). dan_rank, game_version and latest_match_at describe
the newest match absorbed for the pair and are overwritten on every flush.
"""

from sqlalchemy import BigInteger, Column, ForeignKey, Index, Integer, String, Table

from .._metadata import metadata

character_stat = Table(
    "character_stats",
    metadata,
    Column(
        "participant_id",
        String,
        ForeignKey("replay.participants.participant_id"),
        primary_key=True,
    ),
    Column("character_id", Integer, primary_key=True),
    Column("game_version", Integer, nullable=False),
    Column("dan_rank", Integer, nullable=True),
    Column("wins", Integer, nullable=False, default=0),
    Column("losses", Integer, nullable=False, default=0),
    Column("latest_match_at", BigInteger, nullable=False, default=0),
    Index("ix_character_stats_game_version", "game_version"),
    comment=__doc__.strip(),
    schema="replay",
)
