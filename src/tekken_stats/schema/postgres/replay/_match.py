"""
One completed ranked match between two participants.

Rows are written once by the ingestion workers with an insert-or-ignore keyed
by match_id and are never updated afterwards.
"""

from sqlalchemy import BigInteger, Column, Index, Integer, String, Table

from .._metadata import metadata


def _side_columns(prefix):
    return [
        Column(f"{prefix}_user_id", String, nullable=False),
        Column(f"{prefix}_name", String, nullable=True),
        Column(f"{prefix}_polaris_id", String, nullable=True),
        Column(f"{prefix}_power", BigInteger, nullable=True),
        Column(f"{prefix}_character_id", Integer, nullable=False),
        Column(f"{prefix}_dan_rank", Integer, nullable=True),
        Column(f"{prefix}_rating_before", Integer, nullable=True),
        Column(f"{prefix}_rating_change", Integer, nullable=True),
        Column(f"{prefix}_rounds_won", Integer, nullable=True),
    ]


match = Table(
    "matches",
    metadata,
    Column("match_id", String, primary_key=True),
    Column("date", String, nullable=True),
    Column("match_at", BigInteger, nullable=False),
    Column("match_type", Integer, nullable=True),
    Column("game_version", Integer, nullable=False),
    Column("stage_id", Integer, nullable=True),
    Column("winner", Integer, nullable=False),
    *_side_columns("p1"),
    *_side_columns("p2"),
    # the dedup window scans the most recent matches first
    Index("ix_matches_match_at", "match_at"),
    comment=__doc__.strip(),
    schema="replay",
)
