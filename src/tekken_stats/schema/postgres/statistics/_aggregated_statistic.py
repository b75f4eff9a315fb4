"""
Population-wide win/loss rollup per game version, character and dan rank.

Rows are owned by the periodic statistics task and fully recomputed on every
run. The 'standard' category counts each participant's most played character
only; 'overall' counts every character every participant has played.
"""

from sqlalchemy import TIMESTAMP, Column, Integer, String, Table, func

from .._metadata import metadata

aggregated_statistic = Table(
    "aggregated_statistics",
    metadata,
    Column("game_version", Integer, primary_key=True),
    Column("character_id", Integer, primary_key=True),
    Column("dan_rank", Integer, primary_key=True),
    Column("category", String, primary_key=True),
    Column("total_wins", Integer, nullable=False, default=0),
    Column("total_losses", Integer, nullable=False, default=0),
    Column("total_participants", Integer, nullable=False, default=0),
    Column("total_matches", Integer, nullable=False, default=0),
    Column(
        "computed_at", TIMESTAMP(timezone=False), server_default=func.now(), nullable=False
    ),
    comment=__doc__.strip(),
    schema="statistics",
)
