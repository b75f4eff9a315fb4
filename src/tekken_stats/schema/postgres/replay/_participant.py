"""
A tracked participant and the high-water mark of the latest match absorbed
into its profile. Power and latest_match_at are overwritten on every flush;
name and polaris_id keep the values of the first insert.
"""

from sqlalchemy import BigInteger, Column, String, Table

from .._metadata import metadata

participant = Table(
    "participants",
    metadata,
    Column("participant_id", String, primary_key=True),
    Column("name", String, nullable=True),
    Column("polaris_id", String, nullable=True),
    Column("power", BigInteger, nullable=True),
    Column("latest_match_at", BigInteger, nullable=False, default=0),
    comment=__doc__.strip(),
    schema="replay",
)
