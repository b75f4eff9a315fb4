"""
Append-only history of the display names each participant has used.
"""

from sqlalchemy import Column, ForeignKey, String, Table

from .._metadata import metadata

participant_name = Table(
    "participant_names",
    metadata,
    Column(
        "participant_id",
        String,
        ForeignKey("replay.participants.participant_id"),
        primary_key=True,
    ),
    Column("name", String, primary_key=True),
    comment=__doc__.strip(),
    schema="replay",
)
