"""
This module contains SQLAlchemy definitions for ingested replays and the
per-participant running statistics derived from them.
"""

from ._match import match
from ._participant import participant
from ._participant_name import participant_name
from ._character_stat import character_stat

__all__ = [
    "match",
    "participant",
    "participant_name",
    "character_stat",
]
