"""
Value types flowing through the ingestion pipeline.

MatchRecord is the immutable inbound match. ParticipantProfile and
CharacterStat form the per-batch working set built by the accumulator; a
CharacterStat carries this batch's contribution in a separate PendingDelta so
the writer can apply it additively without touching the cumulative totals.
"""

import datetime
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MatchSide(NamedTuple):
    user_id: str
    name: Optional[str]
    polaris_id: Optional[str]
    power: Optional[int]
    character_id: int
    dan_rank: Optional[int]
    rating_before: Optional[int]
    rating_change: Optional[int]
    rounds_won: Optional[int]


class MatchRecord(BaseModel):
    """
    One completed match as delivered by the replay queue.

    Field aliases follow the replay feed's wire names; attributes follow the
    column names of replay.matches.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    match_id: str = Field(alias="battle_id")
    match_at: int = Field(alias="battle_at")
    match_type: Optional[int] = Field(default=None, alias="battle_type")
    game_version: int
    stage_id: Optional[int] = None
    winner: int
    date: Optional[str] = None

    p1_user_id: str
    p1_name: Optional[str] = None
    p1_polaris_id: Optional[str] = None
    p1_power: Optional[int] = None
    p1_character_id: int = Field(alias="p1_chara_id")
    p1_dan_rank: Optional[int] = Field(default=None, alias="p1_rank")
    p1_rating_before: Optional[int] = None
    p1_rating_change: Optional[int] = None
    p1_rounds_won: Optional[int] = Field(default=None, alias="p1_rounds")

    p2_user_id: str
    p2_name: Optional[str] = None
    p2_polaris_id: Optional[str] = None
    p2_power: Optional[int] = None
    p2_character_id: int = Field(alias="p2_chara_id")
    p2_dan_rank: Optional[int] = Field(default=None, alias="p2_rank")
    p2_rating_before: Optional[int] = None
    p2_rating_change: Optional[int] = None
    p2_rounds_won: Optional[int] = Field(default=None, alias="p2_rounds")

    @field_validator("match_id", "p1_user_id", "p2_user_id", "p1_polaris_id", "p2_polaris_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value):
        # the feed sends numeric user ids
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("winner")
    @classmethod
    def _check_winner(cls, value):
        if value not in (1, 2):
            raise ValueError(f"winner must be 1 or 2, got {value}")
        return value

    def side(self, slot: int) -> MatchSide:
        prefix = f"p{slot}_"
        return MatchSide(*(getattr(self, prefix + name) for name in MatchSide._fields))

    def with_formatted_date(self) -> "MatchRecord":
        return self.model_copy(update={"date": format_match_date(self.match_at)})

    def to_row(self) -> dict:
        return self.model_dump(by_alias=False)


def format_match_date(epoch_seconds: int) -> str:
    moment = datetime.datetime.fromtimestamp(epoch_seconds, tz=datetime.timezone.utc)
    return moment.strftime("%m/%d/%Y %H:%M UTC")


@dataclass
class PendingDelta:
    wins: int = 0
    losses: int = 0

    def reset(self):
        self.wins = 0
        self.losses = 0

    def __bool__(self):
        return bool(self.wins or self.losses)


@dataclass
class CharacterStat:
    participant_id: str
    character_id: int
    game_version: int
    dan_rank: Optional[int] = None
    wins: int = 0
    losses: int = 0
    latest_match_at: int = 0
    pending: PendingDelta = field(default_factory=PendingDelta)

    @property
    def key(self) -> Tuple[str, int]:
        return (self.participant_id, self.character_id)


@dataclass
class NameHistoryEntry:
    participant_id: str
    name: str


@dataclass
class ParticipantProfile:
    participant_id: str
    name: Optional[str] = None
    polaris_id: Optional[str] = None
    power: Optional[int] = None
    latest_match_at: int = 0
    known_names: Set[str] = field(default_factory=set)
    character_stats: Dict[int, CharacterStat] = field(default_factory=dict)


@dataclass
class AccumulatedBatch:
    """The explicit hand-off from the accumulator to the writer."""

    matches: List[MatchRecord] = field(default_factory=list)
    profiles: Dict[str, ParticipantProfile] = field(default_factory=dict)
    character_stats: Dict[Tuple[str, int], CharacterStat] = field(default_factory=dict)
    name_history: List[NameHistoryEntry] = field(default_factory=list)

    def __bool__(self):
        return bool(self.matches)
