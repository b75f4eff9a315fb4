import tekken_stats.schema.postgres as schema

from ._base import Base


class AggregatedStatistic(Base):
    __table__ = schema.statistics.aggregated_statistic

    @property
    def key(self):
        return (self.game_version, self.character_id, self.dan_rank, self.category)

    def reset(self, computed_at):
        self.total_wins = 0
        self.total_losses = 0
        self.total_participants = 0
        self.total_matches = 0
        self.computed_at = computed_at
