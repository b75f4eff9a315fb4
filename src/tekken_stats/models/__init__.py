from .statistics import AggregatedStatistic

__all__ = [
    "AggregatedStatistic",
]
