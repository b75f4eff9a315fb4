from .ingestion import process_match_batch
from .statistics import compute_statistics

__all__ = [
    "process_match_batch",
    "compute_statistics",
]
