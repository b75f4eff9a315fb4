from .errors import FlushRetriesExhausted, IngestionError, MalformedBatchError
from .existence import ExistenceFilter, get_existence_filter, seed_existence_filter
from .pipeline import BatchSummary, PipelineOptions, parse_match_batch, process_match_batch
from .types import MatchRecord

__all__ = [
    "BatchSummary",
    "ExistenceFilter",
    "FlushRetriesExhausted",
    "IngestionError",
    "MalformedBatchError",
    "MatchRecord",
    "PipelineOptions",
    "get_existence_filter",
    "parse_match_batch",
    "process_match_batch",
    "seed_existence_filter",
]
