from .aggregation import compute_statistics, process_game_version

__all__ = [
    "compute_statistics",
    "process_game_version",
]
