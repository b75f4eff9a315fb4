from ._metadata import metadata

from . import replay
from . import statistics


__all__ = [
    "metadata",
    "replay",
    "statistics",
]
