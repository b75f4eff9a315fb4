"""
This module contains SQLAlchemy definitions for population-wide rollups.
"""

from ._aggregated_statistic import aggregated_statistic

__all__ = [
    "aggregated_statistic",
]
