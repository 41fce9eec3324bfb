"""
Core Utilities Package

Modules:
    - time: Timestamp conversion and normalization utilities
    - format: Number and pair formatting for text summaries
"""

from core.utils.time import to_absolute_time, to_iso_time

__all__ = ["to_absolute_time", "to_iso_time"]
