"""
Core Utilities Package

Modules:
    - time: Timestamp normalization and ISO-8601 helpers
"""

from core.utils.time import to_epoch_seconds, utc_now_iso

__all__ = ["to_epoch_seconds", "utc_now_iso"]
