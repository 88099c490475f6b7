"""
Utility modules for the back office
"""
from .time import to_utc_iso, utc_now_iso

__all__ = [
    'to_utc_iso',
    'utc_now_iso',
]
