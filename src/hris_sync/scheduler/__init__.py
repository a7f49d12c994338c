"""
Scheduled sync passes using APScheduler.
"""

from .jobs import sync_job
from .scheduler import FREQUENCIES, SyncScheduler

__all__ = [
    "FREQUENCIES",
    "SyncScheduler",
    "sync_job",
]
