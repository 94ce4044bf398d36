"""
Scheduled sync runs using APScheduler.
"""

from .jobs import sync_job_wrapper
from .scheduler import SyncScheduler, parse_cron_expression

__all__ = [
    'SyncScheduler',
    'parse_cron_expression',
    'sync_job_wrapper',
]
