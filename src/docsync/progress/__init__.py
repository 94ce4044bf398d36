"""
Progress reporting for running syncs.
"""

from .monitor import (
    SCAN_PHASE,
    SYNC_PHASE,
    Progress,
    ProgressCallback,
    ProgressMonitor,
    ScanProgress,
    SyncCounters,
    SyncProgress,
)

__all__ = [
    'SCAN_PHASE',
    'SYNC_PHASE',
    'Progress',
    'ProgressCallback',
    'ProgressMonitor',
    'ScanProgress',
    'SyncCounters',
    'SyncProgress',
]
