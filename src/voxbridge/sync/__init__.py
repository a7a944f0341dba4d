"""
Vendor-to-local synchronization
"""

from voxbridge.sync.engine import SyncEngine, classify_error
from voxbridge.sync.result import (
    DashboardSyncResult,
    FullSyncResult,
    SyncErrorKind,
    SyncResult,
    format_error,
)

__all__ = [
    "SyncEngine",
    "classify_error",
    "SyncResult",
    "SyncErrorKind",
    "DashboardSyncResult",
    "FullSyncResult",
    "format_error",
]
