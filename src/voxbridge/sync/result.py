"""
Sync result types

SyncResult.to_dict() is the stable shape returned to schedulers, CLIs and
HTTP handlers.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class SyncErrorKind(str, Enum):
    """Error taxonomy used to prefix SyncResult.errors entries"""
    NOT_CONFIGURED = "not_configured"
    MISSING_KEY = "missing_key"
    TRANSIENT_VENDOR_ERROR = "transient_vendor_error"
    PERMANENT_VENDOR_ERROR = "permanent_vendor_error"
    NOT_FOUND = "not_found"
    PERSISTENCE_ERROR = "persistence_error"
    ID_COLLISION = "id_collision"


def format_error(kind: SyncErrorKind, message: str) -> str:
    return f"[{kind.value}] {message}"


@dataclass
class SyncResult:
    """
    Outcome of one sync operation.

    success is False only when the operation could not run at all; partial
    failures keep success True with a non-zero error_count.

    Attributes:
        duration: Wall-clock time in milliseconds
    """
    success: bool = True
    synced_count: int = 0
    updated_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    duration: int = 0

    def add_error(self, kind: SyncErrorKind, message: str) -> None:
        self.error_count += 1
        self.errors.append(format_error(kind, message))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "syncedCount": self.synced_count,
            "updatedCount": self.updated_count,
            "errorCount": self.error_count,
            "errors": list(self.errors),
            "duration": self.duration,
        }


@dataclass
class DashboardSyncResult:
    """Composite result of sync_dashboard (agents, then call logs)"""
    success: bool
    agents: SyncResult
    call_logs: SyncResult
    errors: List[str] = field(default_factory=list)
    total_duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "agents": self.agents.to_dict(),
            "callLogs": self.call_logs.to_dict(),
            "errors": list(self.errors),
            "totalDuration": self.total_duration,
        }


@dataclass
class FullSyncResult:
    """Result of sync_all: one SyncResult per category"""
    success: bool
    results: Dict[str, SyncResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    duration: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "results": {name: result.to_dict() for name, result in self.results.items()},
            "errors": list(self.errors),
            "duration": self.duration,
        }


class Stopwatch:
    """Millisecond timer for result durations"""

    def __init__(self):
        self._start = time.monotonic()

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)
