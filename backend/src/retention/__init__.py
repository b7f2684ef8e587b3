"""Data retention and cleanup module.

Keeps persisted telemetry within its tenant's retention window.

This module provides:
- Expired-entry sweeps of the temporary cache (manual, opportunistic, periodic)
- Deletion due-dates for HISTORICAL-mode data
- Scheduled purges of historical records past their retention window
"""

from .schemas import PurgeStatistics, SweepResult

# Service, scheduler and tasks are imported lazily to avoid circular dependencies
# Use: from retention.service import RetentionSweeper
# Use: from retention.tasks import sweep_cache_task

__all__ = [
    "PurgeStatistics",
    "SweepResult",
]
