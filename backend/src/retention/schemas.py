"""Pydantic schemas for retention sweeps and historical purges.

This module defines retention-related schemas:
- SweepResult: Outcome of one expired-entry sweep of the temporary cache
- PurgeStatistics: Statistics from a scheduled historical purge run
"""

from datetime import datetime

from pydantic import BaseModel, Field

# Deletions above this count in one purge run are flagged for review
ANOMALY_THRESHOLD = 10000


class SweepResult(BaseModel):
    """Outcome of one expired-entry sweep."""

    trigger: str = Field(description="manual, opportunistic, periodic or scheduled")
    deleted_count: int = Field(default=0, ge=0)
    failed: bool = Field(default=False, description="Store was unavailable; retried next tick")
    swept_at: datetime


class PurgeStatistics(BaseModel):
    """Statistics from a historical purge job execution.

    Tracks how many records were deleted and any errors encountered.
    Used for monitoring and alerting on retention job health.
    """

    job_started_at: datetime = Field(
        description="When the purge job started"
    )

    job_completed_at: datetime = Field(
        description="When the purge job completed"
    )

    duration_seconds: float = Field(
        ge=0.0,
        description="Job execution duration in seconds"
    )

    records_deleted: int = Field(
        default=0,
        ge=0,
        description="Number of historical records permanently deleted"
    )

    tenants_processed: int = Field(
        default=0,
        ge=0,
        description="Number of tenants processed"
    )

    store_errors: int = Field(
        default=0,
        ge=0,
        description="Number of tenants whose purge failed"
    )

    @property
    def has_errors(self) -> bool:
        """Whether any errors occurred during execution."""
        return self.store_errors > 0

    @property
    def is_anomaly(self) -> bool:
        """Whether deletion volume exceeds normal thresholds (alert condition)."""
        return self.records_deleted > ANOMALY_THRESHOLD
