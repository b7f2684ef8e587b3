"""Pydantic schemas for temporary storage statistics and administration."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CacheStats(BaseModel):
    """Aggregate statistics over live (non-expired) cache entries."""

    total_live_keys: int = Field(ge=0, description="Number of non-expired entries")
    approximate_size_bytes: int = Field(ge=0, description="Approximate size of stored values")
    oldest_entry_timestamp: Optional[datetime] = Field(
        None, description="created_at of the oldest live entry"
    )

    @property
    def memory_usage(self) -> str:
        """Human-readable size, in KB."""
        return f"{round(self.approximate_size_bytes / 1024)}KB"


class CleanupResult(BaseModel):
    """Result of a manual cache cleanup."""

    deleted_count: int = Field(ge=0)
    swept_at: datetime
