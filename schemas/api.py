"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import JobName, SyncStatus


# ============================================================================
# Trigger Schemas
# ============================================================================

class SyncParams(BaseModel):
    """Parameters a sync job is triggered with"""
    only_missing: bool = Field(default=True, description="Only targets not synced yet (details/address jobs)")
    limit: Optional[int] = Field(default=None, ge=1, description="Targets per pass")
    concurrency: Optional[int] = Field(default=None, ge=1, le=50, description="Targets per window")
    retries: Optional[int] = Field(default=None, ge=0, le=10, description="Retries per target")
    pause_ms: Optional[int] = Field(default=None, ge=0, description="Pause between windows in ms")
    updated_since: Optional[datetime] = Field(default=None, description="Listing jobs: rows updated since")
    updated_before: Optional[datetime] = Field(default=None, description="Address job: refreshed before")
    store_view: Optional[str] = Field(default=None, description="Catalog jobs: store view code")

    @field_validator("store_view")
    @classmethod
    def blank_store_view(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @property
    def pause_seconds(self) -> Optional[float]:
        return self.pause_ms / 1000 if self.pause_ms is not None else None


class UntilDoneParams(SyncParams):
    """Parameters for the order-details until-done loop"""
    sleep_ms: Optional[int] = Field(default=None, ge=0, description="Pause between passes in ms")
    max_passes: Optional[int] = Field(default=None, ge=1, description="Upper bound on passes")


class JobResult(BaseModel):
    """Structured outcome of a sync job"""
    success: bool
    job: JobName
    run_id: Optional[str] = None
    status: SyncStatus
    passes: int = 0
    targets: int = 0
    ok: int = 0
    failed: int = 0
    skipped: int = 0
    metric: int = 0
    metric_name: Optional[str] = None
    errors: List[Dict[str, Any]] = Field(default_factory=list, description="Bounded error sample")
    duration_seconds: float = 0.0
    message: Optional[str] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "success": True,
                "job": "order_details",
                "run_id": "0f8fad5b-d9cb-469f-a165-70867728950e",
                "status": "partial",
                "passes": 1,
                "targets": 200,
                "ok": 199,
                "failed": 1,
                "skipped": 0,
                "metric": 512,
                "metric_name": "items_written",
                "errors": [{"target": "100000123", "error": "Order not exists", "attempts": 3}],
                "duration_seconds": 41.2
            }
        }


# ============================================================================
# Health Check Schemas
# ============================================================================

class JobStatusInfo(BaseModel):
    """Last run of one job"""
    job: JobName
    status: SyncStatus
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    records_ok: int = 0
    records_failed: int = 0
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class HealthCheckResponse(BaseModel):
    """Health check response model"""
    database_connected: bool
    remote_configured: bool
    jobs: List[JobStatusInfo] = Field(default_factory=list)
    total_jobs: int = 0
    failed_jobs: int = 0
    status: str = Field(default="healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif self.failed_jobs == 0:
            self.status = "healthy"
        elif self.failed_jobs < self.total_jobs:
            self.status = "degraded"
        else:
            self.status = "unhealthy"
        return self


# ============================================================================
# Stats Schemas
# ============================================================================

class SyncRunSummary(BaseModel):
    """Sync run summary for stats"""
    run_id: str
    job: JobName
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    passes: int = 0
    targets_total: int = 0
    records_ok: int = 0
    records_failed: int = 0
    records_skipped: int = 0
    items_written: int = 0

    class Config:
        from_attributes = True
        use_enum_values = True


class JobStatistics(BaseModel):
    """Per-job counters"""
    job: JobName
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    success_rate: float = 0.0
    records_ok: int = 0
    records_failed: int = 0
    avg_duration_seconds: Optional[float] = None
    last_run_at: Optional[datetime] = None

    class Config:
        use_enum_values = True


class StatsResponse(BaseModel):
    """Sync statistics response"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    table_counts: Dict[str, int] = Field(default_factory=dict)
    orders_missing_details: int = 0
    job_statistics: List[JobStatistics] = Field(default_factory=list)
    recent_runs: List[SyncRunSummary] = Field(default_factory=list)
    request_id: Optional[str] = None
