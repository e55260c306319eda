from sqlalchemy import Column, BigInteger, Integer, String, Enum, DateTime, Float, Text, Index, JSON
from datetime import datetime
import uuid
from models.base import Base, JobName, SyncStatus


class SyncRun(Base):
    """
    Tracks metadata for each sync job execution.

    Purpose:
    - Audit trail of all job runs
    - Failure counts and a bounded sample of per-target errors
    - Parameters the job was triggered with
    """
    __tablename__ = "sync_runs"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    run_id = Column(String(36), default=lambda: str(uuid.uuid4()), unique=True, nullable=False, index=True)

    job = Column(Enum(JobName), nullable=False, index=True)
    status = Column(Enum(SyncStatus), default=SyncStatus.RUNNING, nullable=False, index=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Statistics
    passes = Column(Integer, default=0)
    targets_total = Column(Integer, default=0)
    records_ok = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)
    records_skipped = Column(Integer, default=0)
    items_written = Column(Integer, default=0)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_sample = Column(JSON, nullable=True)

    # Trigger parameters
    params = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_sync_run_job_started", "job", "started_at"),
    )
