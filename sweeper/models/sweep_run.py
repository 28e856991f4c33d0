"""
RTDB Sweeper — Sweep run model.
One row per sweep invocation, successful or not.
"""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text, func

from sweeper.database import Base


class SweepRun(Base):
    """Audit trail of sweeps: totals plus the full response payload."""
    __tablename__ = "sweep_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    trigger = Column(String(20), nullable=False)        # "http", "schedule"
    ok = Column(Boolean, nullable=False, default=False)

    deleted = Column(Integer, default=0)
    kept = Column(Integer, default=0)
    skipped = Column(Integer, default=0)

    payload = Column(JSON, default=dict)                # report as returned to the caller
    error = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), server_default=func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "trigger": self.trigger,
            "ok": self.ok,
            "total": {"deleted": self.deleted, "kept": self.kept, "skipped": self.skipped},
            "payload": self.payload or {},
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
