"""
RTDB Sweeper — Sweep history API routes.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sweeper.database import get_db
from sweeper.models.sweep_run import SweepRun

history_router = APIRouter(prefix="/sweeps", tags=["history"])


@history_router.get("")
async def list_sweeps(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """List recorded sweeps, newest first."""
    stmt = select(SweepRun).order_by(SweepRun.started_at.desc()).limit(limit)
    runs = (await db.execute(stmt)).scalars().all()
    return {"sweeps": [r.to_dict() for r in runs], "total": len(runs)}
