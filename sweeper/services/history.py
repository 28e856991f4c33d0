"""
RTDB Sweeper — Sweep history writer.
"""

import logging
from datetime import datetime

from sweeper.database import async_session
from sweeper.models.sweep_run import SweepRun

logger = logging.getLogger(__name__)


def _grand_total(payload: dict) -> dict:
    """Totals of a payload; for multi-instance payloads, summed over instances."""
    if "instances" in payload:
        totals = [i.get("total", {}) for i in payload["instances"].values()]
    else:
        totals = [payload.get("total", {})]
    return {
        f: sum(t.get(f) or 0 for t in totals) for f in ("deleted", "kept", "skipped")
    }


async def record_run(
    trigger: str,
    started_at: datetime,
    payload: dict | None = None,
    error: str | None = None,
) -> SweepRun | None:
    """
    Persist one sweep invocation. Never raises — a history write failure
    must not turn a successful sweep into a failed one.
    """
    payload = payload or {}
    total = _grand_total(payload)
    run = SweepRun(
        trigger=trigger,
        ok=error is None,
        deleted=total["deleted"],
        kept=total["kept"],
        skipped=total["skipped"],
        payload=payload,
        error=error,
        started_at=started_at,
    )
    try:
        async with async_session() as session:
            session.add(run)
            await session.commit()
            await session.refresh(run)
        return run
    except Exception as e:
        logger.warning(f"Failed to write sweep history: {e}")
        return None
