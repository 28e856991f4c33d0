"""
RTDB Sweeper — Sweep runner.

Entry point shared by the HTTP trigger and the in-process schedule.
Takes the wall-clock time once, sweeps every store instance concurrently
(each in its own worker thread; firebase-admin is blocking) and guards
against overlapping runs with a skip-if-busy lock.
"""

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional, Sequence

from sweeper.config import Settings
from sweeper.services.reporter import aggregate_instances
from sweeper.services.sweeper import Store, SweepPolicy, sweep_instance

logger = logging.getLogger(__name__)


class SweepAlreadyRunning(RuntimeError):
    """Raised when a sweep is requested while another one is in flight."""


def now_in_zone(zone: tzinfo) -> datetime:
    """Timezone-aware current time."""
    return datetime.now(zone)


class SweepLock:
    """Non-blocking run lock: a second caller is rejected, not queued."""

    def __init__(self):
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "SweepLock":
        if self._running:
            raise SweepAlreadyRunning("sweep already running")
        self._running = True
        return self

    async def __aexit__(self, *exc) -> None:
        self._running = False


async def run_cleanup(
    stores: Sequence[Store],
    settings: Settings,
    now: Optional[datetime] = None,
    clock: Callable[[tzinfo], datetime] = now_in_zone,
) -> dict:
    """
    Sweep every store and build the response payload.

    One store → ``{"ok", "report", "total"}``; several →
    ``{"ok", "instances": {label: {"firebase", "report", "total"}}}``.
    Every instance runs to completion before the first store error is
    re-raised to the caller.
    """
    policy = SweepPolicy(zone=settings.zone, retention_hours=settings.retention_hours)
    now = now or clock(policy.zone)

    results = await asyncio.gather(*(
        asyncio.to_thread(
            sweep_instance,
            store, settings.cleanup_roots, settings.nested_root, now, policy,
        )
        for store in stores
    ), return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result

    if len(stores) == 1:
        return {"ok": True, **results[0]}

    per_instance = {
        store.label: result["report"] for store, result in zip(stores, results)
    }
    return {"ok": True, "instances": aggregate_instances(per_instance)}


async def execute_sweep(
    stores: Sequence[Store],
    settings: Settings,
    lock: SweepLock,
    trigger: str = "http",
) -> dict:
    """
    Run one guarded sweep and record it in the history table.

    Raises SweepAlreadyRunning if ``lock`` is held; store errors are
    recorded and re-raised.
    """
    from sweeper.services.history import record_run

    async with lock:
        started_at = now_in_zone(settings.zone)
        try:
            payload = await run_cleanup(stores, settings, now=started_at)
        except Exception as e:
            logger.error("❌ Sweep (%s) failed: %s", trigger, e)
            await record_run(trigger, started_at, error=str(e))
            raise
        await record_run(trigger, started_at, payload=payload)
        return payload


async def periodic_sweep(
    stores: Sequence[Store], settings: Settings, lock: SweepLock, interval: int
) -> None:
    """Run a sweep every ``interval`` seconds until cancelled."""
    while True:
        try:
            await asyncio.sleep(interval)
            await execute_sweep(stores, settings, lock, trigger="schedule")
        except asyncio.CancelledError:
            break
        except SweepAlreadyRunning:
            logger.info("⏭️ Scheduled sweep skipped — previous sweep still running")
        except Exception as e:
            logger.error("Scheduled sweep error: %s", e)
