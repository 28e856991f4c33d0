"""
Tests for the sweep runner — multi-instance payloads, run lock, history.
"""

import asyncio
import time
from unittest.mock import patch, AsyncMock

import pytest
from sqlalchemy import select

from sweeper.models.sweep_run import SweepRun
from sweeper.services.firebase import Snapshot, StoreError
from sweeper.services.runner import (
    SweepAlreadyRunning,
    SweepLock,
    execute_sweep,
    periodic_sweep,
    run_cleanup,
)
from tests.conftest import NOW, FakeStore, ago, sample_tree


class SlowStore(FakeStore):
    """FakeStore whose reads block the worker thread for a while."""

    def get(self, path: str) -> Snapshot:
        time.sleep(0.2)
        return super().get(path)


class TestRunCleanup:
    async def test_single_instance_payload_shape(self, store, test_settings):
        payload = await run_cleanup([store], test_settings, now=NOW)

        assert set(payload) == {"ok", "report", "total"}
        assert payload["ok"] is True
        assert payload["total"] == {"deleted": 4, "kept": 4, "skipped": 2}

    async def test_clock_used_when_now_omitted(self, store, test_settings):
        calls = []

        def _clock(zone):
            calls.append(zone)
            return NOW

        await run_cleanup([store], test_settings, clock=_clock)
        assert calls == [test_settings.zone]

    async def test_multi_instance_no_cross_sum(self, test_settings):
        s1 = FakeStore(sample_tree(), label="firebase1")
        s2 = FakeStore({"BESAUNTCT": {"old": {"updateTime": ago(30)}}}, label="firebase2")

        payload = await run_cleanup([s1, s2], test_settings, now=NOW)

        assert payload["ok"] is True
        assert set(payload["instances"]) == {"firebase1", "firebase2"}
        assert payload["instances"]["firebase1"]["total"]["deleted"] == 4
        assert payload["instances"]["firebase2"]["total"] == {
            "deleted": 1, "kept": 0, "skipped": 0,
        }
        assert "total" not in payload
        assert s2.updates == [{"BESAUNTCT/old": None}]

    async def test_store_error_propagates(self, test_settings):
        with pytest.raises(StoreError):
            await run_cleanup([FakeStore(fail_on_get=True)], test_settings, now=NOW)

    async def test_retention_hours_from_settings(self, test_settings):
        test_settings.retention_hours = 24
        store = FakeStore({"BESAUNTCT": {"A": {"updateTime": ago(5)}}})
        payload = await run_cleanup([store], test_settings, now=NOW)
        assert payload["total"]["deleted"] == 0
        assert store.updates == []


class TestSweepLock:
    async def test_rejects_overlap(self):
        lock = SweepLock()
        async with lock:
            assert lock.is_running
            with pytest.raises(SweepAlreadyRunning):
                async with lock:
                    pass
        assert not lock.is_running

    async def test_released_on_error(self):
        lock = SweepLock()
        with pytest.raises(RuntimeError):
            async with lock:
                raise RuntimeError("boom")
        assert not lock.is_running


class TestExecuteSweep:
    async def test_records_successful_run(self, store, test_settings, session_factory):
        payload = await execute_sweep([store], test_settings, SweepLock(), trigger="http")

        assert payload["ok"] is True
        async with session_factory() as session:
            runs = (await session.execute(select(SweepRun))).scalars().all()
        assert len(runs) == 1
        assert runs[0].ok is True
        assert runs[0].trigger == "http"
        assert runs[0].payload["total"] == payload["total"]

    async def test_records_failed_run_and_reraises(self, test_settings, session_factory):
        with pytest.raises(StoreError):
            await execute_sweep([FakeStore(fail_on_get=True)], test_settings, SweepLock())

        async with session_factory() as session:
            runs = (await session.execute(select(SweepRun))).scalars().all()
        assert len(runs) == 1
        assert runs[0].ok is False
        assert "RTDB unreachable" in runs[0].error

    async def test_failure_waits_for_other_instances(self, test_settings, session_factory):
        slow = SlowStore({"BESAUNTCT": {"A": {"updateTime": ago(5)}}}, label="db2")
        lock = SweepLock()
        with pytest.raises(StoreError):
            await execute_sweep([FakeStore(fail_on_get=True, label="db1"), slow],
                                test_settings, lock)

        # the slow instance's delete landed before the lock was released
        assert slow.updates == [{"BESAUNTCT/A": None}]
        assert not lock.is_running

    async def test_history_failure_does_not_fail_sweep(self, store, test_settings):
        with patch("sweeper.services.history.async_session", side_effect=Exception("DB down")):
            payload = await execute_sweep([store], test_settings, SweepLock())
        assert payload["ok"] is True


class TestPeriodicSweep:
    async def test_runs_until_cancelled(self, store, test_settings):
        lock = SweepLock()
        with patch("sweeper.services.runner.execute_sweep", new_callable=AsyncMock) as m:
            task = asyncio.create_task(periodic_sweep([store], test_settings, lock, interval=0))
            while m.await_count < 2:
                await asyncio.sleep(0)
            task.cancel()
            await task
        m.assert_awaited_with([store], test_settings, lock, trigger="schedule")

    async def test_errors_do_not_stop_loop(self, store, test_settings):
        with patch("sweeper.services.runner.execute_sweep", new_callable=AsyncMock,
                   side_effect=[StoreError("x"), SweepAlreadyRunning("busy"), {"ok": True}]) as m:
            task = asyncio.create_task(
                periodic_sweep([store], test_settings, SweepLock(), interval=0)
            )
            while m.await_count < 3:
                await asyncio.sleep(0)
            task.cancel()
            await task
        assert m.await_count >= 3
