"""
Tests for the daily trigger, the job checkpoint and the APScheduler wrapper.
"""

import asyncio
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from sla_service.shared.infrastructure import (
    DailyJob,
    DailyTrigger,
    JobScheduler,
    TriggerReason,
)

LIMA = ZoneInfo("America/Lima")


def _at(day: date, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, second, tzinfo=LIMA)


DAY = date(2024, 1, 10)
MIDNIGHT_TRIGGER = DailyTrigger(time(0, 0), timedelta(minutes=1.5))


class TestDailyTrigger:

    def test_fires_inside_window(self):
        decision = MIDNIGHT_TRIGGER.evaluate(_at(DAY, 0, 1), None)
        assert decision.should_run
        assert decision.reason == TriggerReason.WINDOW

    def test_window_edge_is_inclusive(self):
        assert MIDNIGHT_TRIGGER.evaluate(_at(DAY, 0, 1, 30), None).reason == TriggerReason.WINDOW

    def test_catch_up_after_window(self):
        decision = MIDNIGHT_TRIGGER.evaluate(_at(DAY, 10, 0), date(2024, 1, 9))
        assert decision.should_run
        assert decision.reason == TriggerReason.CATCH_UP

    def test_not_twice_in_one_day(self):
        assert not MIDNIGHT_TRIGGER.evaluate(_at(DAY, 0, 1), DAY).should_run
        assert not MIDNIGHT_TRIGGER.evaluate(_at(DAY, 23, 0), DAY).should_run

    def test_before_target_waits(self):
        trigger = DailyTrigger(time(8, 0), timedelta(minutes=1.5))
        assert not trigger.evaluate(_at(DAY, 7, 0), None).should_run

    def test_without_catch_up_missed_window_is_skipped(self):
        trigger = DailyTrigger(time(8, 0), timedelta(minutes=1.5), catch_up=False)
        assert not trigger.evaluate(_at(DAY, 9, 0), None).should_run
        assert trigger.evaluate(_at(DAY, 7, 59), None).reason == TriggerReason.WINDOW

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError):
            DailyTrigger(time(0, 0), timedelta(seconds=-1))


class TestDailyJob:

    @pytest.mark.asyncio
    async def test_runs_once_per_day_across_days(self, clock):
        clock.current = _at(date(2024, 1, 1), 0, 0, 30)
        runs = []

        async def action(now, should_stop):
            runs.append(now.date())
            return True

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)

        for day in (date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)):
            for hour, minute in ((0, 0), (0, 1), (6, 0), (23, 59)):
                clock.current = _at(day, hour, minute)
                await job.tick()

        assert runs == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]
        assert job.last_run_date == date(2024, 1, 3)

    @pytest.mark.asyncio
    async def test_failure_does_not_advance_checkpoint(self, clock):
        clock.current = _at(DAY, 0, 0)
        attempts = []

        async def action(now, should_stop):
            attempts.append(now)
            if len(attempts) == 1:
                raise RuntimeError("database down")
            return True

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)

        assert await job.tick() is False
        assert job.last_run_date is None

        clock.advance(minutes=5)
        assert await job.tick() is True
        assert job.last_run_date == DAY
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_incomplete_run_is_retried(self, clock):
        clock.current = _at(DAY, 0, 0)
        results = [False, True]

        async def action(now, should_stop):
            return results.pop(0)

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)

        assert await job.tick() is False
        assert await job.tick() is True
        assert results == []

    @pytest.mark.asyncio
    async def test_stop_request_is_visible_to_action(self, clock):
        clock.current = _at(DAY, 0, 0)
        seen = []

        async def action(now, should_stop):
            seen.append(should_stop())
            job.request_stop()
            seen.append(should_stop())
            return False

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)
        await job.tick()

        assert seen == [False, True]
        assert job.last_run_date is None
        assert await job.tick() is False

    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, clock):
        clock.current = _at(DAY, 0, 0)
        release = asyncio.Event()

        async def action(now, should_stop):
            await release.wait()
            return True

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)
        first = asyncio.create_task(job.tick())
        await asyncio.sleep(0)

        assert await job.tick() is False

        release.set()
        assert await first is True


class TestJobScheduler:

    def test_duplicate_job_names_rejected(self, clock):
        clock.current = _at(DAY, 0, 0)

        async def action(now, should_stop):
            return True

        scheduler = JobScheduler(poll_seconds=60)
        scheduler.register(DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock))

        with pytest.raises(ValueError):
            scheduler.register(DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock))

    @pytest.mark.asyncio
    async def test_first_tick_runs_on_start_and_stop_waits(self, clock):
        clock.current = _at(DAY, 10, 0)
        runs = []

        async def action(now, should_stop):
            runs.append(now)
            return True

        job = DailyJob("recompute", MIDNIGHT_TRIGGER, action, clock)
        scheduler = JobScheduler(poll_seconds=60)
        scheduler.register(job)

        await scheduler.start()
        assert scheduler.is_running

        for _ in range(40):
            if runs:
                break
            await asyncio.sleep(0.05)

        await scheduler.stop()

        assert not scheduler.is_running
        assert len(runs) == 1
        assert job.last_run_date == DAY
        assert job.stop_requested
