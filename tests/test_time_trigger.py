import asyncio
import unittest
from datetime import datetime, timezone

from relaybot.triggers.time_trigger import TimeTrigger


class _Job:
    def __init__(self):
        self.calls = 0
        self.release = asyncio.Event()
        self.block = False

    async def __call__(self):
        self.calls += 1
        if self.block:
            await self.release.wait()


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestTriggerConstruction(unittest.TestCase):
    def test_needs_interval_or_cron(self):
        with self.assertRaises(ValueError):
            TimeTrigger(_Job())

    def test_invalid_cron_rejected(self):
        with self.assertRaises(ValueError):
            TimeTrigger(_Job(), cron="every tuesday")

    def test_cron_next_fire_honours_timezone(self):
        trigger = TimeTrigger(
            _Job(),
            cron="0 9 * * *",
            timezone_name="America/New_York",
            clock=lambda: datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
        )
        winter = trigger.next_cron_fire(datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(winter, datetime(2026, 1, 15, 14, 0, tzinfo=timezone.utc))
        summer = trigger.next_cron_fire(datetime(2026, 7, 15, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(summer, datetime(2026, 7, 15, 13, 0, tzinfo=timezone.utc))

    def test_cron_next_fire_is_strictly_after(self):
        trigger = TimeTrigger(_Job(), cron="*/5 * * * *")
        at = datetime(2026, 10, 17, 10, 5, tzinfo=timezone.utc)
        self.assertEqual(trigger.next_cron_fire(at), datetime(2026, 10, 17, 10, 10, tzinfo=timezone.utc))


class TestTriggerFiring(unittest.IsolatedAsyncioTestCase):
    async def test_overlapping_tick_is_skipped(self):
        job = _Job()
        job.block = True
        trigger = TimeTrigger(job, interval_minutes=1)

        self.assertTrue(trigger.fire())
        await asyncio.sleep(0)
        self.assertTrue(trigger.running)
        self.assertFalse(trigger.fire())
        self.assertEqual(trigger.skipped, 1)

        job.release.set()
        await trigger._inflight
        self.assertTrue(trigger.fire())
        await trigger._inflight
        self.assertEqual(job.calls, 2)
        self.assertEqual(trigger.fired, 2)

    async def test_cron_poll_fires_when_due(self):
        job = _Job()
        clock = _Clock(datetime(2026, 10, 17, 10, 2, tzinfo=timezone.utc))
        trigger = TimeTrigger(job, cron="*/5 * * * *", clock=clock)

        clock.now = datetime(2026, 10, 17, 10, 4, 59, tzinfo=timezone.utc)
        trigger.poll()
        self.assertEqual(trigger.fired, 0)

        clock.now = datetime(2026, 10, 17, 10, 5, 1, tzinfo=timezone.utc)
        trigger.poll()
        trigger.poll()
        await trigger._inflight
        self.assertEqual(trigger.fired, 1)
        self.assertEqual(job.calls, 1)

    async def test_interval_job_fires_through_scheduler(self):
        job = _Job()
        trigger = TimeTrigger(job, interval_minutes=30)
        trigger._scheduler.run_all()
        await trigger._inflight
        self.assertEqual(job.calls, 1)

    async def test_run_on_boot_then_stop(self):
        job = _Job()
        trigger = TimeTrigger(job, interval_minutes=60, run_on_boot=True, poll_seconds=0.01)
        task = asyncio.create_task(trigger.run())
        await asyncio.sleep(0.05)
        trigger.stop()
        await asyncio.wait_for(task, timeout=1)
        self.assertEqual(job.calls, 1)

    async def test_no_boot_run_when_disabled(self):
        job = _Job()
        trigger = TimeTrigger(job, interval_minutes=60, poll_seconds=0.01)
        task = asyncio.create_task(trigger.run())
        await asyncio.sleep(0.03)
        trigger.stop()
        await asyncio.wait_for(task, timeout=1)
        self.assertEqual(job.calls, 0)

    async def test_shutdown_waits_for_inflight_run(self):
        job = _Job()
        job.block = True
        trigger = TimeTrigger(job, interval_minutes=60, run_on_boot=True, poll_seconds=0.01, shutdown_grace=1)
        task = asyncio.create_task(trigger.run())
        await asyncio.sleep(0.02)
        trigger.stop()
        await asyncio.sleep(0.02)
        self.assertFalse(task.done())
        job.release.set()
        await asyncio.wait_for(task, timeout=1)
        self.assertTrue(trigger._inflight.done())
        self.assertFalse(trigger._inflight.cancelled())

    async def test_shutdown_cancels_run_past_grace(self):
        job = _Job()
        job.block = True
        trigger = TimeTrigger(job, interval_minutes=60, run_on_boot=True, poll_seconds=0.01, shutdown_grace=0.05)
        task = asyncio.create_task(trigger.run())
        await asyncio.sleep(0.02)
        trigger.stop()
        await asyncio.wait_for(task, timeout=1)
        self.assertTrue(trigger._inflight.cancelled())

    async def test_job_exception_does_not_escape(self):
        async def broken():
            raise RuntimeError("bad run")

        trigger = TimeTrigger(broken, interval_minutes=5)
        with self.assertLogs("relaybot.triggers.time_trigger", level="ERROR"):
            trigger.fire()
            await trigger._inflight
        self.assertFalse(trigger.running)


if __name__ == "__main__":
    unittest.main()
