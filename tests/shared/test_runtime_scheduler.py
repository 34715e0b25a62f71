import asyncio
import logging

import pytest

from modules.common import runtime


def test_scheduler_job_exception_does_not_cancel(
    caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    async def runner() -> None:
        scheduler = runtime.Scheduler()

        attempt = {"count": 0}

        async def maybe_fail() -> None:
            attempt["count"] += 1
            if attempt["count"] == 1:
                raise RuntimeError("boom")

        def fast_next_run(self, reference=None):
            now = reference or runtime.datetime.now(runtime.timezone.utc)
            return now + runtime.timedelta(milliseconds=10)

        monkeypatch.setattr(runtime._RecurringJob, "_compute_next_run", fast_next_run)

        caplog.set_level(logging.ERROR, logger="oscar.runtime")

        scheduler.every(seconds=1, name="test_job", tag="test").do(maybe_fail)

        await asyncio.sleep(0.05)
        await scheduler.shutdown()

        assert attempt["count"] >= 2
        assert any("recurring job error" in record.message for record in caplog.records)

    asyncio.run(runner())


def test_next_run_aligns_to_interval_boundary():
    job = runtime.Scheduler().every(seconds=20)
    reference = runtime.datetime(2025, 3, 3, 8, 0, 7, tzinfo=runtime.timezone.utc)
    assert job._compute_next_run(reference) == runtime.datetime(
        2025, 3, 3, 8, 0, 20, tzinfo=runtime.timezone.utc
    )


def test_non_positive_interval_defaults_to_a_minute():
    job = runtime.Scheduler().every()
    assert job._interval == runtime.timedelta(seconds=60)


def test_send_log_message_is_a_no_op_without_runtime():
    runtime.set_active_runtime(None)
    asyncio.run(runtime.send_log_message("hello"))


def test_trim_message_caps_length():
    text = runtime._trim_message("x" * 3000)
    assert len(text) == 1800
    assert text.endswith("…")


def test_jobs_snapshot_lists_registered_jobs():
    scheduler = runtime.Scheduler()
    job = scheduler.every(seconds=20, tag="academy", name="academy_daily")
    job.next_run = runtime.datetime(2025, 3, 3, 8, 0, 20, tzinfo=runtime.timezone.utc)
    assert scheduler.jobs_snapshot() == [
        {
            "name": "academy_daily",
            "tag": "academy",
            "interval_sec": 20,
            "next_run": "2025-03-03T08:00:20+00:00",
        }
    ]
