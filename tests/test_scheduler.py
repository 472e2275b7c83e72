import logging
from datetime import datetime, timezone

import pytest

from smartplug.controller import LightController
from smartplug.scheduler import DAILY_JOBS, LightScheduler, ScheduledJob, cron_trigger


class FakeAPScheduler:
    def __init__(self, fail_on_add=False):
        self.jobs = []
        self.started = False
        self.fail_on_add = fail_on_add
        self.timezone = timezone.utc

    def add_job(self, func, trigger, **kwargs):
        if self.fail_on_add:
            raise ValueError("bad job")
        self.jobs.append((func, trigger, kwargs))

    def start(self):
        self.started = True

    def shutdown(self, wait=True):
        self.started = False


def _job(name):
    return next(job for job in DAILY_JOBS if job.name == name)


@pytest.mark.parametrize(
    "expression, hour",
    [("0 0 0 * * *", 0), ("0 0 17 * * *", 17)],
)
def test_daily_triggers_fire_on_the_hour(expression, hour):
    trigger = cron_trigger(expression, "UTC")
    now = datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)

    fire = trigger.get_next_fire_time(None, now)

    assert (fire.hour, fire.minute, fire.second) == (hour, 0, 0)
    assert fire > now
    assert (fire - now).total_seconds() <= 24 * 3600


def test_cron_trigger_rejects_five_fields():
    with pytest.raises(ValueError):
        cron_trigger("0 17 * * *")


def test_daily_jobs_definition():
    assert [(j.name, j.cron, j.action) for j in DAILY_JOBS] == [
        ("midnight-off", "0 0 0 * * *", "turn_off"),
        ("evening-on", "0 0 17 * * *", "turn_on"),
    ]


def test_start_registers_both_jobs(executor):
    fake = FakeAPScheduler()
    scheduler = LightScheduler(LightController(executor), scheduler=fake)

    assert not scheduler.running
    scheduler.start()

    assert scheduler.running
    assert fake.started
    assert [kwargs["id"] for _, _, kwargs in fake.jobs] == ["midnight-off", "evening-on"]
    assert all(func == scheduler.run_job for func, _, _ in fake.jobs)


def test_start_is_a_single_transition(executor):
    fake = FakeAPScheduler()
    scheduler = LightScheduler(LightController(executor), scheduler=fake)

    scheduler.start()
    scheduler.start()

    assert len(fake.jobs) == 2


def test_registration_failure_leaves_scheduler_stopped(executor):
    fake = FakeAPScheduler(fail_on_add=True)
    scheduler = LightScheduler(LightController(executor), scheduler=fake)

    with pytest.raises(ValueError):
        scheduler.start()

    assert not scheduler.running
    assert not fake.started


def test_shutdown(executor):
    fake = FakeAPScheduler()
    scheduler = LightScheduler(LightController(executor), scheduler=fake)
    scheduler.start()

    scheduler.shutdown()

    assert not scheduler.running
    assert not fake.started


@pytest.mark.asyncio
async def test_midnight_job_turns_off(executor):
    scheduler = LightScheduler(LightController(executor), scheduler=FakeAPScheduler())

    await scheduler.run_job(_job("midnight-off"))

    assert executor.calls == [["off"]]


@pytest.mark.asyncio
async def test_evening_job_turns_on_without_auto_off(executor):
    scheduler = LightScheduler(LightController(executor), scheduler=FakeAPScheduler())

    await scheduler.run_job(_job("evening-on"))

    assert executor.calls == [["on"], ["feature", "auto_off_enabled", "False"]]


@pytest.mark.asyncio
async def test_job_failure_is_logged_not_raised(failing_executor, caplog):
    scheduler = LightScheduler(LightController(failing_executor), scheduler=FakeAPScheduler())
    caplog.set_level(logging.INFO, logger="smartplug.scheduler")

    await scheduler.run_job(_job("midnight-off"))
    await scheduler.run_job(_job("evening-on"))

    assert "Scheduled job midnight-off failed" in caplog.text
    assert "Scheduled job evening-on failed" in caplog.text
    assert failing_executor.calls == [["off"], ["on"]]


@pytest.mark.asyncio
async def test_real_scheduler_starts_and_stops(executor):
    scheduler = LightScheduler(LightController(executor), timezone="UTC")

    scheduler.start()
    try:
        assert scheduler.running
    finally:
        scheduler.shutdown()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_custom_job(executor):
    job = ScheduledJob(name="noon-off", cron="0 0 12 * * *", action="turn_off")
    scheduler = LightScheduler(
        LightController(executor), scheduler=FakeAPScheduler(), jobs=(job,),
    )

    await scheduler.run_job(job)

    assert executor.calls == [["off"]]


def test_unknown_action_fails_at_registration(executor):
    fake = FakeAPScheduler()
    jobs = DAILY_JOBS + (ScheduledJob(name="typo", cron="0 0 9 * * *", action="turn_of"),)
    scheduler = LightScheduler(LightController(executor), scheduler=fake, jobs=jobs)

    with pytest.raises(ValueError, match="turn_of"):
        scheduler.start()

    assert fake.jobs == []
    assert not fake.started
    assert not scheduler.running


def test_bad_cron_fails_at_registration(executor):
    fake = FakeAPScheduler()
    jobs = (ScheduledJob(name="short", cron="0 9 * * *", action="turn_on"),)
    scheduler = LightScheduler(LightController(executor), scheduler=fake, jobs=jobs)

    with pytest.raises(ValueError):
        scheduler.start()

    assert fake.jobs == []


@pytest.mark.asyncio
async def test_registered_job_runs_resolved_action(executor):
    fake = FakeAPScheduler()
    scheduler = LightScheduler(LightController(executor), scheduler=fake)
    scheduler.start()

    func, _, kwargs = fake.jobs[0]
    await func(*kwargs["args"])

    assert executor.calls == [["off"]]
