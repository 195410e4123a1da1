import pytest

import terrarium.scheduler
from terrarium.errors import InvalidValue
from terrarium.scheduler import (
    COLOR_UPDATE,
    LIGHT_END,
    LIGHT_START,
    ScheduleRegistry,
)


class FakeJob:
    def __init__(self, job_id, trigger):
        self.id = job_id
        self.trigger = trigger


class FakeScheduler:
    """Records add/remove calls in order."""

    def __init__(self, daemon=True):
        self.jobs = {}
        self.ops = []
        self.running = False

    def start(self):
        self.running = True

    def shutdown(self, wait=False):
        self.running = False

    def add_job(self, func, args=None, trigger=None, id=None, **kwargs):
        self.ops.append(("add", id))
        job = FakeJob(id, trigger)
        self.jobs[id] = job
        return job

    def remove_job(self, job_id):
        self.ops.append(("remove", job_id))
        del self.jobs[job_id]

    def get_jobs(self):
        return list(self.jobs.values())


def noop(*args):
    pass


def sprinkler_ids(registry):
    return sorted(i for i in registry.job_ids() if i.startswith("sprinkler-"))


def test_replace_keeps_job_count_equal_to_times():
    registry = ScheduleRegistry()
    assert registry.replace_sprinkler_jobs(["08:00", "12:00", "20:00"], noop) == 3
    assert len(sprinkler_ids(registry)) == 3

    assert registry.replace_sprinkler_jobs(["06:30"], noop) == 1
    assert sprinkler_ids(registry) == ["sprinkler-0-0630"]
    assert registry.sprinkler_job_count == 1


def test_empty_schedule_is_valid():
    registry = ScheduleRegistry()
    registry.replace_sprinkler_jobs(["08:00"], noop)
    assert registry.replace_sprinkler_jobs([], noop) == 0
    assert sprinkler_ids(registry) == []


def test_duplicate_times_get_separate_jobs():
    registry = ScheduleRegistry()
    registry.replace_sprinkler_jobs(["08:00", "08:00"], noop)
    assert sprinkler_ids(registry) == ["sprinkler-0-0800", "sprinkler-1-0800"]


def test_invalid_time_keeps_previous_schedule():
    registry = ScheduleRegistry()
    registry.replace_sprinkler_jobs(["08:00", "20:00"], noop)
    with pytest.raises(InvalidValue):
        registry.replace_sprinkler_jobs(["09:00", "nine"], noop)
    assert sprinkler_ids(registry) == ["sprinkler-0-0800", "sprinkler-1-2000"]


def test_old_jobs_are_cancelled_before_new_ones_install(monkeypatch):
    monkeypatch.setattr(terrarium.scheduler, "BackgroundScheduler", FakeScheduler)
    registry = ScheduleRegistry()
    registry.replace_sprinkler_jobs(["08:00", "20:00"], noop)
    registry.sched.ops.clear()

    registry.replace_sprinkler_jobs(["09:00", "21:00", "22:00"], noop)

    kinds = [op for op, _ in registry.sched.ops]
    assert kinds == ["remove", "remove", "add", "add", "add"]


def test_light_job_is_a_singleton(monkeypatch):
    monkeypatch.setattr(terrarium.scheduler, "BackgroundScheduler", FakeScheduler)
    registry = ScheduleRegistry()
    registry.replace_light_job(LIGHT_START, "08:00", noop, args=(True,))
    first = registry.light_jobs[LIGHT_START]
    registry.sched.ops.clear()

    registry.replace_light_job(LIGHT_START, "07:30", noop, args=(True,))

    assert registry.sched.ops == [("remove", LIGHT_START), ("add", LIGHT_START)]
    assert registry.light_jobs[LIGHT_START] is not first
    assert registry.light_jobs[LIGHT_END] is None
    assert [j.id for j in registry.sched.get_jobs()] == [LIGHT_START]


def test_light_job_trigger_with_real_scheduler():
    registry = ScheduleRegistry()
    registry.replace_light_job(LIGHT_END, "08:00", noop, args=(False,))
    registry.replace_light_job(LIGHT_END, "21:45", noop, args=(False,))
    assert registry.job_ids().count(LIGHT_END) == 1
    trigger = str(registry.light_jobs[LIGHT_END].trigger)
    assert "hour='21'" in trigger
    assert "minute='45'" in trigger


def test_unknown_light_role():
    registry = ScheduleRegistry()
    with pytest.raises(ValueError):
        registry.replace_light_job("light-middle", "08:00", noop)


def test_periodic_job_installs_once():
    registry = ScheduleRegistry()
    registry.install_periodic(COLOR_UPDATE, 5, noop)
    with pytest.raises(RuntimeError):
        registry.install_periodic(COLOR_UPDATE, 5, noop)
    assert "minute='*/5'" in str(registry.periodic_jobs[COLOR_UPDATE].trigger)


def test_describe_before_start_has_no_next_run():
    registry = ScheduleRegistry()
    registry.replace_sprinkler_jobs(["08:00"], noop)
    assert registry.describe() == [{"id": "sprinkler-0-0800", "next_run": None}]
