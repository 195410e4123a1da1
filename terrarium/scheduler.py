"""Registry of the controller's recurring APScheduler jobs.

Each job category keeps its own handles so it can be replaced on its own:

* ``sprinkler``: one daily job per configured sprinkler time
* ``light-start`` / ``light-end``: at most one daily job each
* ``color-update`` / ``temperature-poll``: periodic jobs installed once at
  startup and kept for the life of the process

Replacing a category always removes the old handles before the new ones
are added, so two generations of the same slot are never registered at the
same time.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .validation import to_cron_expression

logger = logging.getLogger(__name__)

SPRINKLER = "sprinkler"
LIGHT_START = "light-start"
LIGHT_END = "light-end"
COLOR_UPDATE = "color-update"
TEMPERATURE_POLL = "temperature-poll"

LIGHT_ROLES = (LIGHT_START, LIGHT_END)

# Seconds a job may run late (e.g. after a busy period) and still fire.
MISFIRE_GRACE = 300


class ScheduleRegistry:
    def __init__(self):
        self.sched = BackgroundScheduler(daemon=True)
        self.sprinkler_jobs: List = []
        self.light_jobs: Dict[str, Optional[object]] = {role: None for role in LIGHT_ROLES}
        self.periodic_jobs: Dict[str, object] = {}
        self._lock = threading.Lock()

    def start(self) -> None:
        self.sched.start()

    def shutdown(self) -> None:
        if self.sched.running:
            self.sched.shutdown(wait=False)

    def _add(self, func: Callable, trigger, job_id: str, args: Sequence = ()):
        return self.sched.add_job(
            func,
            args=list(args),
            trigger=trigger,
            id=job_id,
            replace_existing=True,
            misfire_grace_time=MISFIRE_GRACE,
            coalesce=True,
            max_instances=1,
        )

    def _remove(self, job) -> None:
        try:
            self.sched.remove_job(job.id)
        except JobLookupError:
            logger.warning("Job %s was already gone", job.id)

    def replace_sprinkler_jobs(self, times: Sequence[str], func: Callable) -> int:
        """Cancel every sprinkler job, then install one per time.

        All times are converted before anything is cancelled, so an invalid
        entry leaves the current schedule untouched.
        """
        specs = [to_cron_expression(t) for t in times]
        with self._lock:
            for job in self.sprinkler_jobs:
                self._remove(job)
            self.sprinkler_jobs = []
            for idx, spec in enumerate(specs):
                job_id = f"{SPRINKLER}-{idx}-{spec.hour:02d}{spec.minute:02d}"
                self.sprinkler_jobs.append(self._add(func, spec.trigger(), job_id))
        logger.info("Sprinkler schedule now %s", ", ".join(times) or "(empty)")
        return len(self.sprinkler_jobs)

    def replace_light_job(self, role: str, hhmm: str, func: Callable, args: Sequence = ()) -> None:
        if role not in LIGHT_ROLES:
            raise ValueError(f"Unknown light role: {role}")
        spec = to_cron_expression(hhmm)
        with self._lock:
            old = self.light_jobs[role]
            self.light_jobs[role] = None
            if old is not None:
                self._remove(old)
            self.light_jobs[role] = self._add(func, spec.trigger(), role, args)
        logger.info("Scheduled %s at %s", role, hhmm)

    def install_periodic(self, role: str, every_minutes: int, func: Callable) -> None:
        """Install a ``*/N`` minute job.  Periodic jobs are never replaced."""
        with self._lock:
            if role in self.periodic_jobs:
                raise RuntimeError(f"Periodic job {role} is already installed")
            trigger = CronTrigger(minute=f"*/{every_minutes}")
            self.periodic_jobs[role] = self._add(func, trigger, role)
        logger.info("Installed %s every %d minutes", role, every_minutes)

    @property
    def sprinkler_job_count(self) -> int:
        return len(self.sprinkler_jobs)

    def job_ids(self) -> List[str]:
        return [job.id for job in self.sched.get_jobs()]

    def describe(self) -> List[dict]:
        """Job id and next run time for each registered job."""
        out = []
        for job in self.sched.get_jobs():
            # Pending jobs of a stopped scheduler have no next_run_time yet.
            nr = getattr(job, "next_run_time", None)
            out.append({
                "id": job.id,
                "next_run": nr.strftime("%Y-%m-%d %H:%M:%S") if nr else None,
            })
        return out
