from __future__ import annotations

import logging
from dataclasses import dataclass

from apscheduler.events import EVENT_JOB_ERROR, JobExecutionEvent
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog_pipeline.core.config import Settings
from catalog_pipeline.scheduling.runner import (
    CATALOG_SYNC,
    CATALOG_SYNC_IF_STALE,
    IDENTITY_RESOLVE,
    TRENDING_INGEST,
    JobRunner,
    JobSpec,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    job: JobSpec
    crontab: str


def cron_jobs(cfg: Settings) -> list[CronJob]:
    return [
        CronJob(CATALOG_SYNC, cfg.catalog_sync_cron),
        CronJob(TRENDING_INGEST, cfg.trending_ingest_cron),
        CronJob(IDENTITY_RESOLVE, cfg.identity_resolve_cron),
    ]


def startup_jobs(cfg: Settings) -> list[JobSpec]:
    if not cfg.scheduler_run_on_startup:
        return []
    return [TRENDING_INGEST, CATALOG_SYNC_IF_STALE]


def _log_job_error(event: JobExecutionEvent) -> None:
    logger.error("Scheduled job %s raised: %r", event.job_id, event.exception)


class PipelineScheduler:
    """
    Cron triggers for every pipeline job plus fire-and-forget one-off runs.

    Each job id has `max_instances=1` and `coalesce=True`, so a slow run within
    this process swallows overlapping ticks; cross-process exclusion is the job
    lock's business.
    """

    def __init__(
        self,
        runner: JobRunner,
        cfg: Settings,
        *,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self.runner = runner
        self.cfg = cfg
        self.scheduler = scheduler or BlockingScheduler(timezone="UTC")
        self.scheduler.add_listener(_log_job_error, EVENT_JOB_ERROR)

    def register(self) -> None:
        for cron in cron_jobs(self.cfg):
            self.scheduler.add_job(
                self.runner.run,
                CronTrigger.from_crontab(cron.crontab, timezone="UTC"),
                args=[cron.job],
                id=cron.job.name,
                name=cron.job.name,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            logger.info("Scheduled %s at '%s' (UTC)", cron.job.name, cron.crontab)

    def trigger_now(self, job: JobSpec) -> None:
        """Hand a single run to the scheduler's executor and return immediately."""

        self.scheduler.add_job(
            self.runner.run,
            args=[job],
            id=f"{job.name}:now",
            name=f"{job.name} (one-off)",
            misfire_grace_time=None,
            replace_existing=True,
        )

    def start(self) -> None:
        self.register()
        for job in startup_jobs(self.cfg):
            self.trigger_now(job)
        logger.info("Starting scheduler")
        self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
