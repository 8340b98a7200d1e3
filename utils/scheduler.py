"""Scheduler for periodic knowledge rebuilds."""

import logging
from typing import Dict, Any, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from config.settings import settings

logger = logging.getLogger(__name__)

REBUILD_JOB_ID = "rebuild_knowledge"


class AnalysisScheduler:
    """Runs the knowledge rebuild after the last draw of the day."""

    def __init__(self, engine=None):
        self.engine = engine
        self.scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)
        self.is_running = False
        self._setup_event_listeners()

    def _setup_event_listeners(self):
        def job_executed(event):
            logger.info(f"Job {event.job_id} executed successfully")

        def job_error(event):
            logger.error(f"Job {event.job_id} failed: {event.exception}")

        self.scheduler.add_listener(job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error, EVENT_JOB_ERROR)

    def _get_engine(self):
        if self.engine is None:
            from predictions.predictor_engine import analysis_engine
            self.engine = analysis_engine
        return self.engine

    def start(self):
        """Start the scheduler with the rebuild job."""
        if not settings.enable_scheduler:
            logger.info("Scheduler disabled in configuration")
            return

        self.scheduler.add_job(
            func=self.rebuild_knowledge_job,
            trigger=CronTrigger.from_crontab(settings.rebuild_schedule, timezone=settings.scheduler_timezone),
            id=REBUILD_JOB_ID,
            name='Nightly Knowledge Rebuild',
            replace_existing=True
        )
        self.scheduler.start()
        self.is_running = True
        logger.info("Analysis scheduler started")
        for job in self.scheduler.get_jobs():
            logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")

    def stop(self):
        if self.is_running:
            self.scheduler.shutdown(wait=True)
            self.is_running = False
            logger.info("Analysis scheduler stopped")

    def rebuild_knowledge_job(self):
        """Rebuild number profiles from the full timeline."""
        logger.info("Starting knowledge rebuild job")
        snapshot = self._get_engine().reconstruir_conocimiento()
        logger.info(f"Knowledge rebuilt: {snapshot.total_draws} draws, {len(snapshot.perfiles)} profiles")

    def get_job_status(self) -> Dict[str, Any]:
        jobs = self.scheduler.get_jobs()
        return {
            'scheduler_running': self.is_running,
            'total_jobs': len(jobs),
            'jobs': [
                {
                    'id': job.id,
                    'name': job.name,
                    'next_run_time': job.next_run_time.isoformat() if job.next_run_time else None,
                    'trigger': str(job.trigger),
                }
                for job in jobs
            ],
        }


def setup_scheduler(engine=None) -> Optional[AnalysisScheduler]:
    """Create and start the scheduler when enabled."""
    scheduler = AnalysisScheduler(engine)
    scheduler.start()
    return scheduler if scheduler.is_running else None
