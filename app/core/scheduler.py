"""
Background scheduler for the market sync.

Jobs:
- Live matches: every minute (records younger than the live TTL are skipped)
- Upcoming matches: every 10 minutes
- Finished matches: every 30 minutes (only matches not yet stored as FINISHED)

Scheduler: APScheduler (lightweight, FastAPI-compatible). Started from the
app lifespan when SCHEDULER_ENABLED is set, with the process-wide upstream
client.
"""
from typing import Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings as default_settings
from app.core.database import SessionLocal
from app.core.logging import get_logger

logger = get_logger(__name__)

# job id -> (sync type, interval in minutes, name)
SYNC_JOBS = {
    "market_sync_live": ("live", 1, "Sync Live Matches"),
    "market_sync_upcoming": ("upcoming", 10, "Sync Upcoming Matches"),
    "market_sync_finished": ("finished", 30, "Sync Finished Matches"),
}


class AutomationScheduler:
    """
    Scheduler for the periodic market sync jobs.

    Args:
        upstream: Process-wide UpstreamClient
        session_factory: Creates a database session per job run
        settings: Settings instance
    """

    def __init__(self, upstream, session_factory: Callable = SessionLocal, settings=None):
        self.upstream = upstream
        self.session_factory = session_factory
        self.settings = settings or default_settings
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        """Start the scheduler."""
        if self.running:
            logger.warning("Scheduler already running")
            return

        logger.info("Starting market sync scheduler...")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Only one instance of each job
                "misfire_grace_time": 60,
            },
        )

        for job_id, (sync_type, minutes, name) in SYNC_JOBS.items():
            self.scheduler.add_job(
                self.run_sync,
                trigger=IntervalTrigger(minutes=minutes),
                args=[sync_type],
                id=job_id,
                name=name,
                replace_existing=True,
            )

        self.scheduler.start()
        self.running = True

        logger.info("Scheduler started with %d jobs", len(self.scheduler.get_jobs()))
        self._log_scheduled_jobs()

    async def stop(self):
        """Stop the scheduler."""
        if not self.running:
            return

        logger.info("Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")

    async def run_sync(self, sync_type: str) -> Dict:
        """Run one scheduled sync with its own database session."""
        from app.services.sync.orchestrator import MatchSyncOrchestrator

        db = self.session_factory()
        try:
            orchestrator = MatchSyncOrchestrator(db, self.upstream, settings=self.settings)
            result = await orchestrator.run_scheduled_sync(sync_type)
            logger.info(
                f"Scheduled {sync_type} sync: {result['summary']['totalSynced']} synced, "
                f"{result['summary']['totalErrors']} errors",
                extra={"sync_type": sync_type},
            )
            return result
        except Exception as e:
            logger.error(f"Scheduled {sync_type} sync failed: {e}", extra={"sync_type": sync_type})
            return {"success": False, "error": str(e)}
        finally:
            db.close()

    def jobs(self) -> list:
        if self.scheduler is None:
            return []
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self.scheduler.get_jobs()
        ]

    def _log_scheduled_jobs(self):
        """Log all scheduled jobs for visibility."""
        for job in self.jobs():
            logger.info(f"  {job['name']} ({job['id']}), next run: {job['next_run_time'] or 'Pending'}")


# Global scheduler instance
_scheduler: Optional[AutomationScheduler] = None


async def start_scheduler(upstream, settings=None) -> AutomationScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AutomationScheduler(upstream, settings=settings)
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[AutomationScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
