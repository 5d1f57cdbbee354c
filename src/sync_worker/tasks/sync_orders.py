"""Order synchronization tasks."""

from dataclasses import asdict

import structlog
from celery import shared_task

from catalog_sync.exceptions import PersistenceError, SyncAlreadyInProgressError
from sync_worker.tasks.runner import run_async

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def run_catalog_sync(self) -> dict:
    """
    Run one catalog sync: order ingestion, then retention cleanup.

    A run already in progress is reported as skipped rather than retried.
    Remote fetch failures are counted inside the run; a storage failure that
    fails the run is retried.

    Returns:
        dict: Summary of sync operation
    """
    logger.info("Starting catalog sync task")

    try:
        result = run_async(lambda services: services.orchestrator.run_sync())
    except SyncAlreadyInProgressError:
        logger.info("Sync already running, skipping task")
        return {"skipped": True}
    except PersistenceError as e:
        logger.error("Catalog sync failed, retrying", error=str(e))
        raise self.retry(exc=e)

    summary = asdict(result)
    summary["timestamp"] = result.timestamp.isoformat()
    return summary
