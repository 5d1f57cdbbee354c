"""Celery application for sync worker."""

from celery import Celery
from celery.schedules import crontab

from catalog_sync.config import get_settings
from catalog_sync.log_config import configure_logging

settings = get_settings()
configure_logging(settings)


def crontab_from_expr(expr: str) -> crontab:
    """Build a Celery crontab from a 5-field cron expression."""
    minute, hour, day_of_month, month_of_year, day_of_week = expr.split()
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_orders",
        "sync_worker.tasks.sync_products",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.sync_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # 1 hour
    task_soft_time_limit=3300,  # 55 minutes
    worker_prefetch_multiplier=1,
    # One task at a time so the process-local single-flight guard holds
    worker_concurrency=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks
beat_schedule = {
    "backfill-missing-products": {
        "task": "sync_worker.tasks.sync_products.backfill_missing_products",
        "schedule": crontab_from_expr(settings.backfill_cron_schedule),
    },
}
if settings.sync_scheduler == "celery":
    beat_schedule["catalog-sync"] = {
        "task": "sync_worker.tasks.sync_orders.run_catalog_sync",
        "schedule": crontab_from_expr(settings.sync_cron_schedule),
    }
app.conf.beat_schedule = beat_schedule


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync", "--concurrency=1"])


if __name__ == "__main__":
    run()
