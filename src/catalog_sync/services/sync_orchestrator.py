"""
Sync orchestration with a single-flight guard and cron scheduling.

State machine: IDLE -> RUNNING -> IDLE. A second ``run_sync`` while RUNNING
fails fast with ``SyncAlreadyInProgressError``; nothing is queued. The state
check and the transition to RUNNING happen with no await in between, so the
guard is atomic on the event loop. The guard is process-local.
"""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from catalog_sync.exceptions import SyncAlreadyInProgressError
from catalog_sync.services.order_sync import OrderSyncPipeline
from catalog_sync.services.product_reconciler import utcnow
from catalog_sync.services.retention import RetentionCleaner

logger = structlog.get_logger()

SCHEDULED_JOB_ID = "catalog_sync"

CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def _cron_day_of_week(field: str) -> str:
    """
    Rewrite a cron day-of-week field with weekday names.

    Cron counts 0 (and 7) as Sunday while APScheduler counts 0 as Monday;
    names mean the same to both. Fields without digits pass through.
    """
    if not any(ch.isdigit() for ch in field):
        return field

    days: set[int] = set()
    for part in field.split(","):
        base, _, step_text = part.partition("/")
        step = int(step_text) if step_text else 1
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            start, end = (int(value) for value in base.split("-", 1))
        else:
            start = int(base)
            end = 6 if step_text else start
        if not 0 <= start <= end <= 7 or step < 1:
            raise ValueError(f"Invalid cron day-of-week field: {field!r}")
        days.update(day % 7 for day in range(start, end + 1, step))
    return ",".join(CRON_WEEKDAYS[day] for day in sorted(days))


def cron_trigger(cron_expr: str, timezone: str = "UTC") -> CronTrigger:
    """Build a trigger from a standard 5-field cron expression."""
    fields = cron_expr.split()
    if len(fields) != 5:
        raise ValueError(f"Expected a 5-field cron expression, got {cron_expr!r}")
    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_cron_day_of_week(day_of_week),
        timezone=timezone,
    )


class SyncState(Enum):
    """Orchestrator run state."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SyncStats:
    """Cumulative counters for this process."""

    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    last_error: str | None = None


@dataclass
class SyncResult:
    """Outcome of one successful sync run."""

    orders_synced: int
    errors: int
    orders_deleted: int
    products_deleted: int
    timestamp: datetime
    success: bool = True


@dataclass
class SyncStatus:
    """Snapshot of orchestrator state."""

    is_running: bool
    last_sync: datetime | None
    stats: SyncStats = field(default_factory=SyncStats)


class SyncOrchestrator:
    """Runs order sync then retention cleanup as one logical operation."""

    def __init__(
        self,
        pipeline: OrderSyncPipeline,
        cleaner: RetentionCleaner,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.pipeline = pipeline
        self.cleaner = cleaner
        self.clock = clock
        self._state = SyncState.IDLE
        self._last_sync: datetime | None = None
        self._stats = SyncStats()
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._state is SyncState.RUNNING

    async def run_sync(self) -> SyncResult:
        """
        Execute one sync run.

        Raises:
            SyncAlreadyInProgressError: Another run is executing.
            CatalogSyncError: Either phase failed; the run is recorded as failed.
        """
        if self._state is SyncState.RUNNING:
            raise SyncAlreadyInProgressError()
        self._state = SyncState.RUNNING
        self._stats.total_syncs += 1

        try:
            with structlog.contextvars.bound_contextvars(sync_run_id=uuid.uuid4().hex):
                logger.info("Starting sync process")

                result = await self.pipeline.sync()
                cleanup = await self.cleaner.cleanup()

                self._last_sync = self.clock()
                self._stats.successful_syncs += 1
                self._stats.last_error = None

                logger.info(
                    "Sync completed successfully",
                    orders_synced=result["synced"],
                    errors=result["errors"],
                    orders_deleted=cleanup["deleted"],
                    products_deleted=cleanup["products_deleted"],
                )
                return SyncResult(
                    orders_synced=result["synced"],
                    errors=result["errors"],
                    orders_deleted=cleanup["deleted"],
                    products_deleted=cleanup["products_deleted"],
                    timestamp=self._last_sync,
                )
        except Exception as e:
            self._stats.failed_syncs += 1
            self._stats.last_error = str(e)
            logger.error("Sync failed", error=str(e), exc_info=True)
            raise
        finally:
            self._state = SyncState.IDLE

    def get_status(self) -> SyncStatus:
        return SyncStatus(
            is_running=self.is_running,
            last_sync=self._last_sync,
            stats=SyncStats(**vars(self._stats)),
        )

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def start_scheduled(self, cron_expr: str, timezone: str = "UTC") -> None:
        """Trigger ``run_sync`` on a 5-field cron schedule. Must be called inside a running loop."""
        if self._scheduler is not None:
            logger.warning("Scheduled sync already started")
            return

        trigger = cron_trigger(cron_expr, timezone=timezone)
        self._scheduler = AsyncIOScheduler(timezone=timezone)
        self._scheduler.add_job(
            self.scheduled_tick,
            trigger=trigger,
            id=SCHEDULED_JOB_ID,
            name="Catalog Sync",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("Scheduled sync initialized", cron=cron_expr, timezone=timezone)

    def stop_scheduled(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Scheduled sync stopped")

    def next_scheduled_run(self) -> datetime | None:
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(SCHEDULED_JOB_ID)
        return job.next_run_time if job else None

    async def scheduled_tick(self) -> dict[str, Any] | None:
        """One scheduler firing: skip while running, never raise into the scheduler."""
        if self.is_running:
            logger.info("Sync already running, skipping scheduled sync")
            return None

        logger.info("Starting scheduled sync")
        try:
            result = await self.run_sync()
        except SyncAlreadyInProgressError:
            logger.info("Sync already running, skipping scheduled sync")
            return None
        except Exception as e:
            logger.error("Scheduled sync failed", error=str(e))
            return None
        return vars(result)
