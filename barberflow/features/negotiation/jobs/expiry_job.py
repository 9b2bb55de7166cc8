"""
Expiry Job for pending appointment negotiations.

Two mechanisms work together:
- one asyncio timer task per pending appointment, firing at its active deadline
- a periodic sweep that expires anything overdue and re-arms missing timers
  (covers restarts and lost timers)

Expiry is at-least-once: a failed expiry is retried with exponential backoff.
"""

import asyncio
import random
from datetime import UTC, datetime, timedelta

from barberflow.features.negotiation.domain.models import AppointmentStatus
from barberflow.features.negotiation.services.negotiation_service import NegotiationService
from barberflow.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Job configuration
SWEEP_INTERVAL_SECONDS = 30
RECOVERY_HORIZON_MINUTES = 60
RETRY_MAX_ATTEMPTS = 5
RETRY_BASE_DELAY_SECONDS = 0.5
TIMER_GRACE_SECONDS = 0.05  # Fire just after the deadline, never on it


async def retry_with_backoff(func, *args, retries=3, base_delay=1.0, **kwargs):
    """Retry an async callable with exponential backoff."""
    for attempt in range(retries):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if attempt == retries - 1:
                raise  # Give up after last attempt
            delay = base_delay * (2**attempt) + random.uniform(0, base_delay * 0.3)
            logger.warning(
                "Retrying after failure",
                func=func.__name__,
                attempt=attempt + 1,
                delay=delay,
                error=str(e),
            )
            await asyncio.sleep(delay)


class ExpiryJobError(Exception):
    """Custom exception for expiry job operations."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        self.operation = operation


class ExpiryMetrics:
    """Counters for one sweep run."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.appointments_checked = 0
        self.appointments_expired = 0
        self.timers_armed = 0
        self.failures = 0
        self.total_duration_seconds = 0.0
        self.errors: list[dict] = []

    def record_expired(self, appointment_id: str):
        self.appointments_checked += 1
        self.appointments_expired += 1
        logger.debug("Appointment expired by sweep", appointment_id=appointment_id, job_run="expiry_sweep")

    def record_armed(self):
        self.appointments_checked += 1
        self.timers_armed += 1

    def record_skipped(self):
        self.appointments_checked += 1

    def record_failure(self, appointment_id: str, error: str):
        self.appointments_checked += 1
        self.failures += 1
        self.errors.append(
            {
                "appointment_id": appointment_id,
                "error": error,
                "timestamp": datetime.now(UTC).isoformat(),
            }
        )
        logger.error("Expiry failed", appointment_id=appointment_id, error=error, job_run="expiry_sweep")

    def finalize(self):
        self.total_duration_seconds = (datetime.now(UTC) - self.start_time).total_seconds()

    def to_dict(self) -> dict:
        return {
            "job_run": "expiry_sweep",
            "start_time": self.start_time.isoformat(),
            "total_duration_seconds": round(self.total_duration_seconds, 2),
            "appointments_checked": self.appointments_checked,
            "appointments_expired": self.appointments_expired,
            "timers_armed": self.timers_armed,
            "failures": self.failures,
            "errors_count": len(self.errors),
        }


class ExpiryScheduler:
    """
    Owns the expiry timers for one NegotiationService.

    The service calls schedule()/cancel() after every transition; the
    timers call back into service.expire(), which takes the appointment
    lock, so a timer racing a decision is resolved by whoever gets the
    lock first.
    """

    def __init__(
        self,
        service: NegotiationService,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        recovery_horizon_minutes: int = RECOVERY_HORIZON_MINUTES,
        retry_max_attempts: int = RETRY_MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY_SECONDS,
    ):
        self.service = service
        self.clock = service.clock
        self.sweep_interval_seconds = sweep_interval_seconds
        self.recovery_horizon = timedelta(minutes=recovery_horizon_minutes)
        self.retry_max_attempts = retry_max_attempts
        self.retry_base_delay = retry_base_delay

        self._timers: dict[str, asyncio.Task] = {}
        self._sweep_task: asyncio.Task | None = None
        self.is_running = False
        self.last_run_time: datetime | None = None
        self.job_metrics = ExpiryMetrics()

        service.attach_timers(self)

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    def schedule(self, appointment_id: str, when: datetime) -> None:
        """Arm (or re-arm) the one-shot timer for appointment_id."""
        self.cancel(appointment_id)
        delay = max((when - self.clock.now()).total_seconds(), 0.0) + TIMER_GRACE_SECONDS
        task = asyncio.get_running_loop().create_task(self._fire(appointment_id, delay))
        self._timers[appointment_id] = task

        def _discard(done: asyncio.Task, appointment_id: str = appointment_id) -> None:
            if self._timers.get(appointment_id) is done:
                del self._timers[appointment_id]

        task.add_done_callback(_discard)
        logger.debug("Expiry timer armed", appointment_id=appointment_id, delay_seconds=round(delay, 2))

    def cancel(self, appointment_id: str) -> None:
        task = self._timers.pop(appointment_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def has_timer(self, appointment_id: str) -> bool:
        return appointment_id in self._timers

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    async def _fire(self, appointment_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        # Unregister before expiring; the service cancels timers on the way out of pending
        if self._timers.get(appointment_id) is asyncio.current_task():
            del self._timers[appointment_id]

        try:
            expired = await self.expire_with_retry(appointment_id)
        except Exception as e:
            # Sweep picks it up on the next cycle
            logger.error("Expiry timer gave up", appointment_id=appointment_id, error=str(e))
            return

        if expired is None:
            await self._rearm_if_pending(appointment_id)

    async def _rearm_if_pending(self, appointment_id: str) -> None:
        """Timer woke before the deadline (clock drift or a rescheduled window)."""
        appointment = await self.service.appointments.get(appointment_id)
        if appointment is None or appointment.status != AppointmentStatus.PENDING:
            return
        deadline = self.service.policy.active_deadline(appointment)
        if deadline is not None and not self.has_timer(appointment_id):
            self.schedule(appointment_id, deadline)

    async def expire_with_retry(self, appointment_id: str):
        return await retry_with_backoff(
            self.service.expire,
            appointment_id,
            retries=self.retry_max_attempts,
            base_delay=self.retry_base_delay,
        )

    # ------------------------------------------------------------------
    # Sweep / recovery
    # ------------------------------------------------------------------

    async def run_once(self) -> dict:
        """
        Expire overdue appointments and arm timers for ones due soon.

        Returns:
            Dict: Sweep metrics
        """
        if self.is_running:
            logger.warning("Expiry sweep already running, skipping this iteration")
            return {"skipped": True, "reason": "already_running"}

        try:
            self.is_running = True
            self.job_metrics.reset()

            now = self.clock.now()
            try:
                candidates = await self.service.appointments.list_pending_expiring(now + self.recovery_horizon)
            except Exception as e:
                raise ExpiryJobError(f"Failed to load pending appointments: {e}", operation="load") from e

            for appointment in candidates:
                deadline = self.service.policy.active_deadline(appointment)
                if appointment.status != AppointmentStatus.PENDING or deadline is None:
                    self.job_metrics.record_skipped()
                    continue

                if now > deadline:
                    try:
                        expired = await self.expire_with_retry(appointment.id)
                    except Exception as e:
                        self.job_metrics.record_failure(appointment.id, f"{type(e).__name__}: {e}")
                        continue
                    if expired is not None:
                        self.job_metrics.record_expired(appointment.id)
                    else:
                        self.job_metrics.record_skipped()
                elif not self.has_timer(appointment.id):
                    self.schedule(appointment.id, deadline)
                    self.job_metrics.record_armed()
                else:
                    self.job_metrics.record_skipped()

            self.job_metrics.finalize()
            self.last_run_time = datetime.now(UTC)
            metrics = self.job_metrics.to_dict()
            if metrics["appointments_checked"]:
                logger.info("Expiry sweep completed", **metrics)
            return metrics

        finally:
            self.is_running = False

    async def start(self, run_sweep_loop: bool = True) -> None:
        """Recover timers from storage and optionally start the periodic sweep."""
        metrics = await self.run_once()
        logger.info(
            "Expiry scheduler started",
            recovered_timers=metrics.get("timers_armed", 0),
            expired_on_start=metrics.get("appointments_expired", 0),
            sweep_interval_seconds=self.sweep_interval_seconds,
        )
        if run_sweep_loop and self._sweep_task is None:
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def stop(self) -> None:
        tasks = list(self._timers.values())
        self._timers.clear()
        if self._sweep_task is not None:
            tasks.append(self._sweep_task)
            self._sweep_task = None

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Expiry scheduler stopped", cancelled_tasks=len(tasks))

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Error in expiry sweep", error=str(e), error_type=type(e).__name__)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_job_status(self) -> dict:
        return {
            "job_name": "expiry_sweep",
            "is_running": self.is_running,
            "sweep_active": self._sweep_task is not None and not self._sweep_task.done(),
            "active_timers": self.timer_count,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "sweep_interval_seconds": self.sweep_interval_seconds,
            "last_run_metrics": self.job_metrics.to_dict() if self.last_run_time else None,
        }

    def health_check(self) -> dict:
        """
        Health check for the expiry scheduler.

        Overdue means no sweep finished within twice the sweep interval.
        """
        now = datetime.now(UTC)
        overdue_threshold = timedelta(seconds=self.sweep_interval_seconds * 2)
        is_overdue = self.last_run_time is not None and (now - self.last_run_time) > overdue_threshold
        started = self.last_run_time is not None

        health_status = {
            "healthy": started and not is_overdue,
            "service": "expiry_scheduler",
            "is_running": self.is_running,
            "last_run_time": self.last_run_time.isoformat() if self.last_run_time else None,
            "is_overdue": is_overdue,
            "active_timers": self.timer_count,
        }
        if not started:
            health_status["warning"] = "Scheduler has not completed a sweep yet"
        elif is_overdue:
            health_status["warning"] = (
                f"Sweep overdue by {(now - self.last_run_time).total_seconds():.1f} seconds"
            )
        return health_status


async def start_expiry_sweep_scheduler() -> None:
    """
    Standalone worker entry: run the sweep loop against the configured storage.

    Only meaningful with the redis backend, where the API process and the
    worker share state.
    """
    from barberflow.config import settings
    from barberflow.features.negotiation.runtime import build_runtime

    runtime = await build_runtime(settings)
    logger.info("Starting expiry sweep worker", storage=settings.STORAGE_BACKEND)
    try:
        await runtime.scheduler.start(run_sweep_loop=True)
        while True:
            await asyncio.sleep(3600)
    finally:
        await runtime.close()


if __name__ == "__main__":
    asyncio.run(start_expiry_sweep_scheduler())
