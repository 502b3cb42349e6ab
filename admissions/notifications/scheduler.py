"""Background retry of failed SMS status notifications."""

import threading
import time
from datetime import UTC, datetime

from apscheduler.schedulers.background import BackgroundScheduler

RETRY_JOB_ID = "retry_notifications"
_MAX_ERROR_LENGTH = 500


class JobTelemetry:
    """Per-job run history, read by the ``/health`` endpoint."""

    def __init__(self):
        self.lock = threading.Lock()
        self.state = {"updated_at": None, "jobs": {}}

    def record(self, job_id, outcome, elapsed, error=None, resent=None):
        stamp = datetime.now(UTC).isoformat()
        with self.lock:
            job = self.state["jobs"].setdefault(job_id, {"consecutive_failures": 0})
            job.update(last_status=outcome, last_run_at=stamp, last_duration_ms=round(elapsed * 1000, 2))
            if outcome == "ok":
                job.update(last_success_at=stamp, last_error=None, consecutive_failures=0, last_resent=resent)
            else:
                job["last_error_at"] = stamp
                job["last_error"] = (error or "unknown")[:_MAX_ERROR_LENGTH]
                job["consecutive_failures"] += 1
            self.state["updated_at"] = stamp


def _retry_pass(app, telemetry):
    from ..sms_service import retry_failed_notifications

    started = time.perf_counter()
    with app.app_context():
        try:
            resent = retry_failed_notifications()
        except Exception:
            # A crashing pass must not kill the scheduler thread.
            app.logger.exception("Notification retry pass crashed.")
            telemetry.record(RETRY_JOB_ID, "error", time.perf_counter() - started, error="Unhandled exception")
            return

    elapsed = time.perf_counter() - started
    telemetry.record(RETRY_JOB_ID, "ok", elapsed, resent=resent)
    app.logger.info("Notification retry pass resent %s message(s) in %.2f ms.", resent, elapsed * 1000)


def init_scheduler(app):
    telemetry = JobTelemetry()
    app.scheduler_state = telemetry.state
    app.scheduler_state_lock = telemetry.lock

    def run_notification_retry():
        _retry_pass(app, telemetry)

    scheduler = BackgroundScheduler()
    scheduler.add_job(
        func=run_notification_retry,
        trigger="interval",
        minutes=max(1, int(app.config.get("SCHEDULER_RETRY_INTERVAL_MINUTES", 15))),
        id=RETRY_JOB_ID,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    app.scheduler = scheduler
    app.run_notification_retry = run_notification_retry
    return scheduler
