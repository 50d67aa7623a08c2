"""Background push jobs: membership expiry alerts and workout reminders."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Event, Lock, Thread
from typing import Callable, Dict, Optional

from .app.memberships import PlanRepository, PostgresPlanRepository
from .app.services.accounts import get_user_repository
from .app.services.notifications import (
    EXPIRY_ALERT_TITLE,
    WORKOUT_REMINDER_TITLE,
    expiry_alert_body,
    get_push_provider,
    notify_user,
    workout_reminder_body,
)
from .app.users import UserRepository
from .config import JobsConfig
from .push import PushProvider

logger = logging.getLogger(__name__)

EXPIRY_ALERTS = "membership_expiry_alerts"
WORKOUT_REMINDERS = "workout_reminders"

_ONE_DAY_SECONDS = 24 * 60 * 60
_MINUTES_PER_DAY = 24 * 60

_scheduler_lock = Lock()
_workers: Dict[str, "_JobWorker"] = {}


def _empty_metrics() -> Dict[str, object]:
    return {
        "runs": 0,
        "candidates": 0,
        "notifications_sent": 0,
        "failures": 0,
        "last_run_at": None,
        "last_success_at": None,
        "last_error": None,
    }


_JOB_METRICS: Dict[str, Dict[str, object]] = {
    EXPIRY_ALERTS: _empty_metrics(),
    WORKOUT_REMINDERS: _empty_metrics(),
}
_metrics_lock = Lock()


@dataclass(frozen=True)
class JobSummary:
    candidates: int = 0
    notifications_sent: int = 0
    failures: int = 0


def _record_run_start(job: str, started_at: datetime) -> None:
    with _metrics_lock:
        metrics = _JOB_METRICS[job]
        metrics["runs"] = int(metrics.get("runs", 0)) + 1
        metrics["last_run_at"] = started_at


def _record_run_success(job: str, completed_at: datetime, summary: JobSummary) -> None:
    with _metrics_lock:
        metrics = _JOB_METRICS[job]
        metrics["candidates"] = int(metrics.get("candidates", 0)) + summary.candidates
        metrics["notifications_sent"] = int(metrics.get("notifications_sent", 0)) + summary.notifications_sent
        metrics["failures"] = int(metrics.get("failures", 0)) + summary.failures
        metrics["last_success_at"] = completed_at
        metrics["last_error"] = None


def _record_run_failure(job: str, error: Exception) -> None:
    with _metrics_lock:
        metrics = _JOB_METRICS[job]
        metrics["failures"] = int(metrics.get("failures", 0)) + 1
        metrics["last_error"] = f"{type(error).__name__}: {error}"


def _aware(moment: Optional[datetime]) -> datetime:
    current = moment or datetime.now(timezone.utc)
    return current if current.tzinfo else current.replace(tzinfo=timezone.utc)


def send_membership_expiry_alerts(
    *,
    now: Optional[datetime] = None,
    window_days: int = 3,
    users: Optional[UserRepository] = None,
    plans: Optional[PlanRepository] = None,
    provider: Optional[PushProvider] = None,
) -> JobSummary:
    """Warn members whose plan ends within ``window_days``."""

    current_time = _aware(now)
    users = users or get_user_repository()
    plans = plans or PostgresPlanRepository()

    expiring = list(users.list_expiring_memberships(now=current_time, until=current_time + timedelta(days=window_days)))
    plan_names = {
        plan_id: plan.name
        for plan_id, plan in plans.get_plans(
            user.current_membership_id for user in expiring if user.current_membership_id is not None
        ).items()
    }

    sent = 0
    failures = 0
    for user in expiring:
        remaining = (user.membership_expires_at - current_time).total_seconds()
        days_left = max(1, int(math.ceil(remaining / _ONE_DAY_SECONDS)))
        body = expiry_alert_body(user.name, plan_names.get(user.current_membership_id), days_left)
        delivered = notify_user(user, EXPIRY_ALERT_TITLE, body, provider=provider)
        if delivered:
            sent += 1
        else:
            failures += 1
    return JobSummary(candidates=len(expiring), notifications_sent=sent, failures=failures)


def _minutes_apart(left: int, right: int) -> int:
    diff = abs(left - right) % _MINUTES_PER_DAY
    return min(diff, _MINUTES_PER_DAY - diff)


def send_workout_reminders(
    *,
    now: Optional[datetime] = None,
    window_minutes: int = 5,
    users: Optional[UserRepository] = None,
    provider: Optional[PushProvider] = None,
) -> JobSummary:
    """Remind clients whose preferred exercise time is close to ``now``.

    ``now`` is compared as wall-clock time; the scheduler passes local time.
    """

    current_time = now or datetime.now().astimezone()
    users = users or get_user_repository()
    current_minutes = current_time.hour * 60 + current_time.minute

    candidates = 0
    sent = 0
    failures = 0
    for user in users.list_reminder_candidates():
        if not user.exercise_time:
            continue
        hour, minute = (int(part) for part in user.exercise_time.split(":"))
        if _minutes_apart(current_minutes, hour * 60 + minute) > window_minutes:
            continue
        candidates += 1
        if notify_user(user, WORKOUT_REMINDER_TITLE, workout_reminder_body(user.name), provider=provider):
            sent += 1
        else:
            failures += 1
    return JobSummary(candidates=candidates, notifications_sent=sent, failures=failures)


def run_job(job: str, action: Callable[[], JobSummary], *, now: Optional[datetime] = None) -> JobSummary:
    current_time = _aware(now)
    _record_run_start(job, current_time)
    try:
        summary = action()
    except Exception as exc:
        _record_run_failure(job, exc)
        logger.exception("Background job failed", extra={"job": job})
        raise
    _record_run_success(job, current_time, summary)
    logger.info(
        "Background job completed",
        extra={
            "job": job,
            "candidates": summary.candidates,
            "notifications_sent": summary.notifications_sent,
            "failures": summary.failures,
        },
    )
    return summary


class _JobWorker(Thread):
    def __init__(self, job: str, action: Callable[[], JobSummary], *, initial_delay: float, interval: float):
        super().__init__(daemon=True, name=f"soleo-{job}")
        self.job = job
        self._action = action
        self._initial_delay = max(0.0, initial_delay)
        self._interval = max(1.0, interval)
        self._stop_event = Event()

    def stop(self) -> None:
        self._stop_event.set()

    def run(self) -> None:  # pragma: no cover - thread execution
        if self._stop_event.wait(self._initial_delay):
            return
        while not self._stop_event.is_set():
            try:
                run_job(self.job, self._action)
            except Exception:
                # logged by run_job; keep the schedule alive
                pass
            if self._stop_event.wait(self._interval):
                break


def _seconds_until(hour: int, minute: int = 0, *, now: Optional[datetime] = None) -> float:
    current = now or datetime.now().astimezone()
    target = current.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= current:
        target += timedelta(days=1)
    return max((target - current).total_seconds(), 0.0)


def start_job_scheduler(config: JobsConfig) -> None:
    with _scheduler_lock:
        if _workers or not config.enabled:
            return
        provider = get_push_provider()
        expiry_delay = _seconds_until(config.expiry_alert_hour, config.expiry_alert_minute)
        _workers[EXPIRY_ALERTS] = _JobWorker(
            EXPIRY_ALERTS,
            lambda: send_membership_expiry_alerts(window_days=config.expiry_window_days, provider=provider),
            initial_delay=expiry_delay,
            interval=_ONE_DAY_SECONDS,
        )
        _workers[WORKOUT_REMINDERS] = _JobWorker(
            WORKOUT_REMINDERS,
            lambda: send_workout_reminders(window_minutes=config.reminder_window_minutes, provider=provider),
            initial_delay=0.0,
            interval=config.reminder_interval_minutes * 60,
        )
        for worker in _workers.values():
            worker.start()
        logger.info(
            "Job scheduler started",
            extra={
                "expiry_initial_delay_seconds": round(expiry_delay, 2),
                "reminder_interval_minutes": config.reminder_interval_minutes,
            },
        )


def shutdown_job_scheduler() -> None:
    with _scheduler_lock:
        workers = list(_workers.values())
        for worker in workers:
            worker.stop()
        for worker in workers:
            worker.join(timeout=1.0)
        _workers.clear()
        logger.info("Job scheduler stopped")


def get_job_metrics() -> Dict[str, Dict[str, object]]:
    with _metrics_lock:
        snapshot: Dict[str, Dict[str, object]] = {}
        for key, value in _JOB_METRICS.items():
            snapshot[key] = {
                **value,
                "last_run_at": value["last_run_at"].isoformat() if value.get("last_run_at") else None,
                "last_success_at": value["last_success_at"].isoformat() if value.get("last_success_at") else None,
            }
        return snapshot


def _reset_metrics_for_testing() -> None:  # pragma: no cover - used in tests only
    with _metrics_lock:
        for metrics in _JOB_METRICS.values():
            metrics.update(_empty_metrics())


__all__ = [
    "EXPIRY_ALERTS",
    "JobSummary",
    "WORKOUT_REMINDERS",
    "get_job_metrics",
    "run_job",
    "send_membership_expiry_alerts",
    "send_workout_reminders",
    "shutdown_job_scheduler",
    "start_job_scheduler",
]
