from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

import pytest

from soleo import jobs
from soleo.app.memberships import MembershipPlan
from soleo.app.users import UserRecord
from soleo.push import PushProvider

NOW = datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc)


class RecordingProvider(PushProvider):
    name = "recording"

    def __init__(self, failing_tokens: Iterable[str] = ()) -> None:
        self.failing = set(failing_tokens)
        self.messages: List[tuple] = []

    def send(self, tokens: Sequence[str], title: str, body: str, data=None) -> int:
        accepted = [token for token in tokens if token not in self.failing]
        self.messages.append((list(tokens), title, body))
        return len(accepted)


class FakeUsers:
    def __init__(self, users: Sequence[UserRecord]) -> None:
        self.users = list(users)
        self.expiring_query = None

    def list_expiring_memberships(self, *, now: datetime, until: datetime) -> List[UserRecord]:
        self.expiring_query = (now, until)
        return [
            user
            for user in self.users
            if user.membership_expires_at is not None and now < user.membership_expires_at <= until
        ]

    def list_reminder_candidates(self) -> List[UserRecord]:
        return [user for user in self.users if user.exercise_time]


class FakePlans:
    def get_plans(self, plan_ids) -> Dict[int, MembershipPlan]:
        catalog = {2: MembershipPlan(id=2, name="BRONCE", price=299, duration_days=30)}
        return {plan_id: catalog[plan_id] for plan_id in plan_ids if plan_id in catalog}


def _user(user_id: int, *, expires_in: Optional[timedelta] = None, exercise_time: Optional[str] = None,
          tokens: Sequence[str] = ("token",), plan_id: Optional[int] = 2) -> UserRecord:
    return UserRecord(
        id=user_id,
        name=f"Socio {user_id}",
        email=f"socio{user_id}@example.com",
        fcm_tokens=list(tokens),
        current_membership_id=plan_id,
        membership_expires_at=NOW + expires_in if expires_in is not None else None,
        exercise_time=exercise_time,
    )


def test_expiry_alerts_target_window_and_count_failures():
    users = FakeUsers(
        [
            _user(1, expires_in=timedelta(hours=20)),
            _user(2, expires_in=timedelta(days=2, hours=3), tokens=("broken",)),
            _user(3, expires_in=timedelta(days=10)),
            _user(4, expires_in=timedelta(days=1), plan_id=None),
        ]
    )
    provider = RecordingProvider(failing_tokens=["broken"])

    summary = jobs.send_membership_expiry_alerts(
        now=NOW, window_days=3, users=users, plans=FakePlans(), provider=provider
    )

    assert summary == jobs.JobSummary(candidates=3, notifications_sent=2, failures=1)
    assert users.expiring_query == (NOW, NOW + timedelta(days=3))
    bodies = [body for _, _, body in provider.messages]
    assert 'Socio 1, tu plan "BRONCE" expira hoy' in bodies[0]
    assert "expira en 3 días" in bodies[1]
    assert '"Semilla"' in bodies[2]


@pytest.mark.parametrize(
    "now_time, exercise_time, expected",
    [
        ((7, 2), "07:00", 1),
        ((7, 6), "07:00", 0),
        ((23, 58), "00:01", 1),
        ((0, 3), "23:59", 1),
    ],
)
def test_workout_reminders_match_preferred_time(now_time, exercise_time, expected):
    hour, minute = now_time
    users = FakeUsers([_user(1, exercise_time=exercise_time)])
    provider = RecordingProvider()

    summary = jobs.send_workout_reminders(
        now=datetime(2024, 7, 1, hour, minute), window_minutes=5, users=users, provider=provider
    )

    assert summary.candidates == expected
    assert summary.notifications_sent == expected


def test_run_job_updates_metrics():
    jobs._reset_metrics_for_testing()
    summary = jobs.JobSummary(candidates=4, notifications_sent=3, failures=1)

    result = jobs.run_job(jobs.EXPIRY_ALERTS, lambda: summary, now=NOW)

    assert result == summary
    metrics = jobs.get_job_metrics()[jobs.EXPIRY_ALERTS]
    assert metrics["runs"] == 1
    assert metrics["candidates"] == 4
    assert metrics["notifications_sent"] == 3
    assert metrics["failures"] == 1
    assert metrics["last_run_at"] == NOW.isoformat()
    assert metrics["last_success_at"] == NOW.isoformat()
    assert metrics["last_error"] is None


def test_run_job_records_failure():
    jobs._reset_metrics_for_testing()

    def boom():
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError):
        jobs.run_job(jobs.WORKOUT_REMINDERS, boom, now=NOW)

    metrics = jobs.get_job_metrics()[jobs.WORKOUT_REMINDERS]
    assert metrics["failures"] == 1
    assert metrics["last_success_at"] is None
    assert metrics["last_error"] == "RuntimeError: database unavailable"


def test_seconds_until_rolls_over_to_next_day():
    morning = datetime(2024, 7, 1, 8, 30, tzinfo=timezone.utc)

    assert jobs._seconds_until(9, 0, now=morning) == 30 * 60
    assert jobs._seconds_until(8, 0, now=morning) == (23 * 60 + 30) * 60


def test_disabled_scheduler_starts_nothing():
    config = jobs.JobsConfig(
        enabled=False,
        expiry_alert_hour=9,
        expiry_alert_minute=0,
        expiry_window_days=3,
        reminder_interval_minutes=5,
        reminder_window_minutes=5,
    )

    jobs.start_job_scheduler(config)

    assert jobs._workers == {}
