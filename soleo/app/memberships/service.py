"""Entitlement assignment, queries and the trial-plan bootstrap."""
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from ..errors import ConfigurationError, InvalidStateError, NotFoundError
from ..permissions import Action, is_allowed
from .models import (
    AssignmentResult,
    Entitlement,
    EntitlementStatus,
    HistoryEntry,
    HistoryItem,
    HistoryStatus,
    MembershipPlan,
)
from .repository import EntitlementRepository, PlanRepository

logger = logging.getLogger(__name__)

_ONE_DAY_SECONDS = 24 * 60 * 60


def compute_status(
    plan: Optional[MembershipPlan],
    *,
    assigned_at: Optional[datetime],
    expires_at: Optional[datetime],
    now: datetime,
) -> EntitlementStatus:
    """Derive the query view of an entitlement at ``now``."""

    is_active = expires_at is not None and now < expires_at
    if is_active:
        remaining = (expires_at - now).total_seconds()
        days_remaining = int(math.ceil(remaining / _ONE_DAY_SECONDS))
    else:
        days_remaining = 0
    return EntitlementStatus(
        plan=plan,
        assigned_at=assigned_at,
        expires_at=expires_at,
        is_active=is_active,
        days_remaining=days_remaining,
        is_expired=not is_active and plan is not None,
    )


class EntitlementService:
    """Owns every mutation of a user's membership state."""

    def __init__(
        self,
        *,
        plan_repository: PlanRepository,
        entitlement_repository: EntitlementRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._plans = plan_repository
        self._entitlements = entitlement_repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _now(self) -> datetime:
        current = self._clock()
        return current if current.tzinfo else current.replace(tzinfo=timezone.utc)

    def _load_holder(self, user_id: int) -> Entitlement:
        entitlement = self._entitlements.get_entitlement(user_id)
        if entitlement is None:
            raise NotFoundError("User not found", detail={"userId": user_id})
        if not is_allowed(entitlement.role, Action.HOLD_MEMBERSHIP):
            raise InvalidStateError(
                "Only client accounts can hold a membership",
                detail={"userId": user_id},
            )
        return entitlement

    def assign(self, user_id: int, plan_id: int) -> AssignmentResult:
        """Replace the user's current plan with ``plan_id``.

        The previous plan, if any, is archived as an EXPIRED history entry and
        the expiration window always restarts, even for the same plan.
        """

        entitlement = self._load_holder(user_id)
        plan = self._plans.get_plan(plan_id)
        if plan is None:
            raise NotFoundError("Membership not found", detail={"membershipId": plan_id})
        if not plan.is_active:
            raise InvalidStateError(
                "Membership is not active",
                detail={"membershipId": plan_id},
            )

        now = self._now()
        previous_plan: Optional[MembershipPlan] = None
        archived: Optional[HistoryEntry] = None
        history = entitlement.history

        if entitlement.plan_id is not None:
            previous_plan = self._plans.get_plan(entitlement.plan_id)
            archived = HistoryEntry(
                plan_id=entitlement.plan_id,
                assigned_at=entitlement.assigned_at or now,
                expired_at=now,
                status=HistoryStatus.EXPIRED,
                was_trial=bool(previous_plan and previous_plan.is_trial),
            )
            history = history.append(archived)

        expires_at = now + timedelta(days=plan.duration_days)
        updated = Entitlement(
            user_id=entitlement.user_id,
            role=entitlement.role,
            plan_id=plan.id,
            assigned_at=now,
            expires_at=expires_at,
            history=history,
        )
        self._entitlements.save_assignment(updated, archived)

        logger.info(
            "Membership assigned",
            extra={
                "user_id": user_id,
                "plan_id": plan.id,
                "previous_plan_id": entitlement.plan_id,
                "expires_at": expires_at.isoformat(),
                "was_replaced": archived is not None,
            },
        )
        return AssignmentResult(
            user_id=user_id,
            previous_plan_id=entitlement.plan_id,
            previous_plan=previous_plan,
            new_plan=plan,
            assigned_at=now,
            expires_at=expires_at,
            was_replaced=archived is not None,
            archived_entry=archived,
            entitlement=updated,
        )

    def find_trial_plan(self) -> Optional[MembershipPlan]:
        return self._plans.find_trial_plan()

    def assign_default(self, user_id: int) -> AssignmentResult:
        plan = self._plans.find_trial_plan()
        if plan is None:
            logger.error("No active trial membership is configured", extra={"user_id": user_id})
            raise ConfigurationError("No active trial membership is configured")
        return self.assign(user_id, plan.id)

    def get_current(self, user_id: int) -> EntitlementStatus:
        entitlement = self._load_holder(user_id)
        plan = self._plans.get_plan(entitlement.plan_id) if entitlement.plan_id is not None else None
        return compute_status(
            plan,
            assigned_at=entitlement.assigned_at,
            expires_at=entitlement.expires_at,
            now=self._now(),
        )

    def has_active_membership(self, user_id: int) -> bool:
        entitlement = self._entitlements.get_entitlement(user_id)
        if entitlement is None or entitlement.plan_id is None or entitlement.expires_at is None:
            return False
        return self._now() < entitlement.expires_at

    def get_history(self, user_id: int) -> List[HistoryItem]:
        entitlement = self._load_holder(user_id)
        plans = self._plans.get_plans(
            entry.plan_id for entry in entitlement.history if entry.plan_id is not None
        )
        return [
            HistoryItem(entry=entry, plan=plans.get(entry.plan_id) if entry.plan_id is not None else None)
            for entry in entitlement.history
        ]


__all__ = ["EntitlementService", "compute_status"]
