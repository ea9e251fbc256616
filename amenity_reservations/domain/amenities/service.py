"""Amenity service - policy reads and admin policy edits"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from ...models import Amenity, User
from ...services.notification_service import emit_event
from ...shared.errors import NotFoundError, PermissionDenied
from ..memberships.service import MembershipService
from ..reservations.repository import ReservationRepository
from ..reservations.state_machine import plan_policy_adjustment
from .policy import required_approvals
from .repository import AmenityRepository
from .schemas import AmenityPolicyUpdate

logger = logging.getLogger(__name__)


@dataclass
class PolicyChangeSummary:
    """What a policy edit did to reservations already in flight"""

    amenity: Amenity
    auto_approved_ids: list[int] = field(default_factory=list)
    unconfirmed_ids: list[int] = field(default_factory=list)

    @property
    def auto_approved_count(self) -> int:
        return len(self.auto_approved_ids)

    @property
    def unconfirmed_count(self) -> int:
        return len(self.unconfirmed_ids)


class AmenityPolicyService:
    """Service layer for amenity policy"""

    def __init__(self, db: Session, background_tasks: Optional[BackgroundTasks] = None):
        self.db = db
        self.background_tasks = background_tasks
        self.repo = AmenityRepository()
        self.reservations = ReservationRepository()
        self.memberships = MembershipService(db)

    def get_amenity(self, amenity_id: int, user: User) -> Amenity:
        """Any active member of the amenity's community may read its policy"""
        amenity = self.repo.get_amenity(self.db, amenity_id)
        if not amenity:
            raise NotFoundError("Amenity not found", amenityId=amenity_id)
        self.memberships.resolve_actor(user, amenity.community_id)
        return amenity

    def list_amenities(self, community_id: int, user: User) -> list[Amenity]:
        actor = self.memberships.resolve_actor(user, community_id)
        return self.repo.get_amenities(self.db, community_id, active_only=not actor.is_staff)

    def update_policy(self, amenity_id: int, data: AmenityPolicyUpdate, user: User) -> PolicyChangeSummary:
        """
        Apply an admin's policy edit and re-route reservations in flight.

        Turning an approval requirement off auto-advances reservations that were
        only waiting on it; turning one on sends FULLY_APPROVED reservations that
        skipped it back for review. The edit and every adjustment commit together.
        """
        amenity = self.repo.lock_amenity(self.db, amenity_id)
        if not amenity:
            raise NotFoundError("Amenity not found", amenityId=amenity_id)
        actor = self.memberships.resolve_actor(user, amenity.community_id)
        if not actor.is_admin:
            logger.warning(f"⚠️ User {user.id} attempted policy edit on amenity {amenity_id} without admin role")
            self.db.rollback()
            raise PermissionDenied("Admin access required")

        before = (amenity.janitorial_required, amenity.approval_required)
        self.repo.apply_policy(
            amenity,
            janitorial_required=data.janitorialRequired,
            approval_required=data.approvalRequired,
            cancellation_fee_enabled=data.cancellationFeeEnabled,
            modification_fee_enabled=data.modificationFeeEnabled,
            capacity=data.capacity,
            reservation_fee=data.reservationFee,
            deposit=data.deposit,
            days_of_operation=data.daysOfOperation,
            hours_of_operation=data.hoursOfOperation.model_dump(exclude_none=True) if data.hoursOfOperation else None,
            is_active=data.isActive,
        )
        after = (amenity.janitorial_required, amenity.approval_required)

        relaxed = any(was and not now for was, now in zip(before, after))
        tightened = any(now and not was for was, now in zip(before, after))

        summary = PolicyChangeSummary(amenity=amenity)
        applied = []
        if relaxed or tightened:
            sequence = required_approvals(amenity)
            for reservation in self.reservations.get_policy_affected(self.db, amenity.id):
                transition = plan_policy_adjustment(reservation, sequence, relaxed, tightened)
                if transition is None:
                    continue
                if not self.reservations.apply_transition(self.db, reservation, transition):
                    logger.warning(
                        f"⚠️ Reservation {reservation.id} changed concurrently; policy adjustment skipped"
                    )
                    continue
                applied.append((reservation, transition))
                if transition.event == "reservation.auto_approved":
                    summary.auto_approved_ids.append(reservation.id)
                else:
                    summary.unconfirmed_ids.append(reservation.id)

        self.db.commit()
        self.db.refresh(amenity)
        logger.info(
            f"✅ Amenity {amenity.id} policy updated: janitorial={amenity.janitorial_required}, "
            f"admin={amenity.approval_required}, auto_approved={summary.auto_approved_count}, "
            f"unconfirmed={summary.unconfirmed_count}"
        )

        for reservation, transition in applied:
            self.db.refresh(reservation)
            emit_event(
                transition.event,
                reservation,
                actor.user_id,
                reason=transition.reason,
                background_tasks=self.background_tasks,
            )

        return summary
