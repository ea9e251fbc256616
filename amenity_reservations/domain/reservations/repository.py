"""Reservation repository - Database operations for reservations"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...database import acquire_write_lock
from ...models import Amenity, Reservation
from ...shared.enums import DamageAssessmentStatus, ReservationStatus
from .state_machine import Transition


class ReservationRepository:
    """Repository for reservation database operations"""

    @staticmethod
    def get_reservation(db: Session, reservation_id: int) -> Optional[Reservation]:
        """Get a reservation by ID, always reading the committed row"""
        return (
            db.query(Reservation)
            .options(joinedload(Reservation.amenity))
            .populate_existing()
            .filter(Reservation.id == reservation_id)
            .first()
        )

    @staticmethod
    def get_amenity(db: Session, amenity_id: int) -> Optional[Amenity]:
        """Re-read the amenity so policy edits made mid-request are seen"""
        return db.query(Amenity).populate_existing().filter(Amenity.id == amenity_id).first()

    @staticmethod
    def lock_amenity(db: Session, amenity_id: int) -> Optional[Amenity]:
        """
        Take a row lock on the amenity for the rest of the transaction.

        Every booking insert or move for an amenity goes through this lock, so
        conflict check + write are serialized per amenity. SQLite has no row
        locks, so there the whole database write lock is taken instead.
        """
        acquire_write_lock(db)
        return (
            db.query(Amenity)
            .populate_existing()
            .filter(Amenity.id == amenity_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def add_reservation(db: Session, reservation: Reservation) -> Reservation:
        db.add(reservation)
        db.flush()
        return reservation

    @staticmethod
    def apply_transition(db: Session, reservation: Reservation, transition: Transition) -> bool:
        """
        Conditional update: only lands if the row still has the status and
        version the plan was made from. Returns False on a lost race.
        """
        values = dict(transition.values)
        values["status"] = transition.to_status
        values["version"] = reservation.version + 1
        updated = (
            db.query(Reservation)
            .filter(
                Reservation.id == reservation.id,
                Reservation.status == transition.from_status,
                Reservation.version == reservation.version,
            )
            .update(values, synchronize_session=False)
        )
        return updated == 1

    @staticmethod
    def list_reservations(
        db: Session,
        community_id: int,
        user_id: Optional[int] = None,
        status: Optional[ReservationStatus] = None,
        amenity_id: Optional[int] = None,
    ) -> list[Reservation]:
        """List reservations in a community with optional filters"""
        query = db.query(Reservation).filter(Reservation.community_id == community_id)
        if user_id is not None:
            query = query.filter(Reservation.user_id == user_id)
        if status is not None:
            query = query.filter(Reservation.status == status)
        if amenity_id is not None:
            query = query.filter(Reservation.amenity_id == amenity_id)
        return query.order_by(Reservation.date.asc(), Reservation.party_time_start.asc()).all()

    @staticmethod
    def get_pending_damage_reviews(db: Session, community_id: int) -> list[Reservation]:
        """Completed reservations whose damage claim awaits admin review, oldest first"""
        return (
            db.query(Reservation)
            .filter(
                Reservation.community_id == community_id,
                Reservation.damage_assessment_pending.is_(True),
                Reservation.damage_assessment_status == DamageAssessmentStatus.PENDING,
            )
            .order_by(Reservation.damage_assessed_at.asc())
            .all()
        )

    @staticmethod
    def get_policy_affected(db: Session, amenity_id: int) -> list[Reservation]:
        """Reservations whose approval state can react to a policy edit"""
        return (
            db.query(Reservation)
            .filter(
                Reservation.amenity_id == amenity_id,
                Reservation.status.in_(
                    [
                        ReservationStatus.NEW,
                        ReservationStatus.JANITORIAL_APPROVED,
                        ReservationStatus.FULLY_APPROVED,
                    ]
                ),
            )
            .order_by(Reservation.id.asc())
            .all()
        )
