"""Amenity repository - Database operations for amenity policy"""

from typing import Optional

from sqlalchemy.orm import Session

from ...database import acquire_write_lock
from ...models import Amenity


class AmenityRepository:
    """Repository for amenity database operations"""

    @staticmethod
    def get_amenity(db: Session, amenity_id: int) -> Optional[Amenity]:
        """Get an amenity by ID"""
        return db.query(Amenity).filter(Amenity.id == amenity_id).first()

    @staticmethod
    def get_amenities(db: Session, community_id: int, active_only: bool = False) -> list[Amenity]:
        """Get all amenities of a community"""
        query = db.query(Amenity).filter(Amenity.community_id == community_id)
        if active_only:
            query = query.filter(Amenity.is_active.is_(True))
        return query.order_by(Amenity.name.asc()).all()

    @staticmethod
    def lock_amenity(db: Session, amenity_id: int) -> Optional[Amenity]:
        """Policy edits take the same row lock bookings do"""
        acquire_write_lock(db)
        return (
            db.query(Amenity)
            .populate_existing()
            .filter(Amenity.id == amenity_id)
            .with_for_update()
            .first()
        )

    @staticmethod
    def apply_policy(amenity: Amenity, **updates) -> Amenity:
        """Set provided policy fields; the caller owns the transaction"""
        for key, value in updates.items():
            if value is not None and hasattr(amenity, key):
                setattr(amenity, key, value)
        return amenity
