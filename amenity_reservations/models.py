from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base
from .shared.enums import (
    DamageAssessmentStatus,
    MemberRole,
    ModificationStatus,
    ReservationStatus,
)


def _enum_column(enum_cls, **kwargs):
    """Store enums by value as plain strings so any SQL backend accepts them"""
    return Column(
        Enum(
            enum_cls,
            native_enum=False,
            length=32,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


class Community(Base):
    __tablename__ = "communities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    amenities = relationship("Amenity", back_populates="community")
    memberships = relationship("CommunityMembership", back_populates="community")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    memberships = relationship("CommunityMembership", back_populates="user")
    reservations = relationship("Reservation", back_populates="user", foreign_keys="Reservation.user_id")


class CommunityMembership(Base):
    """Role of a user inside one community; the same user may hold different roles elsewhere"""

    __tablename__ = "community_memberships"
    __table_args__ = (UniqueConstraint("community_id", "user_id", name="community_memberships_unique"),)

    id = Column(Integer, primary_key=True, index=True)
    community_id = Column(Integer, ForeignKey("communities.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = _enum_column(MemberRole, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    joined_at = Column(DateTime, server_default=func.now())

    community = relationship("Community", back_populates="memberships")
    user = relationship("User", back_populates="memberships")


class Amenity(Base):
    __tablename__ = "amenities"

    id = Column(Integer, primary_key=True, index=True)
    community_id = Column(Integer, ForeignKey("communities.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    capacity = Column(Integer, default=50, nullable=False)
    reservation_fee = Column(Float, default=0, nullable=False)
    deposit = Column(Float, default=0, nullable=False)  # Also the damage charge ceiling
    days_of_operation = Column(JSON, nullable=True)  # ["monday", "tuesday", ...]; null = every day
    hours_of_operation = Column(JSON, nullable=True)  # {"open": "09:00", "close": "22:00"} or {"open24Hours": true}

    # Approval routing
    janitorial_required = Column(Boolean, default=True, nullable=False)
    approval_required = Column(Boolean, default=True, nullable=False)  # Admin approval

    # Fee policy
    cancellation_fee_enabled = Column(Boolean, default=True, nullable=False)
    modification_fee_enabled = Column(Boolean, default=True, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    community = relationship("Community", back_populates="amenities")
    reservations = relationship("Reservation", back_populates="amenity")


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amenity_id = Column(Integer, ForeignKey("amenities.id"), nullable=False, index=True)
    community_id = Column(Integer, ForeignKey("communities.id"), nullable=False, index=True)

    # Scheduling (full timestamps; cleaning may run past midnight)
    date = Column(Date, nullable=False, index=True)
    setup_time_start = Column(DateTime, nullable=False)
    setup_time_end = Column(DateTime, nullable=False)
    party_time_start = Column(DateTime, nullable=False)
    party_time_end = Column(DateTime, nullable=False)
    cleaning_time_start = Column(DateTime, nullable=True)
    cleaning_time_end = Column(DateTime, nullable=True)

    # Event details
    guest_count = Column(Integer, default=1, nullable=False)
    event_name = Column(String(255), nullable=True)
    is_private = Column(Boolean, default=False, nullable=False)
    special_requirements = Column(Text, nullable=True)

    # Lifecycle: NEW → JANITORIAL_APPROVED → FULLY_APPROVED → COMPLETED, or CANCELLED
    status = _enum_column(ReservationStatus, default=ReservationStatus.NEW, nullable=False, index=True)
    version = Column(Integer, default=1, nullable=False)  # Bumped on every transition

    # Pricing snapshot taken at booking time
    total_fee = Column(Float, nullable=False)
    total_deposit = Column(Float, nullable=False)

    # Approval audit trail
    janitorial_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    janitorial_approved_at = Column(DateTime, nullable=True)
    admin_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    admin_approved_at = Column(DateTime, nullable=True)

    # Cancellation / rejection record
    cancellation_fee = Column(Float, nullable=True)
    cancellation_fee_reason = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Completion
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    # Staff-initiated modification proposal (live fields stay untouched until accepted)
    modification_status = _enum_column(ModificationStatus, default=ModificationStatus.NONE, nullable=False)
    proposed_date = Column(Date, nullable=True)
    proposed_party_time_start = Column(DateTime, nullable=True)
    proposed_party_time_end = Column(DateTime, nullable=True)
    modification_reason = Column(Text, nullable=True)
    modification_proposed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    modification_proposed_at = Column(DateTime, nullable=True)

    # Modification fee tracking (never decreases)
    modification_count = Column(Integer, default=0, nullable=False)
    modification_fees_total = Column(Float, default=0, nullable=False)
    last_modification_fee = Column(Float, nullable=True)
    last_modification_fee_reason = Column(Text, nullable=True)

    # Damage assessment sub-workflow: None → PENDING → APPROVED / ADJUSTED / DENIED
    damage_assessment_pending = Column(Boolean, default=False, nullable=False)
    damage_assessed = Column(Boolean, default=False, nullable=False)
    damage_assessment_status = _enum_column(DamageAssessmentStatus, nullable=True)
    damage_charge_amount = Column(Float, nullable=True)  # As submitted by janitorial
    damage_charge_adjusted = Column(Float, nullable=True)  # As altered by admin
    damage_charge = Column(Float, nullable=True)  # Final
    damage_description = Column(Text, nullable=True)
    damage_notes = Column(Text, nullable=True)
    admin_damage_notes = Column(Text, nullable=True)
    damage_assessed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    damage_assessed_at = Column(DateTime, nullable=True)
    damage_reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    damage_reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="reservations", foreign_keys=[user_id])
    amenity = relationship("Amenity", back_populates="reservations")
