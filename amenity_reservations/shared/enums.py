"""Closed value sets for roles and the three reservation status tracks"""

from enum import Enum


class MemberRole(str, Enum):
    RESIDENT = "resident"
    JANITORIAL = "janitorial"
    ADMIN = "admin"


class ReservationStatus(str, Enum):
    NEW = "NEW"
    JANITORIAL_APPROVED = "JANITORIAL_APPROVED"
    FULLY_APPROVED = "FULLY_APPROVED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class ModificationStatus(str, Enum):
    NONE = "NONE"
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class DamageAssessmentStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ADJUSTED = "ADJUSTED"
    DENIED = "DENIED"


class DamageReviewAction(str, Enum):
    APPROVE = "approve"
    ADJUST = "adjust"
    DENY = "deny"


class ApprovalStep(str, Enum):
    JANITORIAL = "janitorial"
    ADMIN = "admin"


# Statuses that hold the amenity (everything except CANCELLED)
ACTIVE_STATUSES = (
    ReservationStatus.NEW,
    ReservationStatus.JANITORIAL_APPROVED,
    ReservationStatus.FULLY_APPROVED,
    ReservationStatus.COMPLETED,
)
