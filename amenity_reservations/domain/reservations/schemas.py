"""Reservation domain schemas - Pydantic models for validation"""

from datetime import date as date_type
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.enums import (
    DamageAssessmentStatus,
    DamageReviewAction,
    ModificationStatus,
    ReservationStatus,
)
from ...shared.validators import clean_optional_text, normalize_local_datetime

SCHEDULE_FIELDS = ("setupTimeStart", "setupTimeEnd", "partyTimeStart", "partyTimeEnd")


class ReservationCreate(BaseModel):
    """Schema for booking an amenity"""

    amenityId: int
    date: date_type
    setupTimeStart: datetime
    setupTimeEnd: datetime
    partyTimeStart: datetime
    partyTimeEnd: datetime
    guestCount: int = Field(ge=1)
    eventName: Optional[str] = None
    isPrivate: bool = False
    specialRequirements: Optional[str] = None

    @field_validator(*SCHEDULE_FIELDS)
    @classmethod
    def to_local_time(cls, v):
        return normalize_local_datetime(v)

    @field_validator("eventName", "specialRequirements")
    @classmethod
    def strip_text(cls, v):
        return clean_optional_text(v)


class ReservationUpdate(BaseModel):
    """Schema for a resident's direct edit of their own reservation"""

    date: Optional[date_type] = None
    setupTimeStart: Optional[datetime] = None
    setupTimeEnd: Optional[datetime] = None
    partyTimeStart: Optional[datetime] = None
    partyTimeEnd: Optional[datetime] = None
    guestCount: Optional[int] = Field(default=None, ge=1)
    eventName: Optional[str] = None
    isPrivate: Optional[bool] = None
    specialRequirements: Optional[str] = None
    expectedStatus: Optional[ReservationStatus] = None

    @field_validator(*SCHEDULE_FIELDS)
    @classmethod
    def to_local_time(cls, v):
        return normalize_local_datetime(v)

    @field_validator("eventName", "specialRequirements")
    @classmethod
    def strip_text(cls, v):
        return clean_optional_text(v)


class ApprovalRequest(BaseModel):
    """Approve the next pending step; janitorial may attach the cleaning window"""

    cleaningTimeStart: Optional[datetime] = None
    cleaningTimeEnd: Optional[datetime] = None
    expectedStatus: Optional[ReservationStatus] = None

    @field_validator("cleaningTimeStart", "cleaningTimeEnd")
    @classmethod
    def to_local_time(cls, v):
        return normalize_local_datetime(v)


class RejectionRequest(BaseModel):
    reason: Optional[str] = None
    expectedStatus: Optional[ReservationStatus] = None


class CompletionRequest(BaseModel):
    damagesFound: bool = False
    expectedStatus: Optional[ReservationStatus] = None


class ModificationProposal(BaseModel):
    """Staff-proposed alternate date/time, pending the resident's answer"""

    proposedDate: date_type
    proposedPartyTimeStart: datetime
    proposedPartyTimeEnd: datetime
    reason: str

    @field_validator("proposedPartyTimeStart", "proposedPartyTimeEnd")
    @classmethod
    def to_local_time(cls, v):
        return normalize_local_datetime(v)


class ModificationResponse(BaseModel):
    accept: bool


class DamageAssessmentRequest(BaseModel):
    amount: float
    description: str
    notes: Optional[str] = None


class DamageReviewRequest(BaseModel):
    action: DamageReviewAction
    amount: Optional[float] = None
    adminNotes: Optional[str] = None


class FeeResponse(BaseModel):
    amount: float
    reason: str


class ReservationResponse(BaseModel):
    """Schema for reservation response"""

    id: int
    userId: int
    amenityId: int
    communityId: int
    amenityName: Optional[str] = None
    date: date_type
    setupTimeStart: datetime
    setupTimeEnd: datetime
    partyTimeStart: datetime
    partyTimeEnd: datetime
    cleaningTimeStart: Optional[datetime] = None
    cleaningTimeEnd: Optional[datetime] = None
    guestCount: int
    eventName: Optional[str] = None
    isPrivate: bool
    specialRequirements: Optional[str] = None
    status: ReservationStatus
    version: int
    totalFee: float
    totalDeposit: float
    janitorialApprovedAt: Optional[datetime] = None
    adminApprovedAt: Optional[datetime] = None
    rejectionReason: Optional[str] = None
    cancellationFee: Optional[float] = None
    cancellationFeeReason: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    modificationStatus: ModificationStatus
    proposedDate: Optional[date_type] = None
    proposedPartyTimeStart: Optional[datetime] = None
    proposedPartyTimeEnd: Optional[datetime] = None
    modificationReason: Optional[str] = None
    modificationCount: int
    modificationFeesTotal: float
    lastModificationFee: Optional[float] = None
    lastModificationFeeReason: Optional[str] = None
    damageAssessmentPending: bool
    damageAssessed: bool
    damageAssessmentStatus: Optional[DamageAssessmentStatus] = None
    damageChargeAmount: Optional[float] = None
    damageChargeAdjusted: Optional[float] = None
    damageCharge: Optional[float] = None
    damageDescription: Optional[str] = None
    damageNotes: Optional[str] = None
    adminDamageNotes: Optional[str] = None
    createdAt: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReservationOutcomeResponse(BaseModel):
    """Result of a mutating operation: updated reservation plus any computed fee"""

    message: str
    reservation: ReservationResponse
    fee: Optional[FeeResponse] = None


class BlockedWindowResponse(BaseModel):
    """A booking as seen on the availability calendar; who booked it is not exposed"""

    reservationId: int
    amenityId: int
    amenityName: Optional[str] = None
    date: date_type
    status: ReservationStatus
    setupTimeStart: datetime
    partyTimeStart: datetime
    partyTimeEnd: datetime
    cleaningTimeStart: Optional[datetime] = None
    cleaningTimeEnd: Optional[datetime] = None
    blockedFrom: datetime
    blockedUntil: datetime


class AvailabilityResponse(BaseModel):
    startDate: date_type
    endDate: date_type
    amenityId: Optional[int] = None
    blocked: list[BlockedWindowResponse]


class TimeSlotResponse(BaseModel):
    time: str
    start: datetime
    end: datetime
    available: bool


class TimeSlotsResponse(BaseModel):
    date: date_type
    amenityId: int
    timeSlots: list[TimeSlotResponse]
    existingReservations: int
