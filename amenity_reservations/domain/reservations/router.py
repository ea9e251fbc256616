"""Reservation router - FastAPI endpoints for the reservation lifecycle"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Reservation, User
from ...shared.enums import ReservationStatus
from .conflicts import reservation_span
from .fees import FeeQuote
from .schemas import (
    ApprovalRequest,
    AvailabilityResponse,
    BlockedWindowResponse,
    CompletionRequest,
    DamageAssessmentRequest,
    DamageReviewRequest,
    FeeResponse,
    ModificationProposal,
    ModificationResponse,
    RejectionRequest,
    ReservationCreate,
    ReservationOutcomeResponse,
    ReservationResponse,
    ReservationUpdate,
    TimeSlotResponse,
    TimeSlotsResponse,
)
from .service import ReservationOutcome, SchedulingEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


def get_scheduling_engine(background_tasks: BackgroundTasks, db: Session = Depends(get_db)) -> SchedulingEngine:
    """Dependency injection for SchedulingEngine; events queue their webhook on the response"""
    return SchedulingEngine(db, background_tasks=background_tasks)


def to_response(r: Reservation) -> ReservationResponse:
    return ReservationResponse(
        id=r.id,
        userId=r.user_id,
        amenityId=r.amenity_id,
        communityId=r.community_id,
        amenityName=r.amenity.name if r.amenity else None,
        date=r.date,
        setupTimeStart=r.setup_time_start,
        setupTimeEnd=r.setup_time_end,
        partyTimeStart=r.party_time_start,
        partyTimeEnd=r.party_time_end,
        cleaningTimeStart=r.cleaning_time_start,
        cleaningTimeEnd=r.cleaning_time_end,
        guestCount=r.guest_count,
        eventName=r.event_name,
        isPrivate=r.is_private,
        specialRequirements=r.special_requirements,
        status=r.status,
        version=r.version,
        totalFee=r.total_fee,
        totalDeposit=r.total_deposit,
        janitorialApprovedAt=r.janitorial_approved_at,
        adminApprovedAt=r.admin_approved_at,
        rejectionReason=r.rejection_reason,
        cancellationFee=r.cancellation_fee,
        cancellationFeeReason=r.cancellation_fee_reason,
        cancelledAt=r.cancelled_at,
        completedAt=r.completed_at,
        modificationStatus=r.modification_status,
        proposedDate=r.proposed_date,
        proposedPartyTimeStart=r.proposed_party_time_start,
        proposedPartyTimeEnd=r.proposed_party_time_end,
        modificationReason=r.modification_reason,
        modificationCount=r.modification_count,
        modificationFeesTotal=r.modification_fees_total,
        lastModificationFee=r.last_modification_fee,
        lastModificationFeeReason=r.last_modification_fee_reason,
        damageAssessmentPending=r.damage_assessment_pending,
        damageAssessed=r.damage_assessed,
        damageAssessmentStatus=r.damage_assessment_status,
        damageChargeAmount=r.damage_charge_amount,
        damageChargeAdjusted=r.damage_charge_adjusted,
        damageCharge=r.damage_charge,
        damageDescription=r.damage_description,
        damageNotes=r.damage_notes,
        adminDamageNotes=r.admin_damage_notes,
        createdAt=r.created_at,
    )


def to_fee(fee: FeeQuote) -> FeeResponse:
    return FeeResponse(amount=fee.amount, reason=fee.reason)


def to_outcome(outcome: ReservationOutcome) -> ReservationOutcomeResponse:
    return ReservationOutcomeResponse(
        message=outcome.message,
        reservation=to_response(outcome.reservation),
        fee=to_fee(outcome.fee) if outcome.fee else None,
    )


def to_blocked_window(r: Reservation) -> BlockedWindowResponse:
    span = reservation_span(r)
    return BlockedWindowResponse(
        reservationId=r.id,
        amenityId=r.amenity_id,
        amenityName=r.amenity.name if r.amenity else None,
        date=r.date,
        status=r.status,
        setupTimeStart=r.setup_time_start,
        partyTimeStart=r.party_time_start,
        partyTimeEnd=r.party_time_end,
        cleaningTimeStart=r.cleaning_time_start,
        cleaningTimeEnd=r.cleaning_time_end,
        blockedFrom=span.start,
        blockedUntil=span.end,
    )


# ============================================================================
# BOOKING AND READS
# ============================================================================


@router.post("", response_model=ReservationOutcomeResponse, status_code=201)
async def create_reservation(
    data: ReservationCreate,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Book an amenity; starts in NEW awaiting approval"""
    return to_outcome(engine.create(data, current_user))


@router.get("", response_model=list[ReservationResponse])
async def list_reservations(
    communityId: int = Query(...),
    status: Optional[ReservationStatus] = Query(None),
    amenityId: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Residents get their own reservations; staff get every reservation in the community"""
    reservations = engine.list_reservations(current_user, communityId, status, amenityId)
    return [to_response(r) for r in reservations]


@router.get("/admin/damage-reviews", response_model=list[ReservationResponse])
async def get_pending_damage_reviews(
    communityId: int = Query(...),
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Damage assessments awaiting admin review, oldest first"""
    return [to_response(r) for r in engine.list_pending_damage_reviews(current_user, communityId)]


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    communityId: int = Query(...),
    startDate: date = Query(...),
    endDate: date = Query(...),
    amenityId: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Blocked windows (setup through cleaning) for a date range, across the community or one amenity"""
    blocking = engine.get_availability(current_user, communityId, startDate, endDate, amenityId)
    return AvailabilityResponse(
        startDate=startDate,
        endDate=endDate,
        amenityId=amenityId,
        blocked=[to_blocked_window(r) for r in blocking],
    )


@router.get("/time-slots", response_model=TimeSlotsResponse)
async def get_time_slots(
    amenityId: int = Query(...),
    day: date = Query(..., alias="date"),
    slotMinutes: int = Query(30, ge=5, le=240),
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Bookable slots for one amenity on one day"""
    schedule = engine.get_time_slots(current_user, amenityId, day, slotMinutes)
    return TimeSlotsResponse(
        date=schedule.day,
        amenityId=schedule.amenity.id,
        timeSlots=[
            TimeSlotResponse(time=s.time, start=s.start, end=s.end, available=s.available) for s in schedule.slots
        ],
        existingReservations=len(schedule.blocking),
    )


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return to_response(engine.get_reservation(reservation_id, current_user))


# ============================================================================
# RESIDENT MODIFICATIONS AND FEE PREVIEWS
# ============================================================================


@router.put("/{reservation_id}", response_model=ReservationOutcomeResponse)
async def modify_reservation(
    reservation_id: int,
    data: ReservationUpdate,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Resident edits their own reservation; the modification fee is returned with the result"""
    return to_outcome(engine.modify(reservation_id, data, current_user))


@router.post("/{reservation_id}/modify/calculate-fee", response_model=FeeResponse)
async def preview_modification_fee(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Fee the next modification would cost; nothing is changed"""
    return to_fee(engine.calculate_modification_fee(reservation_id, current_user))


@router.get("/{reservation_id}/cancellation-fee", response_model=FeeResponse)
async def preview_cancellation_fee(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Fee a cancellation right now would cost; nothing is changed"""
    return to_fee(engine.calculate_cancellation_fee(reservation_id, current_user))


# ============================================================================
# STAFF MODIFICATION PROPOSALS
# ============================================================================


@router.post("/{reservation_id}/propose-modification", response_model=ReservationOutcomeResponse)
async def propose_modification(
    reservation_id: int,
    data: ModificationProposal,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return to_outcome(
        engine.propose_modification(
            reservation_id,
            current_user,
            data.proposedDate,
            data.proposedPartyTimeStart,
            data.proposedPartyTimeEnd,
            data.reason,
        )
    )


@router.put("/{reservation_id}/modification-response", response_model=ReservationOutcomeResponse)
async def respond_to_modification(
    reservation_id: int,
    data: ModificationResponse,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Resident accepts or rejects a pending proposal"""
    return to_outcome(engine.respond_to_modification(reservation_id, current_user, data.accept))


@router.delete("/{reservation_id}/proposed-modification", response_model=ReservationOutcomeResponse)
async def cancel_modification(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    return to_outcome(engine.cancel_modification(reservation_id, current_user))


# ============================================================================
# APPROVAL, REJECTION, CANCELLATION, COMPLETION
# ============================================================================


@router.put("/{reservation_id}/approve", response_model=ReservationOutcomeResponse)
async def approve_reservation(
    reservation_id: int,
    data: Optional[ApprovalRequest] = None,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Perform the next pending approval step"""
    data = data or ApprovalRequest()
    return to_outcome(
        engine.approve(
            reservation_id,
            current_user,
            cleaning_time_start=data.cleaningTimeStart,
            cleaning_time_end=data.cleaningTimeEnd,
            expected_status=data.expectedStatus,
        )
    )


@router.put("/{reservation_id}/reject", response_model=ReservationOutcomeResponse)
async def reject_reservation(
    reservation_id: int,
    data: Optional[RejectionRequest] = None,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    data = data or RejectionRequest()
    return to_outcome(
        engine.reject(reservation_id, current_user, reason=data.reason, expected_status=data.expectedStatus)
    )


@router.delete("/{reservation_id}", response_model=ReservationOutcomeResponse)
async def cancel_reservation(
    reservation_id: int,
    expectedStatus: Optional[ReservationStatus] = Query(None),
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Cancel a reservation; the record is kept with the applied cancellation fee"""
    return to_outcome(engine.cancel(reservation_id, current_user, expected_status=expectedStatus))


@router.put("/{reservation_id}/complete", response_model=ReservationOutcomeResponse)
async def complete_reservation(
    reservation_id: int,
    data: Optional[CompletionRequest] = None,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    data = data or CompletionRequest()
    return to_outcome(
        engine.complete(
            reservation_id,
            current_user,
            damages_found=data.damagesFound,
            expected_status=data.expectedStatus,
        )
    )


# ============================================================================
# DAMAGE ASSESSMENT
# ============================================================================


@router.post("/{reservation_id}/assess-damages", response_model=ReservationOutcomeResponse)
async def assess_damages(
    reservation_id: int,
    data: DamageAssessmentRequest,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Janitorial submits a damage charge for admin review"""
    return to_outcome(
        engine.assess_damages(reservation_id, current_user, data.amount, data.description, data.notes)
    )


@router.put("/{reservation_id}/review-damage-assessment", response_model=ReservationOutcomeResponse)
async def review_damage_assessment(
    reservation_id: int,
    data: DamageReviewRequest,
    current_user: User = Depends(get_current_user),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
):
    """Admin approves, adjusts or denies a pending damage charge"""
    return to_outcome(
        engine.review_damage_assessment(
            reservation_id, current_user, data.action, amount=data.amount, admin_notes=data.adminNotes
        )
    )
