"""Amenity router - FastAPI endpoints for amenity policy"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Amenity, User
from .schemas import AmenityPolicyUpdate, AmenityResponse, PolicyChangeResponse
from .service import AmenityPolicyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/amenities", tags=["Amenities"])


def get_amenity_service(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> AmenityPolicyService:
    """Dependency injection for AmenityPolicyService"""
    return AmenityPolicyService(db, background_tasks)


def to_response(a: Amenity) -> AmenityResponse:
    return AmenityResponse(
        id=a.id,
        communityId=a.community_id,
        name=a.name,
        description=a.description,
        capacity=a.capacity,
        reservationFee=a.reservation_fee,
        deposit=a.deposit,
        daysOfOperation=a.days_of_operation,
        hoursOfOperation=a.hours_of_operation,
        janitorialRequired=a.janitorial_required,
        approvalRequired=a.approval_required,
        cancellationFeeEnabled=a.cancellation_fee_enabled,
        modificationFeeEnabled=a.modification_fee_enabled,
        isActive=a.is_active,
    )


@router.get("", response_model=list[AmenityResponse])
async def list_amenities(
    communityId: int = Query(...),
    current_user: User = Depends(get_current_user),
    service: AmenityPolicyService = Depends(get_amenity_service),
):
    """Amenities of a community; residents only see active ones"""
    return [to_response(a) for a in service.list_amenities(communityId, current_user)]


@router.get("/{amenity_id}", response_model=AmenityResponse)
async def get_amenity(
    amenity_id: int,
    current_user: User = Depends(get_current_user),
    service: AmenityPolicyService = Depends(get_amenity_service),
):
    return to_response(service.get_amenity(amenity_id, current_user))


@router.put("/{amenity_id}/policy", response_model=PolicyChangeResponse)
async def update_amenity_policy(
    amenity_id: int,
    data: AmenityPolicyUpdate,
    current_user: User = Depends(get_current_user),
    service: AmenityPolicyService = Depends(get_amenity_service),
):
    """Admin policy edit; reservations in flight are re-routed in the same transaction"""
    summary = service.update_policy(amenity_id, data, current_user)
    return PolicyChangeResponse(
        message="Amenity policy updated",
        amenity=to_response(summary.amenity),
        autoApprovedCount=summary.auto_approved_count,
        unconfirmedCount=summary.unconfirmed_count,
        autoApprovedReservationIds=summary.auto_approved_ids,
        unconfirmedReservationIds=summary.unconfirmed_ids,
    )
