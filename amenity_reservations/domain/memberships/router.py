"""Membership router - the caller's roles across communities"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .schemas import MembershipResponse
from .service import MembershipService

router = APIRouter(prefix="/memberships", tags=["Memberships"])


def get_membership_service(db: Session = Depends(get_db)) -> MembershipService:
    """Dependency injection for MembershipService"""
    return MembershipService(db)


@router.get("/me", response_model=list[MembershipResponse])
async def get_my_memberships(
    current_user: User = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Active memberships of the current user, one per community"""
    return [
        MembershipResponse(
            communityId=m.community_id,
            userId=m.user_id,
            role=m.role,
            isActive=m.is_active,
        )
        for m in service.get_memberships(current_user)
    ]
