"""Membership repository - role lookups for the identity collaborator"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import CommunityMembership


class MembershipRepository:
    """Repository for community membership queries"""

    @staticmethod
    def get_active_membership(
        db: Session, user_id: int, community_id: int
    ) -> Optional[CommunityMembership]:
        """Get the user's active membership in a community"""
        return (
            db.query(CommunityMembership)
            .filter(
                CommunityMembership.user_id == user_id,
                CommunityMembership.community_id == community_id,
                CommunityMembership.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_memberships(db: Session, user_id: int) -> list[CommunityMembership]:
        """Get every active membership of a user"""
        return (
            db.query(CommunityMembership)
            .filter(CommunityMembership.user_id == user_id, CommunityMembership.is_active.is_(True))
            .order_by(CommunityMembership.community_id.asc())
            .all()
        )
