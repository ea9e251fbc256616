"""Membership service - resolves (user, community) to an Actor"""

import logging

from sqlalchemy.orm import Session

from ...models import User
from ...shared.errors import PermissionDenied
from .repository import MembershipRepository
from .schemas import Actor

logger = logging.getLogger(__name__)


class MembershipService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = MembershipRepository()

    def resolve_actor(self, user: User, community_id: int) -> Actor:
        """Role of the user in the given community; no active membership means no access"""
        membership = self.repo.get_active_membership(self.db, user.id, community_id)
        if not membership:
            logger.warning(f"⚠️ User {user.id} has no active membership in community {community_id}")
            raise PermissionDenied("You are not an active member of this community")
        return Actor(user_id=user.id, community_id=community_id, role=membership.role)

    def get_memberships(self, user: User):
        return self.repo.get_memberships(self.db, user.id)
