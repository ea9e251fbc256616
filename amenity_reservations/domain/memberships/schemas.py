"""Identity types used for authorization decisions"""

from dataclasses import dataclass

from pydantic import BaseModel

from ...shared.enums import MemberRole


@dataclass(frozen=True)
class Actor:
    """A user acting inside one community with the role their membership grants there"""

    user_id: int
    community_id: int
    role: MemberRole

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN

    @property
    def is_staff(self) -> bool:
        # Admin implies janitorial capability
        return self.role in (MemberRole.JANITORIAL, MemberRole.ADMIN)


class MembershipResponse(BaseModel):
    communityId: int
    userId: int
    role: MemberRole
    isActive: bool

    class Config:
        from_attributes = True
