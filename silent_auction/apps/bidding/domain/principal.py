"""
Authenticated principal supplied by the identity provider
"""
from dataclasses import dataclass
from enum import StrEnum

from silent_auction.apps.bidding.domain.auction import UserId, SchoolId


class Role(StrEnum):
    """
    Platform roles
    """

    SITE_ADMIN = "SITE_ADMIN"
    SCHOOL_ADMIN = "SCHOOL_ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    BIDDER = "BIDDER"


@dataclass(slots=True, frozen=True)
class Principal:
    """
    The identity provider has already authenticated the principal. The core trusts it as given.
    """

    user_id: UserId
    role: Role
    school_id: SchoolId | None = None

    def can_administer(self, school_id: SchoolId) -> bool:
        """
        :return: True if the principal may approve auctions and lots for the school
        """
        match self.role:
            case Role.SITE_ADMIN:
                return True
            case Role.SCHOOL_ADMIN:
                return self.school_id == school_id
            case Role.TEACHER | Role.STUDENT | Role.BIDDER:
                return False
