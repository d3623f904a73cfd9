"""
Auction and Lot domain model
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import IntEnum, auto
from typing import NewType

from ulid import ULID

AuctionId = NewType("AuctionId", str)
LotId = NewType("LotId", str)
SchoolId = NewType("SchoolId", str)
UserId = NewType("UserId", str)


def new_auction_id() -> AuctionId:
    return AuctionId(str(ULID()))


def new_lot_id() -> LotId:
    return LotId(str(ULID()))


class AuctionStatus(IntEnum):
    """
    Auction lifecycle: DRAFT -> PENDING_APPROVAL -> APPROVED -> LIVE -> ENDED

    - CANCELLED is reachable from any non-terminal state.
    - ENDED and CANCELLED are terminal.
    - Bids are only accepted while LIVE and within the [start_time, end_time) window.
    """

    DRAFT = auto()
    PENDING_APPROVAL = auto()
    APPROVED = auto()
    LIVE = auto()
    ENDED = auto()
    CANCELLED = auto()

    def __repr__(self) -> str:
        return f"{self.name}({self.value})"


AUCTION_TRANSITIONS: dict[AuctionStatus, frozenset[AuctionStatus]] = {
    AuctionStatus.DRAFT: frozenset(
        {AuctionStatus.PENDING_APPROVAL, AuctionStatus.CANCELLED}
    ),
    AuctionStatus.PENDING_APPROVAL: frozenset(
        {AuctionStatus.APPROVED, AuctionStatus.CANCELLED}
    ),
    AuctionStatus.APPROVED: frozenset({AuctionStatus.LIVE, AuctionStatus.CANCELLED}),
    AuctionStatus.LIVE: frozenset({AuctionStatus.ENDED, AuctionStatus.CANCELLED}),
    AuctionStatus.ENDED: frozenset(),
    AuctionStatus.CANCELLED: frozenset(),
}


class LotStatus(IntEnum):
    """
    Lot (artwork) moderation: DRAFT -> SUBMITTED -> APPROVED | REJECTED

    At auction close an APPROVED lot becomes SOLD, or UNSOLD when it received no bids
    or its reserve was not met.
    """

    DRAFT = auto()
    SUBMITTED = auto()
    APPROVED = auto()
    REJECTED = auto()
    SOLD = auto()
    UNSOLD = auto()

    def __repr__(self) -> str:
        return f"{self.name}({self.value})"


LOT_TRANSITIONS: dict[LotStatus, frozenset[LotStatus]] = {
    LotStatus.DRAFT: frozenset({LotStatus.SUBMITTED}),
    LotStatus.SUBMITTED: frozenset({LotStatus.APPROVED, LotStatus.REJECTED}),
    LotStatus.APPROVED: frozenset({LotStatus.SOLD, LotStatus.UNSOLD}),
    LotStatus.REJECTED: frozenset(),
    LotStatus.SOLD: frozenset(),
    LotStatus.UNSOLD: frozenset(),
}


@dataclass(slots=True)
class Auction:
    """
    A timed sale event for one school
    """

    # pylint: disable=too-many-instance-attributes

    auction_id: AuctionId
    school_id: SchoolId
    title: str

    start_time: datetime
    end_time: datetime
    status: AuctionStatus

    # percentage of revenue, e.g. Decimal("3.50")
    platform_fee_percentage: Decimal
    # minor currency units
    platform_fee_minimum: int

    created_by: UserId

    # 0 disables anti-sniping extension
    auto_extend_minutes: int = 0

    closing_notice_sent_at: datetime | None = None
    ended_at: datetime | None = None
    total_revenue: int | None = None
    platform_fee: int | None = None


@dataclass(slots=True)
class Lot:
    """
    An individual artwork item within an auction
    """

    lot_id: LotId
    auction_id: AuctionId
    # the submitting artist, who may not bid on their own work
    artist_id: UserId
    title: str

    # minor currency units
    starting_bid: int
    reserve: int | None

    status: LotStatus
