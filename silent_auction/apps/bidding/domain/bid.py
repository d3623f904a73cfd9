"""
Bid domain model
"""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum, auto
from typing import NewType

from ulid import ULID

from silent_auction.apps.bidding.domain.auction import AuctionId, LotId, UserId

BidId = NewType("BidId", str)


def new_bid_id() -> BidId:
    return BidId(str(ULID()))


class BidStatus(IntEnum):
    """
    - ACTIVE: the current leader. At most one bid per lot is ACTIVE.
    - OUTBID: was the leader, superseded by a higher bid
    - WITHDRAWN: withdrawn by the bidder
    - ACCEPTED: the winning bid at auction close
    - REJECTED: standing bid that did not win, i.e., reserve unmet at close or auction cancelled
    """

    ACTIVE = auto()
    OUTBID = auto()
    WITHDRAWN = auto()
    ACCEPTED = auto()
    REJECTED = auto()

    def __repr__(self) -> str:
        return f"{self.name}({self.value})"


@dataclass(slots=True)
class Bid:
    """
    Immutable bid fact. Only the status changes after the bid is placed.
    """

    # pylint: disable=too-many-instance-attributes

    bid_id: BidId
    lot_id: LotId
    auction_id: AuctionId
    bidder_id: UserId

    # minor currency units
    amount: int
    placed_at: datetime
    status: BidStatus

    is_auto_bid: bool = False
    # the most the engine may bid on the bidder's behalf
    auto_bid_ceiling: int | None = None

