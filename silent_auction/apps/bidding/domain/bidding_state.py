"""
Derived bidding state projections
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    LotId,
    UserId,
    AuctionStatus,
    LotStatus,
)
from silent_auction.apps.bidding.domain.bid import BidId


@dataclass(slots=True)
class BiddingState:
    """
    Read-only projection computed from the ledger rows on every read. It is never stored.
    """

    # pylint: disable=too-many-instance-attributes

    lot_id: LotId
    auction_id: AuctionId

    # None if no bids have been placed
    high_amount: int | None
    leader_id: UserId | None
    leading_bid_id: BidId | None
    total_bids: int

    starting_bid: int
    reserve_met: bool

    lot_status: LotStatus
    auction_status: AuctionStatus
    end_time: datetime
    time_remaining: timedelta

    @property
    def bidding_open(self) -> bool:
        return (
            self.auction_status == AuctionStatus.LIVE
            and self.lot_status == LotStatus.APPROVED
            and self.time_remaining > timedelta(0)
        )
