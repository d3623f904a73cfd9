"""
Successful operation results
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    LotId,
    UserId,
    AuctionStatus,
    LotStatus,
)
from silent_auction.apps.bidding.domain.bid import BidId


@dataclass(slots=True)
class PlaceBidResult:
    """
    `new_high_amount` and `leader_id` reflect the lot after proxy bidding has settled, i.e.,
    the caller's bid may have been accepted and then immediately outbid by an auto-bidder.
    """

    bid_id: BidId
    lot_id: LotId
    auction_id: AuctionId
    bidder_id: UserId
    amount: int

    new_high_amount: int
    leader_id: UserId
    total_bids: int

    # bids placed by the engine on behalf of auto-bidders while settling this bid
    proxy_bid_ids: list[BidId] = field(default_factory=list)
    # set when the bid triggered an anti-sniping extension
    extended_end_time: datetime | None = None

    @property
    def leading(self) -> bool:
        return self.leader_id == self.bidder_id


@dataclass(slots=True)
class WithdrawBidResult:
    """
    When the withdrawn bid was leading, the next highest standing bid becomes the leader.
    """

    bid_id: BidId
    lot_id: LotId
    was_leader: bool
    new_leader_id: UserId | None = None
    new_high_amount: int | None = None


class UnsoldReason(StrEnum):
    NO_BIDS = "no-bids"
    RESERVE_NOT_MET = "reserve-not-met"


@dataclass(slots=True)
class LotOutcome:
    """
    Per lot auction close outcome
    """

    lot_id: LotId
    status: LotStatus
    winner_id: UserId | None = None
    winning_bid_id: BidId | None = None
    amount: int | None = None
    unsold_reason: UnsoldReason | None = None

    @property
    def sold(self) -> bool:
        return self.status == LotStatus.SOLD


@dataclass(slots=True)
class EndAuctionResult:
    """
    `already_ended` is True when the auction had been closed by a prior call. The outcomes are then
    rebuilt from the ledger and are identical to the ones returned by the call that closed it.
    """

    auction_id: AuctionId
    status: AuctionStatus
    lots: list[LotOutcome]
    total_revenue: int
    platform_fee: int
    already_ended: bool = False

    @property
    def winners(self) -> list[LotOutcome]:
        return [lot for lot in self.lots if lot.sold]


@dataclass(slots=True)
class ExtendAuctionResult:
    auction_id: AuctionId
    previous_end_time: datetime
    end_time: datetime


@dataclass(slots=True)
class AuctionTransitionResult:
    auction_id: AuctionId
    previous_status: AuctionStatus
    status: AuctionStatus


@dataclass(slots=True)
class LotTransitionResult:
    lot_id: LotId
    previous_status: LotStatus
    status: LotStatus
