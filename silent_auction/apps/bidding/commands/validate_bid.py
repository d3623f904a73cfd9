"""
Bid admission check
"""
from dataclasses import dataclass
from datetime import datetime

from silent_auction.apps.bidding.domain.auction import (
    AuctionStatus,
    LotStatus,
    UserId,
)
from silent_auction.apps.bidding.domain.errors import (
    BiddingFailure,
    FailureKind,
    format_amount,
)
from silent_auction.core.command import Command


@dataclass(slots=True, frozen=True)
class BidContext:
    """
    Everything the admission check needs, loaded from the ledger inside the lot's atomic scope
    """

    # pylint: disable=too-many-instance-attributes

    amount: int
    bidder_id: UserId

    starting_bid: int
    reserve: int | None
    lot_status: LotStatus
    # None if the artist is unknown
    artist_id: UserId | None

    # amount of the lot's current ACTIVE bid, None if there are no bids yet
    current_high: int | None

    auction_status: AuctionStatus
    start_time: datetime
    end_time: datetime
    now: datetime

    is_auto_bid: bool = False
    auto_bid_ceiling: int | None = None


class ValidateBid(Command[BidContext, BiddingFailure | None]):
    """
    Pure admission check for a proposed bid. Returns None when the bid is acceptable,
    otherwise the first failing rule:

    1. amount must be a positive integer not exceeding the max bid amount -> InvalidAmount
    2. auction must be LIVE and now within [start, end) -> AuctionNotOpen
    3. lot must be APPROVED -> LotNotBiddable
    4. the artist may not bid on their own lot -> SelfBidForbidden
    5. amount >= starting bid -> BelowStartingBid
    6. amount > current high bid -> NotHighEnough
    7. auto-bid ceiling >= amount, and not above the max bid amount -> InvalidAutoBidCeiling

    There is no minimum increment beyond "strictly greater than the current bid".
    """

    def __init__(self, max_bid_amount: int):
        self._max_bid_amount = max_bid_amount

    def __call__(self, ctx: BidContext) -> BiddingFailure | None:
        amount = ctx.amount
        # bool is an int subclass
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            return BiddingFailure(
                FailureKind.INVALID_AMOUNT,
                f"bid amount must be a positive integer number of cents: {amount!r}",
            )
        if amount > self._max_bid_amount:
            return BiddingFailure(
                FailureKind.INVALID_AMOUNT,
                f"bid amount {format_amount(amount)} exceeds the maximum allowed {format_amount(self._max_bid_amount)}",
            )

        if ctx.auction_status != AuctionStatus.LIVE:
            return BiddingFailure(
                FailureKind.AUCTION_NOT_OPEN,
                f"auction is not live: {ctx.auction_status.name}",
            )
        if ctx.now < ctx.start_time:
            return BiddingFailure(
                FailureKind.AUCTION_NOT_OPEN,
                f"bidding opens at {ctx.start_time.isoformat()}",
            )
        if ctx.now >= ctx.end_time:
            return BiddingFailure(
                FailureKind.AUCTION_NOT_OPEN,
                f"bidding closed at {ctx.end_time.isoformat()}",
            )

        if ctx.lot_status != LotStatus.APPROVED:
            return BiddingFailure(
                FailureKind.LOT_NOT_BIDDABLE,
                f"lot is not open for bids: {ctx.lot_status.name}",
            )

        if ctx.artist_id is not None and ctx.bidder_id == ctx.artist_id:
            return BiddingFailure(
                FailureKind.SELF_BID_FORBIDDEN,
                "artists cannot bid on their own artwork",
            )

        if amount < ctx.starting_bid:
            return BiddingFailure(
                FailureKind.BELOW_STARTING_BID,
                f"amount {format_amount(amount)} is below the starting bid of {format_amount(ctx.starting_bid)}",
            )

        if ctx.current_high is not None and amount <= ctx.current_high:
            return BiddingFailure(
                FailureKind.NOT_HIGH_ENOUGH,
                f"amount {format_amount(amount)} is not higher than the current bid of {format_amount(ctx.current_high)}",
            )

        if ctx.is_auto_bid and (
            not isinstance(ctx.auto_bid_ceiling, int)
            or isinstance(ctx.auto_bid_ceiling, bool)
            or ctx.auto_bid_ceiling < amount
        ):
            return BiddingFailure(
                FailureKind.INVALID_AUTO_BID_CEILING,
                f"auto-bid ceiling must be at least the bid amount of {format_amount(amount)}",
            )
        if ctx.is_auto_bid and ctx.auto_bid_ceiling > self._max_bid_amount:
            return BiddingFailure(
                FailureKind.INVALID_AUTO_BID_CEILING,
                f"auto-bid ceiling exceeds the maximum allowed {format_amount(self._max_bid_amount)}",
            )

        return None
