"""
Bidding engine facade
"""
from silent_auction.apps.bidding.commands.data.queries.get_bid_history import (
    GetBidHistory,
    GetBidderBids,
)
from silent_auction.apps.bidding.commands.data.queries.get_bidding_state import (
    GetBiddingState,
)
from silent_auction.apps.bidding.commands.place_bid import PlaceBid, PlaceBidRequest
from silent_auction.apps.bidding.commands.withdraw_bid import (
    WithdrawBid,
    WithdrawBidRequest,
)
from silent_auction.apps.bidding.config import BiddingConfig
from silent_auction.apps.bidding.data.ledger import Ledger
from silent_auction.apps.bidding.domain.auction import LotId, UserId
from silent_auction.apps.bidding.domain.bid import Bid, BidId
from silent_auction.apps.bidding.domain.bidding_state import BiddingState
from silent_auction.apps.bidding.domain.errors import BiddingFailure
from silent_auction.apps.bidding.domain.results import (
    PlaceBidResult,
    WithdrawBidResult,
)
from silent_auction.apps.bidding.notifications.publisher import NotificationPublisher
from silent_auction.core.command import Clock, utc_now


class BiddingEngine:
    """
    Inbound bidding operations.

    Business rule violations are returned as `BiddingFailure` values. Ledger faults propagate as exceptions.
    The engine holds no mutable state of its own, i.e., every decision is made against the ledger.
    """

    def __init__(
        self,
        ledger: Ledger,
        publisher: NotificationPublisher,
        config: BiddingConfig = BiddingConfig(),
        clock: Clock = utc_now,
    ):
        self._place_bid = PlaceBid(ledger, publisher, config, clock)
        self._withdraw_bid = WithdrawBid(ledger, publisher, config, clock)
        self._get_bidding_state = GetBiddingState(ledger.session_factory, clock)
        self._get_bid_history = GetBidHistory(ledger.session_factory)
        self._get_bidder_bids = GetBidderBids(ledger.session_factory)

    def place_bid(
        self,
        lot_id: LotId,
        bidder_id: UserId,
        amount: int,
        is_auto_bid: bool = False,
        auto_bid_ceiling: int | None = None,
    ) -> PlaceBidResult | BiddingFailure:
        # pylint: disable=too-many-arguments
        return self._place_bid(
            PlaceBidRequest(
                lot_id=lot_id,
                bidder_id=bidder_id,
                amount=amount,
                is_auto_bid=is_auto_bid,
                auto_bid_ceiling=auto_bid_ceiling,
            )
        )

    def withdraw_bid(
        self, bid_id: BidId, requester_id: UserId
    ) -> WithdrawBidResult | BiddingFailure:
        return self._withdraw_bid(WithdrawBidRequest(bid_id, requester_id))

    def get_bidding_state(self, lot_id: LotId) -> BiddingState | None:
        """
        :return: None if the lot does not exist
        """
        return self._get_bidding_state(lot_id)

    def get_bid_history(self, lot_id: LotId) -> list[Bid]:
        """
        :return: the lot's bids, newest first
        """
        return self._get_bid_history(lot_id)

    def get_bidder_bids(self, bidder_id: UserId) -> list[Bid]:
        """
        :return: the bidder's bids across all lots, newest first
        """
        return self._get_bidder_bids(bidder_id)
