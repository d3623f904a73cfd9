"""
Auction lifecycle controller facade
"""
from datetime import timedelta

from silent_auction.apps.bidding.commands.end_auction import EndAuction
from silent_auction.apps.bidding.commands.extend_auction import (
    ExtendAuction,
    ExtendAuctionRequest,
)
from silent_auction.apps.bidding.commands.transition_auction import (
    TransitionAuction,
    TransitionAuctionRequest,
    CancelAuction,
    CancelAuctionRequest,
)
from silent_auction.apps.bidding.commands.transition_lot import (
    TransitionLot,
    TransitionLotRequest,
)
from silent_auction.apps.bidding.data.ledger import Ledger
from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    AuctionStatus,
    LotId,
    LotStatus,
)
from silent_auction.apps.bidding.domain.errors import BiddingFailure
from silent_auction.apps.bidding.domain.principal import Principal
from silent_auction.apps.bidding.domain.results import (
    AuctionTransitionResult,
    EndAuctionResult,
    ExtendAuctionResult,
    LotTransitionResult,
)
from silent_auction.apps.bidding.notifications.publisher import NotificationPublisher
from silent_auction.core.command import Clock, utc_now


class AuctionLifecycleController:
    """
    Auction: DRAFT -> PENDING_APPROVAL -> APPROVED -> LIVE -> ENDED, CANCELLED from any non-terminal state

    Lot: DRAFT -> SUBMITTED -> APPROVED | REJECTED, then SOLD | UNSOLD when the auction ends

    Every transition is a compare-and-swap against the expected prior status.
    """

    def __init__(
        self,
        ledger: Ledger,
        publisher: NotificationPublisher,
        clock: Clock = utc_now,
    ):
        self._transition_auction = TransitionAuction(ledger, publisher, clock)
        self._cancel_auction = CancelAuction(ledger, publisher, clock)
        self._end_auction = EndAuction(ledger, publisher, clock)
        self._extend_auction = ExtendAuction(ledger, publisher, clock)
        self._transition_lot = TransitionLot(ledger, clock)

    def submit_for_approval(
        self, auction_id: AuctionId
    ) -> AuctionTransitionResult | BiddingFailure:
        return self._transition_auction(
            TransitionAuctionRequest(
                auction_id, AuctionStatus.DRAFT, AuctionStatus.PENDING_APPROVAL
            )
        )

    def approve(
        self, auction_id: AuctionId, principal: Principal
    ) -> AuctionTransitionResult | BiddingFailure:
        return self._transition_auction(
            TransitionAuctionRequest(
                auction_id,
                AuctionStatus.PENDING_APPROVAL,
                AuctionStatus.APPROVED,
                principal,
            )
        )

    def open_bidding(
        self, auction_id: AuctionId
    ) -> AuctionTransitionResult | BiddingFailure:
        return self._transition_auction(
            TransitionAuctionRequest(
                auction_id, AuctionStatus.APPROVED, AuctionStatus.LIVE
            )
        )

    def end_auction(self, auction_id: AuctionId) -> EndAuctionResult | BiddingFailure:
        """
        Idempotent: ending an ENDED auction returns its recorded outcome with `already_ended` set
        """
        return self._end_auction(auction_id)

    def cancel(
        self, auction_id: AuctionId, principal: Principal
    ) -> AuctionTransitionResult | BiddingFailure:
        return self._cancel_auction(CancelAuctionRequest(auction_id, principal))

    def extend_auction(
        self,
        auction_id: AuctionId,
        duration: timedelta,
        principal: Principal | None = None,
    ) -> ExtendAuctionResult | BiddingFailure:
        return self._extend_auction(
            ExtendAuctionRequest(auction_id, duration, principal)
        )

    def submit_lot(self, lot_id: LotId) -> LotTransitionResult | BiddingFailure:
        return self._transition_lot(
            TransitionLotRequest(lot_id, LotStatus.DRAFT, LotStatus.SUBMITTED)
        )

    def approve_lot(
        self, lot_id: LotId, principal: Principal
    ) -> LotTransitionResult | BiddingFailure:
        return self._transition_lot(
            TransitionLotRequest(
                lot_id, LotStatus.SUBMITTED, LotStatus.APPROVED, principal
            )
        )

    def reject_lot(
        self, lot_id: LotId, principal: Principal
    ) -> LotTransitionResult | BiddingFailure:
        return self._transition_lot(
            TransitionLotRequest(
                lot_id, LotStatus.SUBMITTED, LotStatus.REJECTED, principal
            )
        )
