"""
Command to extend a LIVE auction
"""
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import update

from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction
from silent_auction.apps.bidding.data.ledger import Ledger
from silent_auction.apps.bidding.domain.auction import AuctionId, AuctionStatus
from silent_auction.apps.bidding.domain.errors import (
    BiddingFailure,
    FailureKind,
    RejectedError,
)
from silent_auction.apps.bidding.domain.events import Event, EventType, auction_topic
from silent_auction.apps.bidding.domain.principal import Principal
from silent_auction.apps.bidding.domain.results import ExtendAuctionResult
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True, frozen=True)
class ExtendAuctionRequest:
    auction_id: AuctionId
    duration: timedelta
    principal: Principal | None = None


class ExtendAuction(Command[ExtendAuctionRequest, ExtendAuctionResult | BiddingFailure]):
    """
    Pushes the end time of a LIVE auction forward by the specified duration, and republishes the new end time
    so that watching clients can recompute their countdowns.

    The update is guarded on both the status and the end time that was read, i.e., concurrent extensions never
    overwrite each other.
    """

    def __init__(
        self,
        ledger: Ledger,
        publisher: NotificationPublisher,
        clock: Clock = utc_now,
    ):
        self._ledger = ledger
        self._publisher = publisher
        self._clock = clock

    def __call__(
        self, request: ExtendAuctionRequest
    ) -> ExtendAuctionResult | BiddingFailure:
        logger = self.get_logger()
        if request.duration <= timedelta(0):
            return BiddingFailure(
                FailureKind.INVALID_EXTENSION,
                f"extension must be a positive duration: {request.duration}",
            )

        try:
            with self._ledger.transaction() as session:
                auction = session.get(TAuction, request.auction_id)
                if auction is None:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.AUCTION_NOT_FOUND,
                            f"auction not found: {request.auction_id}",
                        )
                    )
                if auction.status != AuctionStatus.LIVE:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.INVALID_STATE_TRANSITION,
                            f"only a LIVE auction can be extended: {AuctionStatus(auction.status).name}",
                        )
                    )

                previous_end_time = auction.end_time
                end_time = previous_end_time + request.duration
                rowcount = session.execute(
                    update(TAuction)
                    .where(
                        TAuction.auction_id == request.auction_id,
                        TAuction.status == AuctionStatus.LIVE,
                        TAuction.end_time == previous_end_time,
                    )
                    .values(end_time=end_time, closing_notice_sent_at=None)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if rowcount != 1:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.CONCURRENT_CONFLICT,
                            "auction changed while it was being extended",
                        )
                    )
                audit(
                    session,
                    AuditCategory.AUCTION,
                    "auction_extended",
                    "auction",
                    request.auction_id,
                    self._clock(),
                    user_id=request.principal.user_id if request.principal else None,
                    previous_end_time=previous_end_time.isoformat(),
                    end_time=end_time.isoformat(),
                )
        except RejectedError as err:
            logger.debug(
                "auction extension rejected: auction_id=%s, reason=%s",
                request.auction_id,
                err.failure.kind,
            )
            return err.failure

        result = ExtendAuctionResult(
            auction_id=request.auction_id,
            previous_end_time=previous_end_time,
            end_time=end_time,
        )
        logger.info(
            "auction extended: auction_id=%s, end_time=%s",
            result.auction_id,
            result.end_time.isoformat(),
        )
        publish_safely(
            self._publisher,
            Event(
                EventType.AUCTION_EXTENDED,
                {
                    "auctionId": result.auction_id,
                    "previousEndTime": result.previous_end_time.isoformat(),
                    "endTime": result.end_time.isoformat(),
                },
            ),
            topics=(auction_topic(result.auction_id),),
        )
        return result
