"""
Command to withdraw a bid
"""
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from silent_auction.apps.bidding.commands.lot_bids import load_lot_bids
from silent_auction.apps.bidding.config import BiddingConfig
from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.data.ledger import Ledger, LockTimeoutError
from silent_auction.apps.bidding.domain.auction import AuctionStatus, UserId, LotId
from silent_auction.apps.bidding.domain.bid import BidId, BidStatus
from silent_auction.apps.bidding.domain.errors import (
    BiddingFailure,
    FailureKind,
    RejectedError,
)
from silent_auction.apps.bidding.domain.events import (
    Event,
    EventType,
    auction_topic,
    lot_topic,
)
from silent_auction.apps.bidding.domain.results import WithdrawBidResult
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True, frozen=True)
class WithdrawBidRequest:
    bid_id: BidId
    requester_id: UserId


class WithdrawBid(Command[WithdrawBidRequest, WithdrawBidResult | BiddingFailure]):
    """
    Withdraws a bid on behalf of its bidder.

    Rules
    -----
    - only the bidder may withdraw their bid -> NotBidOwner
    - only ACTIVE and OUTBID bids can be withdrawn -> BidNotWithdrawable
    - the auction must be LIVE -> AuctionNotOpen
    - the leading bid cannot be withdrawn once the time remaining is within the withdrawal window
      -> WithdrawalWindowClosed

    When the leader withdraws, the highest remaining OUTBID bid is promoted back to ACTIVE, i.e., it becomes the
    leader again without creating a new bid row. `leader-changed` is then published to the lot and auction topics.
    """

    def __init__(
        self,
        ledger: Ledger,
        publisher: NotificationPublisher,
        config: BiddingConfig = BiddingConfig(),
        clock: Clock = utc_now,
    ):
        self._ledger = ledger
        self._publisher = publisher
        self._config = config
        self._clock = clock

    def __call__(
        self, request: WithdrawBidRequest
    ) -> WithdrawBidResult | BiddingFailure:
        logger = self.get_logger()

        with self._ledger.session() as session:
            lot_id = session.scalar(
                select(TBid.lot_id).where(TBid.bid_id == request.bid_id)
            )
        if lot_id is None:
            return BiddingFailure(
                FailureKind.BID_NOT_FOUND, f"bid not found: {request.bid_id}"
            )

        try:
            with self._ledger.lot_scope(lot_id) as (session, _lot):
                result, auction_id = self._withdraw(session, LotId(lot_id), request)
        except RejectedError as err:
            logger.debug(
                "withdrawal rejected: bid_id=%s, reason=%s",
                request.bid_id,
                err.failure.kind,
            )
            return err.failure
        except LockTimeoutError:
            logger.warning("lot lock timed out: lot_id=%s", lot_id)
            return BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                "the lot is busy with other bids, please retry",
            )

        logger.info(
            "bid withdrawn: bid_id=%s, lot_id=%s, was_leader=%s, new_leader_id=%s",
            result.bid_id,
            result.lot_id,
            result.was_leader,
            result.new_leader_id,
        )
        if result.was_leader:
            publish_safely(
                self._publisher,
                Event(
                    EventType.LEADER_CHANGED,
                    {
                        "lotId": result.lot_id,
                        "auctionId": auction_id,
                        "leaderId": result.new_leader_id,
                        "highAmount": result.new_high_amount,
                    },
                ),
                topics=(lot_topic(result.lot_id), auction_topic(auction_id)),
            )
        return result

    def _withdraw(
        self,
        session: Session,
        lot_id: LotId,
        request: WithdrawBidRequest,
    ) -> tuple[WithdrawBidResult, str]:
        bids = load_lot_bids(session, lot_id)
        bid = next((bid for bid in bids if bid.bid_id == request.bid_id), None)
        if bid is None:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.BID_NOT_FOUND, f"bid not found: {request.bid_id}"
                )
            )
        if bid.bidder_id != request.requester_id:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.NOT_BID_OWNER, "only the bidder may withdraw the bid"
                )
            )
        if bid.status not in (BidStatus.ACTIVE, BidStatus.OUTBID):
            raise RejectedError(
                BiddingFailure(
                    FailureKind.BID_NOT_WITHDRAWABLE,
                    f"bid cannot be withdrawn: {BidStatus(bid.status).name}",
                )
            )

        auction = session.get(TAuction, bid.auction_id)
        if auction is None:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.AUCTION_NOT_FOUND,
                    f"auction not found: {bid.auction_id}",
                )
            )
        if auction.status != AuctionStatus.LIVE:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.AUCTION_NOT_OPEN,
                    f"auction is not live: {AuctionStatus(auction.status).name}",
                )
            )

        now = self._clock()
        was_leader = bid.status == BidStatus.ACTIVE
        if was_leader and auction.end_time - now <= self._config.withdrawal_window:
            minutes = int(self._config.withdrawal_window.total_seconds() // 60)
            raise RejectedError(
                BiddingFailure(
                    FailureKind.WITHDRAWAL_WINDOW_CLOSED,
                    f"the leading bid cannot be withdrawn within {minutes} minutes of the auction end",
                )
            )

        bid.status = BidStatus.WITHDRAWN
        new_leader = None
        if was_leader:
            new_leader = self._promote_next_leader(bids)
        session.flush()

        audit(
            session,
            AuditCategory.BID,
            "bid_withdrawn",
            "bid",
            bid.bid_id,
            now,
            user_id=request.requester_id,
            lot_id=lot_id,
            amount=bid.amount,
            was_leader=was_leader,
        )

        return (
            WithdrawBidResult(
                bid_id=BidId(bid.bid_id),
                lot_id=lot_id,
                was_leader=was_leader,
                new_leader_id=UserId(new_leader.bidder_id) if new_leader else None,
                new_high_amount=new_leader.amount if new_leader else None,
            ),
            bid.auction_id,
        )

    @staticmethod
    def _promote_next_leader(bids: list[TBid]) -> TBid | None:
        """
        Promotes the highest OUTBID bid, the earliest placed wins a tie.
        """
        candidates = [bid for bid in bids if bid.status == BidStatus.OUTBID]
        if not candidates:
            return None
        leader = min(candidates, key=lambda bid: (-bid.amount, bid.placed_at))
        leader.status = BidStatus.ACTIVE
        return leader
