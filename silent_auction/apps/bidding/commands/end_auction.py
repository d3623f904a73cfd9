"""
Command to close an auction and settle its lots
"""
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from silent_auction.apps.bidding.commands.lot_bids import load_lot_bids, leading_bid
from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.data.ledger import Ledger, LockTimeoutError
from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    AuctionStatus,
    LotId,
    LotStatus,
    UserId,
)
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
)
from silent_auction.apps.bidding.domain.results import (
    EndAuctionResult,
    LotOutcome,
    UnsoldReason,
)
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


def platform_fee(total_revenue: int, percentage: Decimal, minimum: int) -> int:
    """
    Fee is the percentage of revenue rounded half up to the minor unit, but at least the minimum.
    The fee never exceeds the revenue, and is 0 when nothing sold.
    """
    if total_revenue <= 0:
        return 0
    fee = int(
        (Decimal(total_revenue) * Decimal(percentage) / 100).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
    )
    return min(max(fee, minimum), total_revenue)


class EndAuction(Command[AuctionId, EndAuctionResult | BiddingFailure]):
    """
    Closes a LIVE auction.

    For each APPROVED lot, the winner is the ACTIVE bid with the highest amount:
    - no bids -> lot is UNSOLD
    - reserve not met -> lot is UNSOLD and the bid is REJECTED
    - otherwise -> lot is SOLD and the bid is ACCEPTED

    The auction then moves LIVE -> ENDED via a guarded update, and revenue and platform fee are recorded.
    All lot locks are held while settling, i.e., no bid can be accepted on a lot while the auction is being closed.

    Ending an auction that is already ENDED is a successful no-op: the outcomes are rebuilt from the ledger and
    nothing is republished. The sweep relies on this because it is not synchronized with the auction end time.
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

    def __call__(self, auction_id: AuctionId) -> EndAuctionResult | BiddingFailure:
        logger = self.get_logger()

        with self._ledger.session() as session:
            lot_ids = session.scalars(
                select(TLot.lot_id).where(TLot.auction_id == auction_id)
            ).all()

        try:
            with self._ledger.auction_scope(auction_id, lot_ids) as (
                session,
                auction,
                lots,
            ):
                if auction is None:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.AUCTION_NOT_FOUND,
                            f"auction not found: {auction_id}",
                        )
                    )
                if auction.status == AuctionStatus.ENDED:
                    return self._ended_result(session, auction, lots)
                result = self._end(session, auction, lots)
        except RejectedError as err:
            logger.debug(
                "end auction rejected: auction_id=%s, reason=%s",
                auction_id,
                err.failure.kind,
            )
            return err.failure
        except LockTimeoutError as err:
            logger.warning(
                "lot lock timed out while ending auction: auction_id=%s, lot_id=%s",
                auction_id,
                err.lot_id,
            )
            return BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                "the auction is busy with other bids, please retry",
            )

        logger.info(
            "auction ended: auction_id=%s, lots_sold=%s, total_revenue=%s, platform_fee=%s",
            auction_id,
            len(result.winners),
            result.total_revenue,
            result.platform_fee,
        )
        self._fan_out(result)
        return result

    def _end(
        self,
        session: Session,
        auction: TAuction,
        lots: list[TLot],
    ) -> EndAuctionResult:
        if auction.status != AuctionStatus.LIVE:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.INVALID_STATE_TRANSITION,
                    f"only a LIVE auction can be ended: {AuctionStatus(auction.status).name}",
                )
            )

        now = self._clock()
        outcomes = [
            self._settle_lot(session, lot)
            for lot in lots
            if lot.status == LotStatus.APPROVED
        ]
        total_revenue = sum(outcome.amount for outcome in outcomes if outcome.sold)
        fee = platform_fee(
            total_revenue,
            auction.platform_fee_percentage,
            auction.platform_fee_minimum,
        )

        rowcount = session.execute(
            update(TAuction)
            .where(
                TAuction.auction_id == auction.auction_id,
                TAuction.status == AuctionStatus.LIVE,
            )
            .values(
                status=AuctionStatus.ENDED,
                ended_at=now,
                total_revenue=total_revenue,
                platform_fee=fee,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if rowcount != 1:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.CONCURRENT_CONFLICT,
                    "auction status changed while it was being ended",
                )
            )

        audit(
            session,
            AuditCategory.AUCTION,
            "auction_ended",
            "auction",
            auction.auction_id,
            now,
            lots_sold=sum(1 for outcome in outcomes if outcome.sold),
            total_revenue=total_revenue,
            platform_fee=fee,
        )

        return EndAuctionResult(
            auction_id=AuctionId(auction.auction_id),
            status=AuctionStatus.ENDED,
            lots=outcomes,
            total_revenue=total_revenue,
            platform_fee=fee,
        )

    @staticmethod
    def _settle_lot(session: Session, lot: TLot) -> LotOutcome:
        lot_id = LotId(lot.lot_id)
        winner = leading_bid(load_lot_bids(session, lot_id))
        if winner is None:
            lot.status = LotStatus.UNSOLD
            return LotOutcome(
                lot_id=lot_id,
                status=LotStatus.UNSOLD,
                unsold_reason=UnsoldReason.NO_BIDS,
            )

        if lot.reserve is not None and winner.amount < lot.reserve:
            lot.status = LotStatus.UNSOLD
            winner.status = BidStatus.REJECTED
            return LotOutcome(
                lot_id=lot_id,
                status=LotStatus.UNSOLD,
                amount=winner.amount,
                unsold_reason=UnsoldReason.RESERVE_NOT_MET,
            )

        lot.status = LotStatus.SOLD
        winner.status = BidStatus.ACCEPTED
        return LotOutcome(
            lot_id=lot_id,
            status=LotStatus.SOLD,
            winner_id=UserId(winner.bidder_id),
            winning_bid_id=BidId(winner.bid_id),
            amount=winner.amount,
        )

    @staticmethod
    def _ended_result(
        session: Session,
        auction: TAuction,
        lots: list[TLot],
    ) -> EndAuctionResult:
        """
        Rebuilds the close outcome of an ENDED auction from the ledger
        """
        settled = {
            bid.lot_id: bid
            for bid in session.scalars(
                select(TBid).where(
                    TBid.auction_id == auction.auction_id,
                    TBid.status.in_((BidStatus.ACCEPTED, BidStatus.REJECTED)),
                )
            )
        }

        outcomes = []
        for lot in lots:
            bid = settled.get(lot.lot_id)
            match lot.status:
                case LotStatus.SOLD:
                    outcomes.append(
                        LotOutcome(
                            lot_id=LotId(lot.lot_id),
                            status=LotStatus.SOLD,
                            winner_id=UserId(bid.bidder_id) if bid else None,
                            winning_bid_id=BidId(bid.bid_id) if bid else None,
                            amount=bid.amount if bid else None,
                        )
                    )
                case LotStatus.UNSOLD:
                    outcomes.append(
                        LotOutcome(
                            lot_id=LotId(lot.lot_id),
                            status=LotStatus.UNSOLD,
                            amount=bid.amount if bid else None,
                            unsold_reason=(
                                UnsoldReason.RESERVE_NOT_MET
                                if bid
                                else UnsoldReason.NO_BIDS
                            ),
                        )
                    )

        return EndAuctionResult(
            auction_id=AuctionId(auction.auction_id),
            status=AuctionStatus.ENDED,
            lots=outcomes,
            total_revenue=auction.total_revenue or 0,
            platform_fee=auction.platform_fee or 0,
            already_ended=True,
        )

    def _fan_out(self, result: EndAuctionResult) -> None:
        publish_safely(
            self._publisher,
            Event(
                EventType.AUCTION_CLOSED,
                {
                    "auctionId": result.auction_id,
                    "lots": [
                        {
                            "lotId": outcome.lot_id,
                            "status": outcome.status.name,
                            "winnerId": outcome.winner_id,
                            "amount": outcome.amount if outcome.sold else None,
                        }
                        for outcome in result.lots
                    ],
                },
            ),
            topics=(auction_topic(result.auction_id),),
        )
        for outcome in result.winners:
            publish_safely(
                self._publisher,
                Event(
                    EventType.AUCTION_WON,
                    {
                        "auctionId": result.auction_id,
                        "lotId": outcome.lot_id,
                        "amount": outcome.amount,
                    },
                ),
                user_ids=(outcome.winner_id,),
            )
