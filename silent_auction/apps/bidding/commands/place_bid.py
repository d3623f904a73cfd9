"""
Command to place a bid on a lot
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from silent_auction.apps.bidding.commands.lot_bids import (
    load_lot_bids,
    leading_bid,
    count_bids,
    bid_ceiling,
)
from silent_auction.apps.bidding.commands.validate_bid import ValidateBid, BidContext
from silent_auction.apps.bidding.config import BiddingConfig
from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.data.ledger import Ledger, LockTimeoutError
from silent_auction.apps.bidding.domain.auction import (
    LotId,
    UserId,
    AuctionStatus,
    LotStatus,
)
from silent_auction.apps.bidding.domain.bid import BidStatus, new_bid_id
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
from silent_auction.apps.bidding.domain.results import PlaceBidResult
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True, frozen=True)
class PlaceBidRequest:
    """
    :field:`auto_bid_ceiling` - only used when `is_auto_bid` is True
    """

    lot_id: LotId
    bidder_id: UserId
    amount: int
    is_auto_bid: bool = False
    auto_bid_ceiling: int | None = None


@dataclass(slots=True)
class _Settlement:
    """
    Committed outcome, used to fan out notifications after the atomic scope closes
    """

    result: PlaceBidResult
    placed_at: datetime
    # bidders that led at some point during the request, but no longer lead
    outbid: set[UserId] = field(default_factory=set)


class PlaceBid(Command[PlaceBidRequest, PlaceBidResult | BiddingFailure]):
    """
    The sole writer path for new bids.

    Within a single atomic scope holding the lot lock:
    1. load the lot, its auction, and its bids
    2. validate the bid against the loaded state
    3. insert the bid as ACTIVE and demote every other ACTIVE bid on the lot to OUTBID
    4. settle proxy bidding: while an outbid auto-bidder's ceiling exceeds the current high bid, bid on their
       behalf, bounded by `max_auto_bid_iterations`
    5. apply anti-sniping extension if the auction has it enabled

    Rejections roll the scope back, i.e., there are no partial writes.
    After commit, events for the final state are fanned out:
    - `bid-placed` to the lot and auction topics
    - `outbid` to each bidder that lost the lead
    - `auction-extended` to the auction topic, if the end time moved
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
        self._validate = ValidateBid(config.max_bid_amount)

    def __call__(self, request: PlaceBidRequest) -> PlaceBidResult | BiddingFailure:
        logger = self.get_logger()
        try:
            with self._ledger.lot_scope(request.lot_id) as (session, lot):
                settlement = self._place(session, lot, request)
        except RejectedError as err:
            logger.debug(
                "bid rejected: lot_id=%s, bidder_id=%s, amount=%s, reason=%s",
                request.lot_id,
                request.bidder_id,
                request.amount,
                err.failure.kind,
            )
            return err.failure
        except LockTimeoutError:
            logger.warning("lot lock timed out: lot_id=%s", request.lot_id)
            return BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                "the lot is busy with other bids, please retry",
            )

        result = settlement.result
        logger.info(
            "bid accepted: bid_id=%s, lot_id=%s, amount=%s, high_amount=%s, proxy_bids=%s",
            result.bid_id,
            result.lot_id,
            result.amount,
            result.new_high_amount,
            len(result.proxy_bid_ids),
        )
        self._fan_out(settlement)
        return result

    def _place(
        self,
        session: Session,
        lot: TLot | None,
        request: PlaceBidRequest,
    ) -> _Settlement:
        if lot is None:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.LOT_NOT_FOUND, f"lot not found: {request.lot_id}"
                )
            )
        auction = session.get(TAuction, lot.auction_id)
        if auction is None:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.AUCTION_NOT_FOUND,
                    f"auction not found: {lot.auction_id}",
                )
            )

        now = self._clock()
        bids = load_lot_bids(session, lot.lot_id)
        leader = leading_bid(bids)

        failure = self._validate(
            self._bid_context(
                lot,
                auction,
                now,
                bidder_id=request.bidder_id,
                amount=request.amount,
                current_high=leader.amount if leader else None,
                is_auto_bid=request.is_auto_bid,
                auto_bid_ceiling=request.auto_bid_ceiling,
            )
        )
        if failure:
            raise RejectedError(failure)

        led: set[UserId] = set()
        if leader:
            led.add(UserId(leader.bidder_id))

        bid = self._append(
            session,
            bids,
            TBid(
                bid_id=new_bid_id(),
                lot_id=lot.lot_id,
                auction_id=lot.auction_id,
                bidder_id=request.bidder_id,
                amount=request.amount,
                placed_at=now,
                status=BidStatus.ACTIVE,
                is_auto_bid=request.is_auto_bid,
                auto_bid_ceiling=(
                    request.auto_bid_ceiling if request.is_auto_bid else None
                ),
            ),
        )
        audit(
            session,
            AuditCategory.BID,
            "bid_placed",
            "lot",
            lot.lot_id,
            now,
            user_id=request.bidder_id,
            bid_id=bid.bid_id,
            amount=bid.amount,
            is_auto_bid=bid.is_auto_bid,
        )

        leader = bid
        proxy_bid_ids = []
        for proxy_bid in self._settle_proxy_bids(session, lot, auction, bids, now):
            led.add(UserId(leader.bidder_id))
            leader = proxy_bid
            proxy_bid_ids.append(proxy_bid.bid_id)

        extended_end_time = self._extend_if_sniped(session, auction, now)

        return _Settlement(
            result=PlaceBidResult(
                bid_id=bid.bid_id,
                lot_id=lot.lot_id,
                auction_id=lot.auction_id,
                bidder_id=request.bidder_id,
                amount=request.amount,
                new_high_amount=leader.amount,
                leader_id=UserId(leader.bidder_id),
                total_bids=count_bids(bids),
                proxy_bid_ids=proxy_bid_ids,
                extended_end_time=extended_end_time,
            ),
            placed_at=now,
            outbid=led - {leader.bidder_id},
        )

    def _settle_proxy_bids(
        self,
        session: Session,
        lot: TLot,
        auction: TAuction,
        bids: list[TBid],
        now: datetime,
    ):
        """
        Generates the proxy bids placed on behalf of auto-bidders.

        Each proxy bid beats the current leader's ceiling if the auto-bidder can afford it,
        otherwise it is placed at the auto-bidder's full ceiling.
        """
        logger = self.get_logger("proxy")
        for _ in range(self._config.max_auto_bid_iterations):
            leader = leading_bid(bids)
            if leader is None:
                return
            challenger = self._proxy_challenger(bids, leader)
            if challenger is None:
                return

            ceiling = bid_ceiling(challenger)
            amount = min(ceiling, bid_ceiling(leader) + 1)
            failure = self._validate(
                self._bid_context(
                    lot,
                    auction,
                    now,
                    bidder_id=UserId(challenger.bidder_id),
                    amount=amount,
                    current_high=leader.amount,
                    is_auto_bid=True,
                    auto_bid_ceiling=ceiling,
                )
            )
            if failure:
                logger.debug(
                    "proxy bid not placed: bidder_id=%s, reason=%s",
                    challenger.bidder_id,
                    failure.kind,
                )
                return

            proxy_bid = self._append(
                session,
                bids,
                TBid(
                    bid_id=new_bid_id(),
                    lot_id=lot.lot_id,
                    auction_id=lot.auction_id,
                    bidder_id=challenger.bidder_id,
                    amount=amount,
                    placed_at=now,
                    status=BidStatus.ACTIVE,
                    is_auto_bid=True,
                    auto_bid_ceiling=ceiling,
                ),
            )
            audit(
                session,
                AuditCategory.BID,
                "proxy_bid_placed",
                "lot",
                lot.lot_id,
                now,
                user_id=proxy_bid.bidder_id,
                bid_id=proxy_bid.bid_id,
                amount=amount,
            )
            yield proxy_bid

        leader = leading_bid(bids)
        if leader and self._proxy_challenger(bids, leader):
            logger.warning(
                "proxy bidding stopped after %s iterations: lot_id=%s",
                self._config.max_auto_bid_iterations,
                lot.lot_id,
            )

    @staticmethod
    def _proxy_challenger(bids: list[TBid], leader: TBid) -> TBid | None:
        """
        Each bidder's most recent bid determines their standing ceiling. A withdrawn bid ends a bidder's
        proxy bidding.

        :return: the outbid auto-bid with the highest ceiling above the current high bid,
                 the earliest placed wins a tie
        """
        latest: dict[str, TBid] = {}
        for bid in bids:
            latest[bid.bidder_id] = bid

        candidates = [
            bid
            for bid in latest.values()
            if bid.bidder_id != leader.bidder_id
            and bid.status == BidStatus.OUTBID
            and bid.is_auto_bid
            and bid_ceiling(bid) > leader.amount
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda bid: (-bid_ceiling(bid), bid.placed_at))

    @staticmethod
    def _append(session: Session, bids: list[TBid], bid: TBid) -> TBid:
        """
        Demotes every ACTIVE bid on the lot and inserts the new leader.
        The demotion and insert are flushed together, i.e., no reader of the committed state sees two ACTIVE bids.
        """
        for existing in bids:
            if existing.status == BidStatus.ACTIVE:
                existing.status = BidStatus.OUTBID
        session.add(bid)
        bids.append(bid)
        session.flush()
        return bid

    def _extend_if_sniped(
        self,
        session: Session,
        auction: TAuction,
        now: datetime,
    ) -> datetime | None:
        """
        Pushes the end time out to at least `now + auto_extend_minutes` when a bid lands within the
        auto-extend window. The end time only ever moves forward.
        """
        if auction.auto_extend_minutes <= 0:
            return None
        if auction.end_time - now > self._config.auto_extend_window:
            return None

        end_time = now + timedelta(minutes=auction.auto_extend_minutes)
        if end_time <= auction.end_time:
            return None

        previous_end_time = auction.end_time
        rowcount = session.execute(
            update(TAuction)
            .where(
                TAuction.auction_id == auction.auction_id,
                TAuction.end_time < end_time,
            )
            .values(end_time=end_time, closing_notice_sent_at=None)
            .execution_options(synchronize_session=False)
        ).rowcount
        if rowcount == 0:
            return None

        audit(
            session,
            AuditCategory.AUCTION,
            "auction_auto_extended",
            "auction",
            auction.auction_id,
            now,
            previous_end_time=previous_end_time.isoformat(),
            end_time=end_time.isoformat(),
        )
        return end_time

    @staticmethod
    def _bid_context(
        lot: TLot,
        auction: TAuction,
        now: datetime,
        bidder_id: UserId,
        amount: int,
        current_high: int | None,
        is_auto_bid: bool,
        auto_bid_ceiling: int | None,
    ) -> BidContext:
        # pylint: disable=too-many-arguments
        return BidContext(
            amount=amount,
            bidder_id=bidder_id,
            starting_bid=lot.starting_bid,
            reserve=lot.reserve,
            lot_status=LotStatus(lot.status),
            artist_id=UserId(lot.artist_id),
            current_high=current_high,
            auction_status=AuctionStatus(auction.status),
            start_time=auction.start_time,
            end_time=auction.end_time,
            now=now,
            is_auto_bid=is_auto_bid,
            auto_bid_ceiling=auto_bid_ceiling,
        )

    def _fan_out(self, settlement: _Settlement) -> None:
        result = settlement.result
        bid_placed = Event(
            EventType.BID_PLACED,
            {
                "lotId": result.lot_id,
                "auctionId": result.auction_id,
                "bidId": result.bid_id,
                "highAmount": result.new_high_amount,
                "leaderId": result.leader_id,
                "totalBids": result.total_bids,
            },
            timestamp=settlement.placed_at,
        )
        publish_safely(
            self._publisher,
            bid_placed,
            topics=(lot_topic(result.lot_id), auction_topic(result.auction_id)),
        )

        if settlement.outbid:
            outbid = Event(
                EventType.OUTBID,
                {
                    "lotId": result.lot_id,
                    "auctionId": result.auction_id,
                    "highAmount": result.new_high_amount,
                },
                timestamp=settlement.placed_at,
            )
            publish_safely(
                self._publisher, outbid, user_ids=sorted(settlement.outbid)
            )

        if result.extended_end_time:
            publish_safely(
                self._publisher,
                Event(
                    EventType.AUCTION_EXTENDED,
                    {
                        "auctionId": result.auction_id,
                        "endTime": result.extended_end_time.isoformat(),
                    },
                    timestamp=settlement.placed_at,
                ),
                topics=(auction_topic(result.auction_id),),
            )
