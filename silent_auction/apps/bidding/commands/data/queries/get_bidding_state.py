"""
Retrieves the derived bidding state for a lot
"""
from datetime import timedelta

from sqlalchemy import select, func
from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.commands.data import SqlAlchemySupport
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    AuctionStatus,
    LotId,
    LotStatus,
    UserId,
)
from silent_auction.apps.bidding.domain.bid import BidId, BidStatus
from silent_auction.apps.bidding.domain.bidding_state import BiddingState
from silent_auction.core.command import Command, Clock, utc_now


class GetBiddingState(SqlAlchemySupport, Command[LotId, BiddingState | None]):
    """
    Computes the lot's bidding state from the ledger rows on every call. Nothing is cached.

    :return: None if the lot does not exist
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        super().__init__(session_factory)
        self._clock = clock

    def __call__(self, lot_id: LotId) -> BiddingState | None:
        with self.session_factory() as session:
            row = session.execute(
                select(TLot, TAuction)
                .join(TAuction, TAuction.auction_id == TLot.auction_id)
                .where(TLot.lot_id == lot_id)
            ).one_or_none()
            if row is None:
                return None
            lot, auction = row

            leader = session.scalars(
                select(TBid)
                .where(TBid.lot_id == lot_id, TBid.status == BidStatus.ACTIVE)
                .order_by(TBid.amount.desc(), TBid.placed_at)
                .limit(1)
            ).one_or_none()
            total_bids = session.scalar(
                select(func.count())  # pylint: disable=not-callable
                .select_from(TBid)
                .where(TBid.lot_id == lot_id, TBid.status != BidStatus.WITHDRAWN)
            )

            high_amount = leader.amount if leader else None
            return BiddingState(
                lot_id=LotId(lot.lot_id),
                auction_id=AuctionId(auction.auction_id),
                high_amount=high_amount,
                leader_id=UserId(leader.bidder_id) if leader else None,
                leading_bid_id=BidId(leader.bid_id) if leader else None,
                total_bids=total_bids or 0,
                starting_bid=lot.starting_bid,
                reserve_met=lot.reserve is None
                or (high_amount is not None and high_amount >= lot.reserve),
                lot_status=LotStatus(lot.status),
                auction_status=AuctionStatus(auction.status),
                end_time=auction.end_time,
                time_remaining=max(auction.end_time - self._clock(), timedelta(0)),
            )
