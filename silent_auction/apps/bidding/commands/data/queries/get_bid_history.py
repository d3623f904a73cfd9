"""
Bid history queries
"""
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.commands.data import SqlAlchemySupport
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.domain.auction import LotId, UserId
from silent_auction.apps.bidding.domain.bid import Bid
from silent_auction.core.command import Command


class GetBidHistory(SqlAlchemySupport, Command[LotId, list[Bid]]):
    """
    Returns all bids on the lot, newest first.

    Bids placed at the same instant, i.e., proxy bids, are ordered by amount descending.
    """

    def __init__(self, session_factory: sessionmaker, limit: int | None = None):
        super().__init__(session_factory)
        self._limit = limit

    def __call__(self, lot_id: LotId) -> list[Bid]:
        query = (
            select(TBid)
            .where(TBid.lot_id == lot_id)
            .order_by(TBid.placed_at.desc(), TBid.amount.desc())
        )
        if self._limit is not None:
            query = query.limit(self._limit)
        with self.session_factory() as session:
            return [bid.to_bid() for bid in session.scalars(query)]


class GetBidderBids(SqlAlchemySupport, Command[UserId, list[Bid]]):
    """
    Returns the bidder's bids across all lots, newest first
    """

    def __init__(self, session_factory: sessionmaker, limit: int | None = None):
        super().__init__(session_factory)
        self._limit = limit

    def __call__(self, bidder_id: UserId) -> list[Bid]:
        query = (
            select(TBid)
            .where(TBid.bidder_id == bidder_id)
            .order_by(TBid.placed_at.desc(), TBid.amount.desc())
        )
        if self._limit is not None:
            query = query.limit(self._limit)
        with self.session_factory() as session:
            return [bid.to_bid() for bid in session.scalars(query)]
