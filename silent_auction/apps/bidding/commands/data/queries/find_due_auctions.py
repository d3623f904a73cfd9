"""
Finds auctions that the sweep needs to act on
"""
from dataclasses import dataclass, field
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.commands.data import SqlAlchemySupport
from silent_auction.apps.bidding.data.auction import TAuction
from silent_auction.apps.bidding.domain.auction import AuctionId, AuctionStatus
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True)
class DueAuctions:
    """
    Auction IDs are ordered by the time they became due
    """

    # APPROVED auctions whose start time has arrived
    to_open: list[AuctionId] = field(default_factory=list)
    # LIVE auctions within the closing-soon window that have not been sent the notice
    closing_soon: list[AuctionId] = field(default_factory=list)
    # LIVE auctions whose end time has passed
    to_end: list[AuctionId] = field(default_factory=list)


class FindDueAuctions(SqlAlchemySupport, Command[timedelta, DueAuctions]):
    """
    :param: closing-soon window
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        super().__init__(session_factory)
        self._clock = clock

    def __call__(self, closing_soon_window: timedelta) -> DueAuctions:
        now = self._clock()
        with self.session_factory() as session:
            to_open = session.scalars(
                select(TAuction.auction_id)
                .where(
                    TAuction.status == AuctionStatus.APPROVED,
                    TAuction.start_time <= now,
                )
                .order_by(TAuction.start_time)
            ).all()
            closing_soon = session.scalars(
                select(TAuction.auction_id)
                .where(
                    TAuction.status == AuctionStatus.LIVE,
                    TAuction.end_time > now,
                    TAuction.end_time <= now + closing_soon_window,
                    TAuction.closing_notice_sent_at.is_(None),
                )
                .order_by(TAuction.end_time)
            ).all()
            to_end = session.scalars(
                select(TAuction.auction_id)
                .where(
                    TAuction.status == AuctionStatus.LIVE,
                    TAuction.end_time <= now,
                )
                .order_by(TAuction.end_time)
            ).all()

        return DueAuctions(
            to_open=[AuctionId(auction_id) for auction_id in to_open],
            closing_soon=[AuctionId(auction_id) for auction_id in closing_soon],
            to_end=[AuctionId(auction_id) for auction_id in to_end],
        )
