"""
Bid data model
"""
from datetime import datetime

from sqlalchemy import ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from silent_auction.apps.bidding.data import Base
from silent_auction.apps.bidding.domain.auction import AuctionId, LotId, UserId
from silent_auction.apps.bidding.domain.bid import Bid, BidId, BidStatus


class TBid(Base):
    """
    Bid database table model

    Rows are append-only. Only `status` is ever updated.
    """

    # pylint: disable=too-many-instance-attributes

    __tablename__ = "bid"
    __table_args__ = (
        CheckConstraint("amount > 0", name="bid_amount"),
        CheckConstraint(
            "auto_bid_ceiling IS NULL OR auto_bid_ceiling >= amount",
            name="bid_auto_bid_ceiling",
        ),
        Index("ix_bid_lot_status", "lot_id", "status"),
    )

    bid_id: Mapped[BidId] = mapped_column(primary_key=True)
    lot_id: Mapped[LotId] = mapped_column(
        ForeignKey("lot.lot_id", ondelete="CASCADE"),
        index=True,
    )
    auction_id: Mapped[AuctionId] = mapped_column(
        ForeignKey("auction.auction_id", ondelete="CASCADE"),
        index=True,
    )
    bidder_id: Mapped[UserId] = mapped_column(index=True)
    amount: Mapped[int] = mapped_column()
    placed_at: Mapped[datetime] = mapped_column(index=True)
    status: Mapped[BidStatus] = mapped_column()
    is_auto_bid: Mapped[bool] = mapped_column(default=False)
    auto_bid_ceiling: Mapped[int | None] = mapped_column(default=None)

    def to_bid(self) -> Bid:
        """
        Converts this instance into a Bid instance
        """
        return Bid(
            bid_id=BidId(self.bid_id),
            lot_id=LotId(self.lot_id),
            auction_id=AuctionId(self.auction_id),
            bidder_id=UserId(self.bidder_id),
            amount=self.amount,
            placed_at=self.placed_at,
            status=BidStatus(self.status),
            is_auto_bid=self.is_auto_bid,
            auto_bid_ceiling=self.auto_bid_ceiling,
        )
