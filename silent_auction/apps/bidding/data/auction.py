"""
Auction and Lot data model
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from silent_auction.apps.bidding.data import Base
from silent_auction.apps.bidding.domain.auction import (
    Auction,
    AuctionId,
    AuctionStatus,
    Lot,
    LotId,
    LotStatus,
    SchoolId,
    UserId,
)


class TAuction(Base):
    """
    Auction database table model
    """

    # pylint: disable=too-many-instance-attributes

    __tablename__ = "auction"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="auction_time_window"),
        CheckConstraint(
            "platform_fee_percentage >= 0 AND platform_fee_percentage <= 100",
            name="auction_fee_percentage",
        ),
    )

    auction_id: Mapped[AuctionId] = mapped_column(primary_key=True)
    school_id: Mapped[SchoolId] = mapped_column(index=True)
    title: Mapped[str] = mapped_column(String(255))

    start_time: Mapped[datetime] = mapped_column(index=True)
    end_time: Mapped[datetime] = mapped_column(index=True)
    status: Mapped[AuctionStatus] = mapped_column(index=True)

    platform_fee_percentage: Mapped[Decimal] = mapped_column()
    platform_fee_minimum: Mapped[int] = mapped_column()

    created_by: Mapped[UserId] = mapped_column()

    auto_extend_minutes: Mapped[int] = mapped_column(default=0)

    closing_notice_sent_at: Mapped[datetime | None] = mapped_column(default=None)
    ended_at: Mapped[datetime | None] = mapped_column(default=None)
    total_revenue: Mapped[int | None] = mapped_column(default=None)
    platform_fee: Mapped[int | None] = mapped_column(default=None)

    @classmethod
    def create(cls, auction: Auction) -> "TAuction":
        """
        Converts Auction -> TAuction
        """
        return cls(
            auction_id=auction.auction_id,
            school_id=auction.school_id,
            title=auction.title,
            start_time=auction.start_time,
            end_time=auction.end_time,
            status=auction.status,
            platform_fee_percentage=auction.platform_fee_percentage,
            platform_fee_minimum=auction.platform_fee_minimum,
            created_by=auction.created_by,
            auto_extend_minutes=auction.auto_extend_minutes,
            closing_notice_sent_at=auction.closing_notice_sent_at,
            ended_at=auction.ended_at,
            total_revenue=auction.total_revenue,
            platform_fee=auction.platform_fee,
        )

    def to_auction(self) -> Auction:
        """
        Converts this instance into an Auction instance
        """
        return Auction(
            auction_id=AuctionId(self.auction_id),
            school_id=SchoolId(self.school_id),
            title=self.title,
            start_time=self.start_time,
            end_time=self.end_time,
            status=AuctionStatus(self.status),
            platform_fee_percentage=Decimal(self.platform_fee_percentage),
            platform_fee_minimum=self.platform_fee_minimum,
            created_by=UserId(self.created_by),
            auto_extend_minutes=self.auto_extend_minutes,
            closing_notice_sent_at=self.closing_notice_sent_at,
            ended_at=self.ended_at,
            total_revenue=self.total_revenue,
            platform_fee=self.platform_fee,
        )


class TLot(Base):
    """
    Lot (artwork) database table model
    """

    __tablename__ = "lot"
    __table_args__ = (
        CheckConstraint("starting_bid > 0", name="lot_starting_bid"),
        CheckConstraint(
            "reserve IS NULL OR reserve >= starting_bid", name="lot_reserve"
        ),
    )

    lot_id: Mapped[LotId] = mapped_column(primary_key=True)
    auction_id: Mapped[AuctionId] = mapped_column(
        ForeignKey("auction.auction_id", ondelete="CASCADE"),
        index=True,
    )
    artist_id: Mapped[UserId] = mapped_column(index=True)
    title: Mapped[str] = mapped_column(String(255))
    starting_bid: Mapped[int] = mapped_column()
    status: Mapped[LotStatus] = mapped_column(index=True)
    reserve: Mapped[int | None] = mapped_column(default=None)

    @classmethod
    def create(cls, lot: Lot) -> "TLot":
        """
        Converts Lot -> TLot
        """
        return cls(
            lot_id=lot.lot_id,
            auction_id=lot.auction_id,
            artist_id=lot.artist_id,
            title=lot.title,
            starting_bid=lot.starting_bid,
            status=lot.status,
            reserve=lot.reserve,
        )

    def to_lot(self) -> Lot:
        """
        Converts this instance into a Lot instance
        """
        return Lot(
            lot_id=LotId(self.lot_id),
            auction_id=AuctionId(self.auction_id),
            artist_id=UserId(self.artist_id),
            title=self.title,
            starting_bid=self.starting_bid,
            reserve=self.reserve,
            status=LotStatus(self.status),
        )
