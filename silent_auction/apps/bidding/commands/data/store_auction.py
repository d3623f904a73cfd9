"""
Commands to create auctions and add lots
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.commands.data import SqlAlchemySupport
from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.domain.auction import (
    Auction,
    AuctionId,
    AuctionStatus,
    Lot,
    LotStatus,
    SchoolId,
    UserId,
    new_auction_id,
    new_lot_id,
)
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True, frozen=True)
class CreateAuctionRequest:
    """
    CreateAuctionRequest
    """

    # pylint: disable=too-many-instance-attributes

    school_id: SchoolId
    title: str
    start_time: datetime
    end_time: datetime
    created_by: UserId
    platform_fee_percentage: Decimal = Decimal("0")
    platform_fee_minimum: int = 0
    auto_extend_minutes: int = 0


class CreateAuction(SqlAlchemySupport, Command[CreateAuctionRequest, Auction]):
    """
    Creates a new auction in DRAFT status

    :exception ValueError: if the request is invalid
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        super().__init__(session_factory)
        self._clock = clock

    def __call__(self, request: CreateAuctionRequest) -> Auction:
        if not request.title.strip():
            raise ValueError("title is required")
        if request.start_time >= request.end_time:
            raise ValueError("auction start time must be before its end time")
        if not Decimal(0) <= request.platform_fee_percentage <= Decimal(100):
            raise ValueError("platform fee percentage must be within [0, 100]")
        if request.platform_fee_minimum < 0:
            raise ValueError("platform fee minimum must not be negative")
        if request.auto_extend_minutes < 0:
            raise ValueError("auto extend minutes must not be negative")

        auction = Auction(
            auction_id=new_auction_id(),
            school_id=request.school_id,
            title=request.title.strip(),
            start_time=request.start_time,
            end_time=request.end_time,
            status=AuctionStatus.DRAFT,
            platform_fee_percentage=request.platform_fee_percentage,
            platform_fee_minimum=request.platform_fee_minimum,
            created_by=request.created_by,
            auto_extend_minutes=request.auto_extend_minutes,
        )
        with self.session_factory.begin() as session:
            session.add(TAuction.create(auction))
            audit(
                session,
                AuditCategory.AUCTION,
                "auction_created",
                "auction",
                auction.auction_id,
                self._clock(),
                user_id=request.created_by,
                school_id=request.school_id,
            )

        self.get_logger().info(
            "auction created: auction_id=%s, school_id=%s",
            auction.auction_id,
            auction.school_id,
        )
        return auction


@dataclass(slots=True, frozen=True)
class AddLotRequest:
    auction_id: AuctionId
    artist_id: UserId
    title: str
    starting_bid: int
    reserve: int | None = None


class AddLot(SqlAlchemySupport, Command[AddLotRequest, Lot]):
    """
    Adds a DRAFT lot to an auction that has not started, i.e., the auction is DRAFT, PENDING_APPROVAL, or APPROVED

    :exception ValueError: if the request is invalid or the auction does not accept new lots
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = utc_now):
        super().__init__(session_factory)
        self._clock = clock

    def __call__(self, request: AddLotRequest) -> Lot:
        if not request.title.strip():
            raise ValueError("title is required")
        if request.starting_bid <= 0:
            raise ValueError("starting bid must be positive")
        if request.reserve is not None and request.reserve < request.starting_bid:
            raise ValueError("reserve must be at least the starting bid")

        lot = Lot(
            lot_id=new_lot_id(),
            auction_id=request.auction_id,
            artist_id=request.artist_id,
            title=request.title.strip(),
            starting_bid=request.starting_bid,
            reserve=request.reserve,
            status=LotStatus.DRAFT,
        )
        with self.session_factory.begin() as session:
            auction = session.get(TAuction, request.auction_id)
            if auction is None:
                raise ValueError(f"auction not found: {request.auction_id}")
            if auction.status not in (
                AuctionStatus.DRAFT,
                AuctionStatus.PENDING_APPROVAL,
                AuctionStatus.APPROVED,
            ):
                raise ValueError(
                    f"lots cannot be added when the auction is {AuctionStatus(auction.status).name}"
                )
            session.add(TLot.create(lot))
            audit(
                session,
                AuditCategory.LOT,
                "lot_created",
                "lot",
                lot.lot_id,
                self._clock(),
                user_id=request.artist_id,
                auction_id=request.auction_id,
            )

        self.get_logger().info(
            "lot added: lot_id=%s, auction_id=%s", lot.lot_id, lot.auction_id
        )
        return lot
