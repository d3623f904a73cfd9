"""
Helpers over a lot's bid rows loaded inside an atomic scope
"""
from sqlalchemy import select
from sqlalchemy.orm import Session

from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.domain.auction import LotId
from silent_auction.apps.bidding.domain.bid import BidStatus


def load_lot_bids(session: Session, lot_id: LotId) -> list[TBid]:
    """
    :return: all bids on the lot in the order they were placed
    """
    return list(
        session.scalars(
            select(TBid)
            .where(TBid.lot_id == lot_id)
            .order_by(TBid.placed_at, TBid.amount)
        )
    )


def leading_bid(bids: list[TBid]) -> TBid | None:
    """
    :return: the ACTIVE bid with the highest amount, the earliest placed wins a tie
    """
    active = [bid for bid in bids if bid.status == BidStatus.ACTIVE]
    if not active:
        return None
    return min(active, key=lambda bid: (-bid.amount, bid.placed_at))


def count_bids(bids: list[TBid]) -> int:
    """
    Withdrawn bids are not counted
    """
    return sum(1 for bid in bids if bid.status != BidStatus.WITHDRAWN)


def bid_ceiling(bid: TBid) -> int:
    """
    :return: the auto-bid ceiling for auto-bids, otherwise the bid amount
    """
    if bid.is_auto_bid and bid.auto_bid_ceiling is not None:
        return bid.auto_bid_ceiling
    return bid.amount
