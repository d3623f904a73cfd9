"""
Notification events published to the realtime transport
"""
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import StrEnum
from typing import Any

from silent_auction.apps.bidding.domain.auction import AuctionId, LotId

Topic = str


class EventType(StrEnum):
    """
    Event wire names
    """

    BID_PLACED = "bid-placed"
    OUTBID = "outbid"
    LEADER_CHANGED = "leader-changed"
    CLOSING_SOON = "closing-soon"
    AUCTION_CLOSED = "auction-closed"
    AUCTION_WON = "auction-won"
    AUCTION_EXTENDED = "auction-extended"
    AUCTION_STATUS_CHANGED = "auction-status-changed"


def auction_topic(auction_id: AuctionId) -> Topic:
    return f"auction:{auction_id}"


def lot_topic(lot_id: LotId) -> Topic:
    return f"lot:{lot_id}"


@dataclass(slots=True, frozen=True)
class Event:
    """
    :field:`data` - JSON friendly payload, i.e., ids, amounts in minor units, ISO-8601 timestamps
    """

    event_type: EventType
    data: dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": str(self.event_type),
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }
