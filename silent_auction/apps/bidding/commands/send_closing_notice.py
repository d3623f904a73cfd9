"""
Command to publish the closing-soon notice for an auction
"""
from sqlalchemy import update

from silent_auction.apps.bidding.data.auction import TAuction
from silent_auction.apps.bidding.data.ledger import Ledger
from silent_auction.apps.bidding.domain.auction import AuctionId, AuctionStatus
from silent_auction.apps.bidding.domain.events import Event, EventType, auction_topic
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


class SendClosingNotice(Command[AuctionId, bool]):
    """
    Publishes `closing-soon` once per end time. The notice is claimed by setting `closing_notice_sent_at`, which is
    cleared whenever the auction is extended.

    :return: True if the notice was published, False if the auction is not LIVE or the notice was already sent
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

    def __call__(self, auction_id: AuctionId) -> bool:
        now = self._clock()
        with self._ledger.transaction() as session:
            claimed = session.execute(
                update(TAuction)
                .where(
                    TAuction.auction_id == auction_id,
                    TAuction.status == AuctionStatus.LIVE,
                    TAuction.closing_notice_sent_at.is_(None),
                )
                .values(closing_notice_sent_at=now)
                .execution_options(synchronize_session=False)
            ).rowcount
            end_time = session.get(TAuction, auction_id).end_time if claimed else None

        if not claimed:
            return False

        self.get_logger().info(
            "closing-soon notice sent: auction_id=%s, end_time=%s",
            auction_id,
            end_time.isoformat(),
        )
        publish_safely(
            self._publisher,
            Event(
                EventType.CLOSING_SOON,
                {
                    "auctionId": auction_id,
                    "endTime": end_time.isoformat(),
                    "secondsRemaining": max(int((end_time - now).total_seconds()), 0),
                },
                timestamp=now,
            ),
            topics=(auction_topic(auction_id),),
        )
        return True
