import unittest
from threading import Event as ThreadingEvent

from reactivex.scheduler import ImmediateScheduler, ThreadPoolScheduler

from silent_auction.apps.bidding.domain.auction import AuctionId, UserId
from silent_auction.apps.bidding.domain.events import Event, EventType, auction_topic
from silent_auction.apps.bidding.notifications.dispatcher import NotificationDispatcher
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from tests.test_support import RecordingPublisher, FailingPublisher

TOPIC = auction_topic(AuctionId("auction-1"))
ALICE = UserId("alice")


def event(amount: int) -> Event:
    return Event(EventType.BID_PLACED, {"highAmount": amount})


class BlockingTransport(RecordingPublisher):
    """
    Blocks every delivery until released
    """

    def __init__(self, expected_deliveries: int):
        super().__init__()
        self.released = ThreadingEvent()
        self.delivered = ThreadingEvent()
        self._expected_deliveries = expected_deliveries

    def publish(self, topic, event) -> None:
        self.released.wait(10)
        super().publish(topic, event)
        if len(self.published) + len(self.notified) == self._expected_deliveries:
            self.delivered.set()

    def notify_user(self, user_id, event) -> None:
        self.released.wait(10)
        super().notify_user(user_id, event)
        if len(self.published) + len(self.notified) == self._expected_deliveries:
            self.delivered.set()


class FlakyTransport(RecordingPublisher):
    """
    Fails every other delivery
    """

    def __init__(self):
        super().__init__()
        self.calls = 0

    def publish(self, topic, event) -> None:
        self.calls += 1
        if self.calls % 2:
            raise ConnectionError("connection reset")
        super().publish(topic, event)


class NotificationDispatcherTestCase(unittest.TestCase):
    def test_dispatch_does_not_block_the_caller(self):
        transport = BlockingTransport(expected_deliveries=3)
        dispatcher = NotificationDispatcher(transport, ThreadPoolScheduler(1))
        try:
            dispatcher.publish(TOPIC, event(1000))
            dispatcher.publish(TOPIC, event(1100))
            dispatcher.notify_user(ALICE, event(1100))

            # the transport is still blocked
            self.assertEqual([], transport.published)

            transport.released.set()
            self.assertTrue(transport.delivered.wait(10))
            self.assertEqual(
                [1000, 1100],
                [published.data["highAmount"] for _, published in transport.published],
            )
            self.assertEqual([ALICE], [user_id for user_id, _ in transport.notified])
        finally:
            transport.released.set()
            dispatcher.close()

    def test_transport_failures_are_swallowed(self):
        transport = FlakyTransport()
        dispatcher = NotificationDispatcher(transport, ImmediateScheduler())

        with self.assertLogs("NotificationDispatcher", level="ERROR") as logs:
            for amount in (1000, 1100, 1200, 1300):
                dispatcher.publish(TOPIC, event(amount))

        self.assertEqual(2, len(logs.records))
        self.assertEqual(
            [1100, 1300],
            [published.data["highAmount"] for _, published in transport.published],
        )

    def test_close(self):
        transport = RecordingPublisher()
        dispatcher = NotificationDispatcher(transport, ImmediateScheduler())
        dispatcher.publish(TOPIC, event(1000))

        dispatcher.close()
        dispatcher.publish(TOPIC, event(1100))

        self.assertEqual(1, len(transport.published))


class PublishSafelyTestCase(unittest.TestCase):
    def test_failures_are_logged(self):
        with self.assertLogs(NotificationPublisher.__name__, level="ERROR") as logs:
            publish_safely(
                FailingPublisher(),
                event(1000),
                topics=(TOPIC, TOPIC),
                user_ids=(ALICE,),
            )
        self.assertEqual(3, len(logs.records))

    def test_fan_out(self):
        publisher = RecordingPublisher()
        publish_safely(
            publisher,
            event(1000),
            topics=(TOPIC,),
            user_ids=(ALICE, UserId("bob")),
        )
        self.assertEqual([TOPIC], [topic for topic, _ in publisher.published])
        self.assertEqual(
            [ALICE, UserId("bob")], [user_id for user_id, _ in publisher.notified]
        )


if __name__ == "__main__":
    unittest.main()
