"""
Notification fan-out contract
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable

from silent_auction.apps.bidding.domain.auction import UserId
from silent_auction.apps.bidding.domain.events import Event, Topic


class NotificationPublisher(ABC):
    """
    Capabilities the bidding core depends on to push state changes to watching clients.

    Delivery guarantees are the transport's concern. From the core's perspective publishing is fire-and-forget:
    a delivery failure never rolls back or blocks a bid, withdrawal, or auction closure.
    """

    @abstractmethod
    def publish(self, topic: Topic, event: Event) -> None:
        """
        Broadcasts the event to all subscribers of the topic
        """

    @abstractmethod
    def notify_user(self, user_id: UserId, event: Event) -> None:
        """
        Sends the event to the user's connections
        """


def publish_safely(
    publisher: NotificationPublisher,
    event: Event,
    topics: Iterable[Topic] = (),
    user_ids: Iterable[UserId] = (),
) -> None:
    """
    Fans the event out to the topics and users. Failures are logged and never raised to the caller,
    because the state change the event describes has already been committed.
    """
    logger = logging.getLogger(NotificationPublisher.__name__)
    for topic in topics:
        try:
            publisher.publish(topic, event)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("failed to publish %s to %s", event.event_type, topic)
    for user_id in user_ids:
        try:
            publisher.notify_user(user_id, event)
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("failed to notify user %s of %s", user_id, event.event_type)
