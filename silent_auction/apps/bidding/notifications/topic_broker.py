"""
In-process realtime transport
"""
from collections import deque
from threading import Lock

from reactivex import Observable, Subject

from silent_auction.apps.bidding.domain.auction import AuctionStatus, UserId
from silent_auction.apps.bidding.domain.events import (
    Event,
    EventType,
    Topic,
    lot_topic,
)
from silent_auction.apps.bidding.notifications.publisher import NotificationPublisher
from silent_auction.core.logging import get_logger


class TopicBroker(NotificationPublisher):
    """
    Publish/subscribe over reactivex subjects, one per topic and one per user.

    Connection handlers (e.g. a websocket server) subscribe to the streams and forward events to their sockets.
    Recent events are retained per topic so that new subscribers can render current state.
    """

    def __init__(self, history_size: int = 50):
        self._history_size = history_size
        self._topics: dict[Topic, Subject[Event]] = {}
        self._users: dict[UserId, Subject[Event]] = {}
        self._history: dict[Topic, deque[Event]] = {}
        self._lock = Lock()
        self._logger = get_logger(self)

    def topic(self, topic: Topic) -> Observable[Event]:
        """
        :return: stream of events published to the topic from now on
        """
        with self._lock:
            return self._topic_subject(topic)

    def user(self, user_id: UserId) -> Observable[Event]:
        """
        :return: stream of events sent to the user from now on
        """
        with self._lock:
            return self._user_subject(user_id)

    def recent_events(self, topic: Topic, limit: int = 10) -> list[Event]:
        """
        :return: up to `limit` most recent events for the topic, oldest first
        """
        with self._lock:
            history = self._history.get(topic)
            if not history:
                return []
            return list(history)[-limit:]

    def publish(self, topic: Topic, event: Event) -> None:
        with self._lock:
            self._history.setdefault(topic, deque(maxlen=self._history_size)).append(
                event
            )
            subject = self._topics.get(topic)
        if subject is not None:
            subject.on_next(event)
        self._logger.debug("published %s to %s", event.event_type, topic)
        for retired in self._retired_topics(topic, event):
            self.close_topic(retired)

    def notify_user(self, user_id: UserId, event: Event) -> None:
        with self._lock:
            subject = self._users.get(user_id)
        if subject is not None:
            subject.on_next(event)

    def close_topic(self, topic: Topic) -> None:
        """
        Completes the topic stream and drops its history.
        Subscribing to the topic again starts a new stream.
        """
        with self._lock:
            subject = self._topics.pop(topic, None)
            self._history.pop(topic, None)
        if subject is not None:
            subject.on_completed()
            self._logger.debug("closed %s", topic)

    def close_user(self, user_id: UserId) -> None:
        """
        Completes the user's stream, e.g., when their last connection goes away.
        """
        with self._lock:
            subject = self._users.pop(user_id, None)
        if subject is not None:
            subject.on_completed()

    @staticmethod
    def _retired_topics(topic: Topic, event: Event) -> list[Topic]:
        """
        Nothing is published to an auction's topics once it is closed or cancelled.
        """
        if event.event_type == EventType.AUCTION_CLOSED:
            return [topic] + [lot_topic(lot["lotId"]) for lot in event.data["lots"]]
        if (
            event.event_type == EventType.AUCTION_STATUS_CHANGED
            and event.data["status"] == AuctionStatus.CANCELLED.name
        ):
            return [topic]
        return []

    def _topic_subject(self, topic: Topic) -> Subject[Event]:
        subject = self._topics.get(topic)
        if subject is None:
            subject = Subject()
            self._topics[topic] = subject
        return subject

    def _user_subject(self, user_id: UserId) -> Subject[Event]:
        subject = self._users.get(user_id)
        if subject is None:
            subject = Subject()
            self._users[user_id] = subject
        return subject
