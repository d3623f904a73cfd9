"""
Non-blocking notification dispatch
"""
import multiprocessing
from dataclasses import dataclass

from reactivex import Subject
from reactivex.abc import DisposableBase
from reactivex.operators import observe_on
from reactivex.scheduler import ThreadPoolScheduler
from reactivex.scheduler.scheduler import Scheduler

from silent_auction.apps.bidding.domain.auction import UserId
from silent_auction.apps.bidding.domain.events import Event, Topic
from silent_auction.apps.bidding.notifications.publisher import NotificationPublisher
from silent_auction.core.logging import get_logger


@dataclass(slots=True, frozen=True)
class _Delivery:
    event: Event
    topic: Topic | None = None
    user_id: UserId | None = None


class NotificationDispatcher(NotificationPublisher):
    """
    Decouples the request path from the transport.

    Calls return immediately after enqueueing. Deliveries are handed to the wrapped transport on the scheduler,
    in the order they were enqueued. Transport failures are logged and swallowed.
    """

    def __init__(
        self,
        transport: NotificationPublisher,
        scheduler: Scheduler | None = None,
    ):
        self._transport = transport
        self._logger = get_logger(self)

        self._subject: Subject[_Delivery] = Subject()
        self._subscription: DisposableBase = self._subject.pipe(
            observe_on(
                scheduler
                if scheduler
                else ThreadPoolScheduler(multiprocessing.cpu_count())
            )
        ).subscribe(self._deliver)

    def publish(self, topic: Topic, event: Event) -> None:
        self._subject.on_next(_Delivery(event=event, topic=topic))

    def notify_user(self, user_id: UserId, event: Event) -> None:
        self._subject.on_next(_Delivery(event=event, user_id=user_id))

    def close(self) -> None:
        """
        Stops dispatching. Deliveries enqueued after close are dropped.
        """
        self._subscription.dispose()

    def _deliver(self, delivery: _Delivery) -> None:
        try:
            if delivery.topic is not None:
                self._transport.publish(delivery.topic, delivery.event)
            elif delivery.user_id is not None:
                self._transport.notify_user(delivery.user_id, delivery.event)
        except Exception:  # pylint: disable=broad-exception-caught
            self._logger.exception(
                "failed to deliver %s event: topic=%s, user_id=%s",
                delivery.event.event_type,
                delivery.topic,
                delivery.user_id,
            )
