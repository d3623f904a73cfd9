"""
Periodically sweeps the ledger for auctions that are due to open, close soon, or end
"""
from dataclasses import dataclass, field
from datetime import timedelta
from threading import Thread, Event
from typing import Callable

from reactivex import Observable, Subject
from reactivex.operators import observe_on

from silent_auction.apps.bidding.commands.data.queries.find_due_auctions import (
    FindDueAuctions,
)
from silent_auction.apps.bidding.commands.send_closing_notice import (
    SendClosingNotice,
)
from silent_auction.apps.bidding.domain.auction import AuctionId
from silent_auction.apps.bidding.domain.errors import BiddingFailure, FailureKind
from silent_auction.apps.bidding.services.auction_lifecycle import (
    AuctionLifecycleController,
)
from silent_auction.core.health_check import HealthCheck
from silent_auction.core.logging import get_logger
from silent_auction.core.service import Service, ServiceCommand, default_scheduler


@dataclass(slots=True)
class SweepResult:
    """
    Auctions acted on by a single sweep
    """

    opened: list[AuctionId] = field(default_factory=list)
    closing_notices: list[AuctionId] = field(default_factory=list)
    ended: list[AuctionId] = field(default_factory=list)
    # auctions whose operation raised an error
    failed: list[AuctionId] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.opened or self.closing_notices or self.ended or self.failed)


class AuctionSweepService(Service):
    """
    Each sweep:
    1. opens APPROVED auctions whose start time has arrived
    2. publishes the closing-soon notice for LIVE auctions entering the closing-soon window
    3. ends LIVE auctions whose end time has passed

    Every operation is guarded, i.e., sweeps from multiple processes may overlap. Ending is idempotent.
    A failure on one auction is logged and does not stop the sweep. Results are published on `observable`.

    Notes
    -----
    - service runs the sweep in a background thread every `sweep_interval`
    - `sweep()` can also be invoked directly, e.g., by an external scheduler
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        lifecycle: AuctionLifecycleController,
        find_due_auctions: FindDueAuctions,
        send_closing_notice: SendClosingNotice,
        closing_soon_window: timedelta = timedelta(minutes=10),
        sweep_interval: timedelta = timedelta(seconds=30),
        commands: Observable[ServiceCommand] | None = None,
        healthchecks: list[HealthCheck] | None = None,
    ):
        super().__init__(commands, healthchecks)

        self._lifecycle = lifecycle
        self._find_due_auctions = find_due_auctions
        self._send_closing_notice = send_closing_notice
        self._closing_soon_window = closing_soon_window
        self._sweep_interval = sweep_interval

        self._shutdown = Event()
        self._thread: Thread | None = None

        self._subject: Subject[SweepResult] = Subject()
        self._observable: Observable[SweepResult] = self._subject.pipe(
            observe_on(default_scheduler)
        )

    @property
    def observable(self) -> Observable[SweepResult]:
        """
        :return: Observable[SweepResult] - empty sweeps are not published
        """
        return self._observable

    def sweep(self) -> SweepResult:
        logger = get_logger(self)
        result = SweepResult()
        due = self._find_due_auctions(self._closing_soon_window)

        self._apply(
            due.to_open,
            self._lifecycle.open_bidding,
            result.opened,
            result.failed,
        )
        self._apply(
            due.closing_soon,
            self._send_closing_notice,
            result.closing_notices,
            result.failed,
        )
        self._apply(
            due.to_end,
            self._lifecycle.end_auction,
            result.ended,
            result.failed,
        )

        if not result.empty:
            logger.info(
                "sweep: opened=%s, closing_notices=%s, ended=%s, failed=%s",
                len(result.opened),
                len(result.closing_notices),
                len(result.ended),
                len(result.failed),
            )
            self._subject.on_next(result)
        return result

    def _apply(
        self,
        auction_ids: list[AuctionId],
        operation: Callable[[AuctionId], object],
        applied: list[AuctionId],
        failed: list[AuctionId],
    ):
        logger = get_logger(self)
        for auction_id in auction_ids:
            try:
                outcome = operation(auction_id)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("sweep failed for auction: %s", auction_id)
                failed.append(auction_id)
                continue

            match outcome:
                case BiddingFailure(kind=FailureKind.CONCURRENT_CONFLICT):
                    # retried on the next sweep
                    logger.warning("sweep conflict for auction: %s", auction_id)
                case BiddingFailure() as failure:
                    logger.info(
                        "sweep skipped auction: %s, reason=%s",
                        auction_id,
                        failure.kind,
                    )
                case False:
                    pass
                case _:
                    applied.append(auction_id)

    def _start(self):
        logger = get_logger(self)
        self._shutdown.clear()

        def run() -> None:
            logger.info("running")
            while not self._shutdown.is_set():
                try:
                    self.sweep()
                except Exception:  # pylint: disable=broad-exception-caught
                    logger.exception("sweep failed")
                if self._shutdown.wait(self._sweep_interval.total_seconds()):
                    break
            logger.info("stop signalled - exiting")

        self._thread = Thread(target=run, name=self.name, daemon=True)
        self._thread.start()

    def _stop(self):
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout=max(self._sweep_interval.total_seconds(), 5))
            self._thread = None
