"""
Guarded auction lifecycle transitions
"""
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.apps.bidding.data.ledger import Ledger, LockTimeoutError
from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    AuctionStatus,
    AUCTION_TRANSITIONS,
)
from silent_auction.apps.bidding.domain.bid import BidStatus
from silent_auction.apps.bidding.domain.errors import (
    BiddingFailure,
    FailureKind,
    RejectedError,
)
from silent_auction.apps.bidding.domain.events import Event, EventType, auction_topic
from silent_auction.apps.bidding.domain.principal import Principal
from silent_auction.apps.bidding.domain.results import AuctionTransitionResult
from silent_auction.apps.bidding.notifications.publisher import (
    NotificationPublisher,
    publish_safely,
)
from silent_auction.core.command import Command, Clock, utc_now


def compare_and_set_status(
    session: Session,
    auction_id: AuctionId,
    expected: AuctionStatus,
    status: AuctionStatus,
) -> None:
    """
    Moves the auction from the expected status to the new status.

    :exception RejectedError: ConcurrentConflict if the auction is no longer in the expected status
    """
    rowcount = session.execute(
        update(TAuction)
        .where(TAuction.auction_id == auction_id, TAuction.status == expected)
        .values(status=status)
        .execution_options(synchronize_session=False)
    ).rowcount
    if rowcount != 1:
        raise RejectedError(
            BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                f"auction is no longer {expected.name}",
            )
        )


def check_transition(
    auction: TAuction | None,
    auction_id: AuctionId,
    expected: AuctionStatus,
    status: AuctionStatus,
) -> TAuction:
    """
    :exception RejectedError: AuctionNotFound, or InvalidStateTransition if the auction is not in the expected status
                              or the state machine does not allow the transition
    """
    if auction is None:
        raise RejectedError(
            BiddingFailure(
                FailureKind.AUCTION_NOT_FOUND, f"auction not found: {auction_id}"
            )
        )
    current = AuctionStatus(auction.status)
    if current != expected or status not in AUCTION_TRANSITIONS[expected]:
        raise RejectedError(
            BiddingFailure(
                FailureKind.INVALID_STATE_TRANSITION,
                f"auction cannot transition {expected.name} -> {status.name}: status is {current.name}",
            )
        )
    return auction


def status_changed_event(result: AuctionTransitionResult) -> Event:
    return Event(
        EventType.AUCTION_STATUS_CHANGED,
        {
            "auctionId": result.auction_id,
            "previousStatus": result.previous_status.name,
            "status": result.status.name,
        },
    )


@dataclass(slots=True, frozen=True)
class TransitionAuctionRequest:
    """
    :field:`principal` - required when approving
    """

    auction_id: AuctionId
    expected: AuctionStatus
    status: AuctionStatus
    principal: Principal | None = None


class TransitionAuction(
    Command[TransitionAuctionRequest, AuctionTransitionResult | BiddingFailure]
):
    """
    Applies the forward lifecycle transitions:

        DRAFT -> PENDING_APPROVAL -> APPROVED -> LIVE

    Each transition is a compare-and-swap on the status. The caller supplies the expected current status and the
    transition fails with InvalidStateTransition if it does not match, or ConcurrentConflict if another writer
    changed the status in between.

    Closing and cancelling settle bids, and are handled by `EndAuction` and `CancelAuction`.
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

    def __call__(
        self, request: TransitionAuctionRequest
    ) -> AuctionTransitionResult | BiddingFailure:
        logger = self.get_logger()
        if request.status in (AuctionStatus.ENDED, AuctionStatus.CANCELLED):
            return BiddingFailure(
                FailureKind.INVALID_STATE_TRANSITION,
                f"use the dedicated operation to move an auction to {request.status.name}",
            )

        try:
            with self._ledger.transaction() as session:
                auction = check_transition(
                    session.get(TAuction, request.auction_id),
                    request.auction_id,
                    request.expected,
                    request.status,
                )
                if request.status == AuctionStatus.APPROVED and (
                    request.principal is None
                    or not request.principal.can_administer(auction.school_id)
                ):
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.FORBIDDEN,
                            "only a site admin or the school's admin may approve the auction",
                        )
                    )

                compare_and_set_status(
                    session, request.auction_id, request.expected, request.status
                )
                audit(
                    session,
                    AuditCategory.AUCTION,
                    f"auction_{request.status.name.lower()}",
                    "auction",
                    request.auction_id,
                    self._clock(),
                    user_id=request.principal.user_id if request.principal else None,
                    previous_status=request.expected.name,
                )
        except RejectedError as err:
            logger.debug(
                "auction transition rejected: auction_id=%s, %s -> %s, reason=%s",
                request.auction_id,
                request.expected.name,
                request.status.name,
                err.failure.kind,
            )
            return err.failure

        result = AuctionTransitionResult(
            auction_id=request.auction_id,
            previous_status=request.expected,
            status=request.status,
        )
        logger.info(
            "auction transitioned: auction_id=%s, %s -> %s",
            result.auction_id,
            result.previous_status.name,
            result.status.name,
        )
        publish_safely(
            self._publisher,
            status_changed_event(result),
            topics=(auction_topic(result.auction_id),),
        )
        return result


@dataclass(slots=True, frozen=True)
class CancelAuctionRequest:
    auction_id: AuctionId
    principal: Principal


class CancelAuction(
    Command[CancelAuctionRequest, AuctionTransitionResult | BiddingFailure]
):
    """
    Cancels a non-terminal auction. Standing ACTIVE bids are REJECTED.

    The auction's creator, a site admin, or the school's admin may cancel it.
    All lot locks are held while cancelling, i.e., no bid can be accepted while the auction is being cancelled.
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

    def __call__(
        self, request: CancelAuctionRequest
    ) -> AuctionTransitionResult | BiddingFailure:
        logger = self.get_logger()

        with self._ledger.session() as session:
            lot_ids = session.scalars(
                select(TLot.lot_id).where(TLot.auction_id == request.auction_id)
            ).all()

        try:
            with self._ledger.auction_scope(request.auction_id, lot_ids) as (
                session,
                auction,
                _lots,
            ):
                if auction is None:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.AUCTION_NOT_FOUND,
                            f"auction not found: {request.auction_id}",
                        )
                    )
                previous_status = AuctionStatus(auction.status)
                check_transition(
                    auction,
                    request.auction_id,
                    previous_status,
                    AuctionStatus.CANCELLED,
                )
                if not (
                    request.principal.user_id == auction.created_by
                    or request.principal.can_administer(auction.school_id)
                ):
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.FORBIDDEN,
                            "only the auction's creator or an admin may cancel the auction",
                        )
                    )

                compare_and_set_status(
                    session,
                    request.auction_id,
                    previous_status,
                    AuctionStatus.CANCELLED,
                )
                rejected_bids = session.execute(
                    update(TBid)
                    .where(
                        TBid.auction_id == request.auction_id,
                        TBid.status == BidStatus.ACTIVE,
                    )
                    .values(status=BidStatus.REJECTED)
                    .execution_options(synchronize_session=False)
                ).rowcount
                audit(
                    session,
                    AuditCategory.AUCTION,
                    "auction_cancelled",
                    "auction",
                    request.auction_id,
                    self._clock(),
                    user_id=request.principal.user_id,
                    previous_status=previous_status.name,
                    rejected_bids=rejected_bids,
                )
        except RejectedError as err:
            logger.debug(
                "auction cancellation rejected: auction_id=%s, reason=%s",
                request.auction_id,
                err.failure.kind,
            )
            return err.failure
        except LockTimeoutError:
            logger.warning(
                "lot lock timed out while cancelling auction: auction_id=%s",
                request.auction_id,
            )
            return BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                "the auction is busy with other bids, please retry",
            )

        result = AuctionTransitionResult(
            auction_id=request.auction_id,
            previous_status=previous_status,
            status=AuctionStatus.CANCELLED,
        )
        logger.info(
            "auction cancelled: auction_id=%s, previous_status=%s, rejected_bids=%s",
            result.auction_id,
            previous_status.name,
            rejected_bids,
        )
        publish_safely(
            self._publisher,
            status_changed_event(result),
            topics=(auction_topic(result.auction_id),),
        )
        return result
