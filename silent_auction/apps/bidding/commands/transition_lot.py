"""
Guarded lot moderation transitions
"""
from dataclasses import dataclass

from sqlalchemy import update

from silent_auction.apps.bidding.data.audit_log import audit, AuditCategory
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.ledger import Ledger, LockTimeoutError
from silent_auction.apps.bidding.domain.auction import (
    LotId,
    LotStatus,
    LOT_TRANSITIONS,
)
from silent_auction.apps.bidding.domain.errors import (
    BiddingFailure,
    FailureKind,
    RejectedError,
)
from silent_auction.apps.bidding.domain.principal import Principal
from silent_auction.apps.bidding.domain.results import LotTransitionResult
from silent_auction.core.command import Command, Clock, utc_now


@dataclass(slots=True, frozen=True)
class TransitionLotRequest:
    """
    :field:`principal` - required when approving or rejecting
    """

    lot_id: LotId
    expected: LotStatus
    status: LotStatus
    principal: Principal | None = None


class TransitionLot(Command[TransitionLotRequest, LotTransitionResult | BiddingFailure]):
    """
    Lot moderation: DRAFT -> SUBMITTED -> APPROVED | REJECTED

    Approval and rejection require a site admin or the admin of the auction's school.
    SOLD and UNSOLD are only set when the auction is ended.
    """

    def __init__(self, ledger: Ledger, clock: Clock = utc_now):
        self._ledger = ledger
        self._clock = clock

    def __call__(
        self, request: TransitionLotRequest
    ) -> LotTransitionResult | BiddingFailure:
        logger = self.get_logger()
        if request.status in (LotStatus.SOLD, LotStatus.UNSOLD):
            return BiddingFailure(
                FailureKind.INVALID_STATE_TRANSITION,
                f"lots are marked {request.status.name} when the auction ends",
            )

        try:
            with self._ledger.lot_scope(request.lot_id) as (session, lot):
                self._check(lot, request)
                if request.status in (LotStatus.APPROVED, LotStatus.REJECTED):
                    auction = session.get(TAuction, lot.auction_id)
                    if (
                        auction is None
                        or request.principal is None
                        or not request.principal.can_administer(auction.school_id)
                    ):
                        raise RejectedError(
                            BiddingFailure(
                                FailureKind.FORBIDDEN,
                                "only a site admin or the school's admin may moderate the lot",
                            )
                        )

                rowcount = session.execute(
                    update(TLot)
                    .where(
                        TLot.lot_id == request.lot_id,
                        TLot.status == request.expected,
                    )
                    .values(status=request.status)
                    .execution_options(synchronize_session=False)
                ).rowcount
                if rowcount != 1:
                    raise RejectedError(
                        BiddingFailure(
                            FailureKind.CONCURRENT_CONFLICT,
                            f"lot is no longer {request.expected.name}",
                        )
                    )
                audit(
                    session,
                    AuditCategory.LOT,
                    f"lot_{request.status.name.lower()}",
                    "lot",
                    request.lot_id,
                    self._clock(),
                    user_id=request.principal.user_id if request.principal else None,
                    previous_status=request.expected.name,
                )
        except RejectedError as err:
            logger.debug(
                "lot transition rejected: lot_id=%s, %s -> %s, reason=%s",
                request.lot_id,
                request.expected.name,
                request.status.name,
                err.failure.kind,
            )
            return err.failure
        except LockTimeoutError:
            logger.warning("lot lock timed out: lot_id=%s", request.lot_id)
            return BiddingFailure(
                FailureKind.CONCURRENT_CONFLICT,
                "the lot is busy with other bids, please retry",
            )

        logger.info(
            "lot transitioned: lot_id=%s, %s -> %s",
            request.lot_id,
            request.expected.name,
            request.status.name,
        )
        return LotTransitionResult(
            lot_id=request.lot_id,
            previous_status=request.expected,
            status=request.status,
        )

    @staticmethod
    def _check(lot: TLot | None, request: TransitionLotRequest) -> None:
        if lot is None:
            raise RejectedError(
                BiddingFailure(
                    FailureKind.LOT_NOT_FOUND, f"lot not found: {request.lot_id}"
                )
            )
        current = LotStatus(lot.status)
        if (
            current != request.expected
            or request.status not in LOT_TRANSITIONS[request.expected]
        ):
            raise RejectedError(
                BiddingFailure(
                    FailureKind.INVALID_STATE_TRANSITION,
                    f"lot cannot transition {request.expected.name} -> {request.status.name}: status is {current.name}",
                )
            )
