"""
Business-rule failures

Expected rule violations are returned to the caller as `BiddingFailure` values. They are never raised
across the public API. Collaborator faults, e.g., the database being unreachable, propagate as exceptions.
"""
from dataclasses import dataclass
from enum import StrEnum


class FailureKind(StrEnum):
    """
    Machine-readable failure kinds
    """

    # validation
    INVALID_AMOUNT = "InvalidAmount"
    AUCTION_NOT_OPEN = "AuctionNotOpen"
    LOT_NOT_BIDDABLE = "LotNotBiddable"
    SELF_BID_FORBIDDEN = "SelfBidForbidden"
    BELOW_STARTING_BID = "BelowStartingBid"
    NOT_HIGH_ENOUGH = "NotHighEnough"
    INVALID_AUTO_BID_CEILING = "InvalidAutoBidCeiling"
    WITHDRAWAL_WINDOW_CLOSED = "WithdrawalWindowClosed"
    INVALID_STATE_TRANSITION = "InvalidStateTransition"
    NOT_BID_OWNER = "NotBidOwner"
    BID_NOT_WITHDRAWABLE = "BidNotWithdrawable"
    INVALID_EXTENSION = "InvalidExtension"
    FORBIDDEN = "Forbidden"

    # not found
    LOT_NOT_FOUND = "LotNotFound"
    AUCTION_NOT_FOUND = "AuctionNotFound"
    BID_NOT_FOUND = "BidNotFound"

    # concurrency
    CONCURRENT_CONFLICT = "ConcurrentConflict"


@dataclass(slots=True, frozen=True)
class BiddingFailure:
    """
    Typed failure result
    """

    kind: FailureKind
    message: str

    @property
    def retryable(self) -> bool:
        """
        Only concurrency conflicts are worth retrying as-is. The caller should back off before retrying.
        """
        return self.kind == FailureKind.CONCURRENT_CONFLICT


class RejectedError(Exception):
    """
    Raised inside an atomic ledger scope to roll it back. Commands convert it back into the
    carried `BiddingFailure` before returning to the caller.
    """

    def __init__(self, failure: BiddingFailure):
        super().__init__(f"[{failure.kind}] {failure.message}")
        self.failure = failure


def format_amount(amount: int) -> str:
    """
    Formats minor currency units for human readable messages, e.g. 1500 -> "$15.00"
    """
    return f"${amount // 100:,}.{amount % 100:02d}"
