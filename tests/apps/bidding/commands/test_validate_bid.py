import unittest
from dataclasses import replace
from datetime import timedelta

from silent_auction.apps.bidding.commands.validate_bid import ValidateBid, BidContext
from silent_auction.apps.bidding.domain.auction import (
    AuctionStatus,
    LotStatus,
    UserId,
)
from silent_auction.apps.bidding.domain.errors import FailureKind
from tests.test_support import NOW, ARTIST_ID

BIDDER_ID = UserId("bidder-1")


def bid_context(**kwargs) -> BidContext:
    ctx = BidContext(
        amount=1500,
        bidder_id=BIDDER_ID,
        starting_bid=1000,
        reserve=None,
        lot_status=LotStatus.APPROVED,
        artist_id=ARTIST_ID,
        current_high=None,
        auction_status=AuctionStatus.LIVE,
        start_time=NOW - timedelta(hours=1),
        end_time=NOW + timedelta(hours=1),
        now=NOW,
    )
    return replace(ctx, **kwargs)


class ValidateBidTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.validate_bid = ValidateBid(max_bid_amount=1_000_000)

    def assert_failure(self, kind: FailureKind, ctx: BidContext):
        failure = self.validate_bid(ctx)
        self.assertIsNotNone(failure)
        self.assertEqual(kind, failure.kind)
        self.assertFalse(failure.retryable)

    def test_valid_bids(self):
        self.assertIsNone(self.validate_bid(bid_context()))
        with self.subTest("amount equal to starting bid"):
            self.assertIsNone(self.validate_bid(bid_context(amount=1000)))
        with self.subTest("amount above current high bid"):
            self.assertIsNone(
                self.validate_bid(bid_context(amount=1501, current_high=1500))
            )
        with self.subTest("bidding opens at the start time"):
            self.assertIsNone(
                self.validate_bid(bid_context(start_time=NOW))
            )
        with self.subTest("auto-bid"):
            self.assertIsNone(
                self.validate_bid(
                    bid_context(is_auto_bid=True, auto_bid_ceiling=1500)
                )
            )
        with self.subTest("unknown artist"):
            self.assertIsNone(self.validate_bid(bid_context(artist_id=None)))

    def test_invalid_amount(self):
        for amount in (0, -100, 10.5, True, "1500", 1_000_001):
            with self.subTest(amount=amount):
                self.assert_failure(
                    FailureKind.INVALID_AMOUNT, bid_context(amount=amount)
                )

    def test_auction_not_open(self):
        for status in AuctionStatus:
            if status == AuctionStatus.LIVE:
                continue
            with self.subTest(status=status):
                self.assert_failure(
                    FailureKind.AUCTION_NOT_OPEN, bid_context(auction_status=status)
                )

        with self.subTest("before start"):
            self.assert_failure(
                FailureKind.AUCTION_NOT_OPEN,
                bid_context(start_time=NOW + timedelta(seconds=1)),
            )
        with self.subTest("end time has passed"):
            self.assert_failure(
                FailureKind.AUCTION_NOT_OPEN,
                bid_context(end_time=NOW - timedelta(seconds=1)),
            )
        with self.subTest("bidding window is end exclusive"):
            self.assert_failure(
                FailureKind.AUCTION_NOT_OPEN, bid_context(end_time=NOW)
            )

    def test_lot_not_biddable(self):
        for status in LotStatus:
            if status == LotStatus.APPROVED:
                continue
            with self.subTest(status=status):
                self.assert_failure(
                    FailureKind.LOT_NOT_BIDDABLE, bid_context(lot_status=status)
                )

    def test_self_bid_forbidden(self):
        self.assert_failure(
            FailureKind.SELF_BID_FORBIDDEN, bid_context(bidder_id=ARTIST_ID)
        )

    def test_below_starting_bid(self):
        self.assert_failure(FailureKind.BELOW_STARTING_BID, bid_context(amount=999))

    def test_not_high_enough(self):
        self.assert_failure(
            FailureKind.NOT_HIGH_ENOUGH, bid_context(amount=1500, current_high=1500)
        )
        self.assert_failure(
            FailureKind.NOT_HIGH_ENOUGH, bid_context(amount=1400, current_high=1500)
        )

    def test_invalid_auto_bid_ceiling(self):
        for ceiling in (None, 1499, 1_000_001, 2000.5):
            with self.subTest(ceiling=ceiling):
                self.assert_failure(
                    FailureKind.INVALID_AUTO_BID_CEILING,
                    bid_context(is_auto_bid=True, auto_bid_ceiling=ceiling),
                )

    def test_first_failure_wins(self):
        ctx = bid_context(
            amount=500,
            bidder_id=ARTIST_ID,
            lot_status=LotStatus.SUBMITTED,
            auction_status=AuctionStatus.ENDED,
        )
        self.assert_failure(FailureKind.AUCTION_NOT_OPEN, ctx)
        self.assert_failure(
            FailureKind.LOT_NOT_BIDDABLE,
            replace(ctx, auction_status=AuctionStatus.LIVE),
        )
        self.assert_failure(
            FailureKind.SELF_BID_FORBIDDEN,
            replace(ctx, auction_status=AuctionStatus.LIVE, lot_status=LotStatus.APPROVED),
        )

    def test_failure_message_shows_current_bid(self):
        failure = self.validate_bid(bid_context(amount=1500, current_high=4000))
        self.assertIn("$40.00", failure.message)


if __name__ == "__main__":
    unittest.main()
