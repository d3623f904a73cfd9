import unittest
from datetime import timedelta

from silent_auction.apps.bidding.commands.data.queries.find_due_auctions import (
    FindDueAuctions,
    DueAuctions,
)
from silent_auction.apps.bidding.commands.data.queries.get_bid_history import (
    GetBidHistory,
    GetBidderBids,
)
from silent_auction.apps.bidding.commands.data.queries.get_bidding_state import (
    GetBiddingState,
)
from silent_auction.apps.bidding.commands.place_bid import PlaceBid, PlaceBidRequest
from silent_auction.apps.bidding.commands.withdraw_bid import (
    WithdrawBid,
    WithdrawBidRequest,
)
from silent_auction.apps.bidding.domain.auction import (
    AuctionStatus,
    LotId,
    LotStatus,
    UserId,
)
from silent_auction.apps.bidding.domain.bid import BidStatus
from tests.test_support import AuctionTestCase

ALICE = UserId("alice")
BOB = UserId("bob")


class BidQueriesTestCase(AuctionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.place_bid = PlaceBid(self.ledger, self.publisher, self.config, self.clock)
        self.get_bidding_state = GetBiddingState(self.session_factory, self.clock)
        self.auction = self.create_auction(end_time=self.clock.now + timedelta(hours=1))
        self.lot = self.create_lot(self.auction.auction_id, starting_bid=1000, reserve=2000)

    def bid(self, bidder_id: UserId, amount: int, auto_bid_ceiling: int | None = None):
        self.clock.advance(timedelta(seconds=1))
        return self.place_bid(
            PlaceBidRequest(
                self.lot.lot_id,
                bidder_id,
                amount,
                is_auto_bid=auto_bid_ceiling is not None,
                auto_bid_ceiling=auto_bid_ceiling,
            )
        )

    def test_bidding_state_without_bids(self):
        state = self.get_bidding_state(self.lot.lot_id)

        self.assertIsNone(state.high_amount)
        self.assertIsNone(state.leader_id)
        self.assertIsNone(state.leading_bid_id)
        self.assertEqual(0, state.total_bids)
        self.assertEqual(1000, state.starting_bid)
        self.assertFalse(state.reserve_met)
        self.assertEqual(LotStatus.APPROVED, state.lot_status)
        self.assertEqual(AuctionStatus.LIVE, state.auction_status)
        self.assertEqual(timedelta(hours=1), state.time_remaining)
        self.assertTrue(state.bidding_open)

    def test_bidding_state(self):
        self.bid(ALICE, 1000)
        bob_bid = self.bid(BOB, 2500)

        state = self.get_bidding_state(self.lot.lot_id)

        self.assertEqual(2500, state.high_amount)
        self.assertEqual(BOB, state.leader_id)
        self.assertEqual(bob_bid.bid_id, state.leading_bid_id)
        self.assertEqual(2, state.total_bids)
        self.assertTrue(state.reserve_met)

        with self.subTest("withdrawn bids are not counted"):
            withdraw_bid = WithdrawBid(
                self.ledger, self.publisher, self.config, self.clock
            )
            withdraw_bid(WithdrawBidRequest(bob_bid.bid_id, BOB))
            state = self.get_bidding_state(self.lot.lot_id)
            self.assertEqual(1, state.total_bids)
            self.assertEqual(ALICE, state.leader_id)
            self.assertEqual(1000, state.high_amount)
            self.assertFalse(state.reserve_met)

        with self.subTest("bidding closes at the end time"):
            self.clock.now = self.auction.end_time
            state = self.get_bidding_state(self.lot.lot_id)
            self.assertEqual(timedelta(0), state.time_remaining)
            self.assertFalse(state.bidding_open)

    def test_bidding_state_lot_not_found(self):
        self.assertIsNone(self.get_bidding_state(LotId("no-such-lot")))

    def test_bid_history(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=3000)
        self.bid(BOB, 1500)

        history = GetBidHistory(self.session_factory)(self.lot.lot_id)

        # the proxy bid shares the placement time of the bid that triggered it
        self.assertEqual([1501, 1500, 1000], [bid.amount for bid in history])
        self.assertEqual(
            [BidStatus.ACTIVE, BidStatus.OUTBID, BidStatus.OUTBID],
            [bid.status for bid in history],
        )

        with self.subTest("limit"):
            history = GetBidHistory(self.session_factory, limit=1)(self.lot.lot_id)
            self.assertEqual([1501], [bid.amount for bid in history])

        with self.subTest("unknown lot"):
            self.assertEqual([], GetBidHistory(self.session_factory)(LotId("no-such-lot")))

    def test_bidder_bids(self):
        other_lot = self.create_lot(self.auction.auction_id)
        self.bid(ALICE, 1000)
        self.clock.advance(timedelta(seconds=1))
        self.place_bid(PlaceBidRequest(other_lot.lot_id, ALICE, 1200))
        self.bid(BOB, 1100)

        bids = GetBidderBids(self.session_factory)(ALICE)

        self.assertEqual(
            [(other_lot.lot_id, 1200), (self.lot.lot_id, 1000)],
            [(bid.lot_id, bid.amount) for bid in bids],
        )
        self.assertEqual([1100], [bid.amount for bid in GetBidderBids(self.session_factory)(BOB)])


class FindDueAuctionsTestCase(AuctionTestCase):
    def test_find_due_auctions(self):
        find_due_auctions = FindDueAuctions(self.session_factory, self.clock)
        now = self.clock.now
        to_open = self.create_auction(
            status=AuctionStatus.APPROVED,
            start_time=now - timedelta(minutes=1),
            end_time=now + timedelta(hours=1),
        )
        self.create_auction(
            status=AuctionStatus.APPROVED,
            start_time=now + timedelta(minutes=1),
            end_time=now + timedelta(hours=1),
        )
        closing_soon = self.create_auction(end_time=now + timedelta(minutes=4))
        self.create_auction(end_time=now + timedelta(minutes=6))
        to_end = self.create_auction(end_time=now)
        self.create_auction(status=AuctionStatus.ENDED, end_time=now - timedelta(minutes=1))
        self.create_auction(
            status=AuctionStatus.CANCELLED, end_time=now - timedelta(minutes=1)
        )

        due = find_due_auctions(timedelta(minutes=5))

        self.assertEqual(
            DueAuctions(
                to_open=[to_open.auction_id],
                closing_soon=[closing_soon.auction_id],
                to_end=[to_end.auction_id],
            ),
            due,
        )

    def test_nothing_due(self):
        find_due_auctions = FindDueAuctions(self.session_factory, self.clock)
        self.create_auction(status=AuctionStatus.DRAFT)
        self.create_auction(status=AuctionStatus.PENDING_APPROVAL)
        self.assertEqual(DueAuctions(), find_due_auctions(timedelta(minutes=5)))


if __name__ == "__main__":
    unittest.main()
