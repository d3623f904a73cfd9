import unittest
from dataclasses import replace
from datetime import timedelta

from silent_auction.apps.bidding.commands.place_bid import PlaceBid, PlaceBidRequest
from silent_auction.apps.bidding.domain.auction import UserId
from silent_auction.apps.bidding.domain.bid import BidStatus
from silent_auction.apps.bidding.domain.errors import BiddingFailure, FailureKind
from silent_auction.apps.bidding.domain.events import EventType, lot_topic
from silent_auction.apps.bidding.domain.results import PlaceBidResult
from tests.test_support import AuctionTestCase

ALICE = UserId("alice")
BOB = UserId("bob")


class AutoBidTestCase(AuctionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.place_bid = PlaceBid(self.ledger, self.publisher, self.config, self.clock)
        self.auction = self.create_auction()
        self.lot = self.create_lot(self.auction.auction_id, starting_bid=1000)

    def bid(
        self,
        bidder_id: UserId,
        amount: int,
        auto_bid_ceiling: int | None = None,
        place_bid: PlaceBid | None = None,
    ) -> PlaceBidResult | BiddingFailure:
        self.clock.advance(timedelta(seconds=1))
        place_bid = place_bid or self.place_bid
        return place_bid(
            PlaceBidRequest(
                lot_id=self.lot.lot_id,
                bidder_id=bidder_id,
                amount=amount,
                is_auto_bid=auto_bid_ceiling is not None,
                auto_bid_ceiling=auto_bid_ceiling,
            )
        )

    def test_auto_bidder_responds_to_a_lower_bid(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=5000)
        self.publisher.clear()

        result = self.bid(BOB, 2000)

        self.assertIsInstance(result, PlaceBidResult)
        self.assertEqual(2000, result.amount)
        self.assertFalse(result.leading)
        self.assertEqual(ALICE, result.leader_id)
        self.assertEqual(2001, result.new_high_amount)
        self.assertEqual(1, len(result.proxy_bid_ids))
        self.assertEqual(3, result.total_bids)

        active_bids = self.get_active_bids(self.lot.lot_id)
        self.assertEqual(1, len(active_bids))
        proxy_bid = active_bids[0]
        self.assertEqual(result.proxy_bid_ids[0], proxy_bid.bid_id)
        self.assertEqual(ALICE, proxy_bid.bidder_id)
        self.assertTrue(proxy_bid.is_auto_bid)
        self.assertEqual(5000, proxy_bid.auto_bid_ceiling)

        with self.subTest("only the final state is published"):
            events = self.publisher.topic_events(
                lot_topic(self.lot.lot_id), EventType.BID_PLACED
            )
            self.assertEqual(1, len(events))
            self.assertEqual(ALICE, events[0].data["leaderId"])
            self.assertEqual(2001, events[0].data["highAmount"])
            self.assertEqual(1, len(self.publisher.user_events(BOB, EventType.OUTBID)))
            self.assertEqual([], self.publisher.user_events(ALICE, EventType.OUTBID))

    def test_bid_above_ceiling_takes_the_lead(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=5000)

        result = self.bid(BOB, 6000)

        self.assertTrue(result.leading)
        self.assertEqual(6000, result.new_high_amount)
        self.assertEqual([], result.proxy_bid_ids)
        self.assertEqual(1, len(self.publisher.user_events(ALICE, EventType.OUTBID)))

    def test_bid_matching_ceiling_is_answered_at_the_ceiling(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=5000)

        result = self.bid(BOB, 4999)

        self.assertEqual(ALICE, result.leader_id)
        self.assertEqual(5000, result.new_high_amount)

        with self.subTest("the ceiling is exhausted"):
            result = self.bid(BOB, 5001)
            self.assertTrue(result.leading)
            self.assertEqual([], result.proxy_bid_ids)

    def test_competing_auto_bidders(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=3000)

        result = self.bid(BOB, 1500, auto_bid_ceiling=5000)

        # ALICE bids her full ceiling, then BOB beats it by one unit
        self.assertEqual(BOB, result.leader_id)
        self.assertEqual(3001, result.new_high_amount)
        self.assertEqual(2, len(result.proxy_bid_ids))
        self.assertEqual(4, result.total_bids)

        amounts = [bid.amount for bid in self.get_bids(self.lot.lot_id)]
        self.assertEqual([1000, 1500, 3000, 3001], amounts)
        self.assertEqual(1, len(self.get_active_bids(self.lot.lot_id)))
        self.assertEqual(1, len(self.publisher.user_events(ALICE, EventType.OUTBID)))

    def test_earlier_auto_bidder_wins_equal_ceilings(self):
        self.bid(ALICE, 1000, auto_bid_ceiling=3000)

        result = self.bid(BOB, 1500, auto_bid_ceiling=3000)

        self.assertEqual(ALICE, result.leader_id)
        self.assertEqual(3000, result.new_high_amount)
        self.assertEqual(1, len(result.proxy_bid_ids))

    def test_proxy_bidding_is_bounded(self):
        place_bid = PlaceBid(
            self.ledger,
            self.publisher,
            replace(self.config, max_auto_bid_iterations=0),
            self.clock,
        )
        self.bid(ALICE, 1000, auto_bid_ceiling=5000, place_bid=place_bid)

        with self.assertLogs("PlaceBid.proxy", level="WARNING"):
            result = self.bid(BOB, 2000, place_bid=place_bid)

        self.assertTrue(result.leading)
        self.assertEqual([], result.proxy_bid_ids)

    def test_auto_bid_ceiling_below_amount(self):
        result = self.bid(ALICE, 2000, auto_bid_ceiling=1500)
        self.assertIsInstance(result, BiddingFailure)
        self.assertEqual(FailureKind.INVALID_AUTO_BID_CEILING, result.kind)
        self.assertEqual([], self.get_bids(self.lot.lot_id))

    def test_manual_bids_are_never_proxied(self):
        self.bid(ALICE, 1000)
        result = self.bid(BOB, 1500)
        self.assertTrue(result.leading)
        statuses = [bid.status for bid in self.get_bids(self.lot.lot_id)]
        self.assertEqual([BidStatus.OUTBID, BidStatus.ACTIVE], statuses)


if __name__ == "__main__":
    unittest.main()
