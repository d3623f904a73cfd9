import unittest
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from silent_auction.apps.bidding.commands.data.store_auction import (
    CreateAuction,
    CreateAuctionRequest,
    AddLot,
    AddLotRequest,
)
from silent_auction.apps.bidding.data.audit_log import TAuditLog
from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    AuctionStatus,
    LotStatus,
)
from tests.test_support import AuctionTestCase, ARTIST_ID, ORGANIZER_ID, SCHOOL_ID


class CreateAuctionTestCase(AuctionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.create = CreateAuction(self.session_factory, self.clock)

    def request(self, **kwargs) -> CreateAuctionRequest:
        values = {
            "school_id": SCHOOL_ID,
            "title": "  Spring Art Show ",
            "start_time": self.clock.now + timedelta(days=1),
            "end_time": self.clock.now + timedelta(days=2),
            "created_by": ORGANIZER_ID,
            "platform_fee_percentage": Decimal("3.50"),
            "platform_fee_minimum": 500,
        } | kwargs
        return CreateAuctionRequest(**values)

    def test_create_auction(self):
        auction = self.create(self.request())

        self.assertEqual(AuctionStatus.DRAFT, auction.status)
        self.assertEqual("Spring Art Show", auction.title)
        self.assertEqual(auction, self.get_auction(auction.auction_id))

        with self.session_factory() as session:
            entry = session.scalars(
                select(TAuditLog).where(TAuditLog.resource_id == auction.auction_id)
            ).one()
            self.assertEqual("auction_created", entry.action)
            self.assertEqual(ORGANIZER_ID, entry.user_id)
            self.assertEqual(self.clock.now, entry.created_at)

    def test_invalid_requests(self):
        invalid_requests = {
            "blank title": self.request(title="  "),
            "start after end": self.request(
                start_time=self.clock.now + timedelta(days=2),
                end_time=self.clock.now + timedelta(days=1),
            ),
            "empty window": self.request(
                start_time=self.clock.now, end_time=self.clock.now
            ),
            "fee percentage above 100": self.request(
                platform_fee_percentage=Decimal("100.01")
            ),
            "negative fee percentage": self.request(
                platform_fee_percentage=Decimal("-1")
            ),
            "negative fee minimum": self.request(platform_fee_minimum=-1),
            "negative auto extension": self.request(auto_extend_minutes=-1),
        }
        for name, request in invalid_requests.items():
            with self.subTest(name), self.assertRaises(ValueError):
                self.create(request)


class AddLotTestCase(AuctionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.add_lot = AddLot(self.session_factory, self.clock)

    def test_add_lot(self):
        auction = self.create_auction(status=AuctionStatus.DRAFT)

        lot = self.add_lot(
            AddLotRequest(
                auction.auction_id,
                ARTIST_ID,
                "Sunflowers in Crayon",
                starting_bid=1000,
                reserve=2500,
            )
        )

        self.assertEqual(LotStatus.DRAFT, lot.status)
        self.assertEqual(lot, self.get_lot(lot.lot_id))

    def test_lots_can_be_added_until_the_auction_goes_live(self):
        for status in AuctionStatus:
            with self.subTest(status=status):
                auction = self.create_auction(status=status)
                request = AddLotRequest(auction.auction_id, ARTIST_ID, "Clay Owl", 500)
                if status in (
                    AuctionStatus.DRAFT,
                    AuctionStatus.PENDING_APPROVAL,
                    AuctionStatus.APPROVED,
                ):
                    self.assertEqual(
                        auction.auction_id, self.add_lot(request).auction_id
                    )
                else:
                    with self.assertRaises(ValueError):
                        self.add_lot(request)

    def test_invalid_requests(self):
        auction = self.create_auction(status=AuctionStatus.DRAFT)
        invalid_requests = {
            "blank title": AddLotRequest(auction.auction_id, ARTIST_ID, "", 500),
            "zero starting bid": AddLotRequest(
                auction.auction_id, ARTIST_ID, "Clay Owl", 0
            ),
            "reserve below starting bid": AddLotRequest(
                auction.auction_id, ARTIST_ID, "Clay Owl", 500, reserve=499
            ),
            "auction not found": AddLotRequest(
                AuctionId("no-such-auction"), ARTIST_ID, "Clay Owl", 500
            ),
        }
        for name, request in invalid_requests.items():
            with self.subTest(name), self.assertRaises(ValueError):
                self.add_lot(request)


if __name__ == "__main__":
    unittest.main()
