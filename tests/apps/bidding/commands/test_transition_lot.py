import unittest

from silent_auction.apps.bidding.commands.transition_lot import (
    TransitionLot,
    TransitionLotRequest,
)
from silent_auction.apps.bidding.domain.auction import (
    AuctionStatus,
    LotId,
    LotStatus,
    SchoolId,
    UserId,
)
from silent_auction.apps.bidding.domain.errors import FailureKind
from silent_auction.apps.bidding.domain.principal import Principal, Role
from silent_auction.apps.bidding.domain.results import LotTransitionResult
from tests.test_support import AuctionTestCase, ARTIST_ID, SCHOOL_ID

SCHOOL_ADMIN = Principal(UserId("admin-1"), Role.SCHOOL_ADMIN, SCHOOL_ID)
OTHER_SCHOOL_ADMIN = Principal(
    UserId("admin-2"), Role.SCHOOL_ADMIN, SchoolId("school-2")
)
ARTIST = Principal(ARTIST_ID, Role.STUDENT, SCHOOL_ID)


class TransitionLotTestCase(AuctionTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.transition = TransitionLot(self.ledger, self.clock)
        self.auction = self.create_auction(status=AuctionStatus.PENDING_APPROVAL)

    def test_lot_moderation(self):
        lot = self.create_lot(self.auction.auction_id, status=LotStatus.DRAFT)

        result = self.transition(
            TransitionLotRequest(lot.lot_id, LotStatus.DRAFT, LotStatus.SUBMITTED, ARTIST)
        )
        self.assertEqual(
            LotTransitionResult(lot.lot_id, LotStatus.DRAFT, LotStatus.SUBMITTED),
            result,
        )

        result = self.transition(
            TransitionLotRequest(
                lot.lot_id, LotStatus.SUBMITTED, LotStatus.APPROVED, SCHOOL_ADMIN
            )
        )
        self.assertEqual(LotStatus.APPROVED, result.status)
        self.assertEqual(LotStatus.APPROVED, self.get_lot(lot.lot_id).status)

    def test_reject_lot(self):
        lot = self.create_lot(self.auction.auction_id, status=LotStatus.SUBMITTED)

        result = self.transition(
            TransitionLotRequest(
                lot.lot_id, LotStatus.SUBMITTED, LotStatus.REJECTED, SCHOOL_ADMIN
            )
        )

        self.assertIsInstance(result, LotTransitionResult)
        self.assertEqual(LotStatus.REJECTED, self.get_lot(lot.lot_id).status)

        with self.subTest("rejected lots are final"):
            result = self.transition(
                TransitionLotRequest(
                    lot.lot_id, LotStatus.REJECTED, LotStatus.APPROVED, SCHOOL_ADMIN
                )
            )
            self.assertEqual(FailureKind.INVALID_STATE_TRANSITION, result.kind)

    def test_moderation_requires_school_admin(self):
        lot = self.create_lot(self.auction.auction_id, status=LotStatus.SUBMITTED)
        for principal in (None, ARTIST, OTHER_SCHOOL_ADMIN):
            for status in (LotStatus.APPROVED, LotStatus.REJECTED):
                with self.subTest(principal=principal, status=status):
                    result = self.transition(
                        TransitionLotRequest(
                            lot.lot_id, LotStatus.SUBMITTED, status, principal
                        )
                    )
                    self.assertEqual(FailureKind.FORBIDDEN, result.kind)
        self.assertEqual(LotStatus.SUBMITTED, self.get_lot(lot.lot_id).status)

    def test_sold_and_unsold_are_set_by_ending_the_auction(self):
        lot = self.create_lot(self.auction.auction_id, status=LotStatus.APPROVED)
        for status in (LotStatus.SOLD, LotStatus.UNSOLD):
            with self.subTest(status=status):
                result = self.transition(
                    TransitionLotRequest(
                        lot.lot_id, LotStatus.APPROVED, status, SCHOOL_ADMIN
                    )
                )
                self.assertEqual(FailureKind.INVALID_STATE_TRANSITION, result.kind)

    def test_expected_status_mismatch(self):
        lot = self.create_lot(self.auction.auction_id, status=LotStatus.DRAFT)

        result = self.transition(
            TransitionLotRequest(
                lot.lot_id, LotStatus.SUBMITTED, LotStatus.APPROVED, SCHOOL_ADMIN
            )
        )

        self.assertEqual(FailureKind.INVALID_STATE_TRANSITION, result.kind)
        self.assertEqual(LotStatus.DRAFT, self.get_lot(lot.lot_id).status)

    def test_lot_not_found(self):
        result = self.transition(
            TransitionLotRequest(LotId("no-such-lot"), LotStatus.DRAFT, LotStatus.SUBMITTED)
        )
        self.assertEqual(FailureKind.LOT_NOT_FOUND, result.kind)


if __name__ == "__main__":
    unittest.main()
