"""
Ledger healthcheck
"""
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.data.audit_log import TAuditLog
from silent_auction.apps.bidding.data.auction import TAuction, TLot
from silent_auction.apps.bidding.data.bid import TBid
from silent_auction.core.health_check import HealthCheck, HealthCheckImpact


class LedgerHealthCheck(HealthCheck):
    def __init__(
        self,
        session_factory: sessionmaker,
        slow_threshold: timedelta = timedelta(seconds=1),
    ):
        super().__init__(
            name="ledger",
            impact=HealthCheckImpact.HIGH,
            description="Queries each of the ledger tables",
            tags={"database"},
            slow_threshold=slow_threshold,
        )

        self.__session_factory = session_factory

    def execute(self):
        with self.__session_factory() as session:
            session.scalar(select(TAuction).limit(1))
            session.scalar(select(TLot).limit(1))
            session.scalar(select(TBid).limit(1))
            session.scalar(select(TAuditLog).limit(1))
