"""
Silent auction gallery app
"""
from pathlib import Path

from reactivex.scheduler.scheduler import Scheduler
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from silent_auction.apps.bidding.commands.data.queries.find_due_auctions import (
    FindDueAuctions,
)
from silent_auction.apps.bidding.commands.data.store_auction import (
    CreateAuction,
    AddLot,
)
from silent_auction.apps.bidding.commands.send_closing_notice import (
    SendClosingNotice,
)
from silent_auction.apps.bidding.config import AppConfig
from silent_auction.apps.bidding.data import Base
from silent_auction.apps.bidding.data.ledger import Ledger
from silent_auction.apps.bidding.healthchecks.ledger_healthcheck import (
    LedgerHealthCheck,
)
from silent_auction.apps.bidding.notifications.dispatcher import (
    NotificationDispatcher,
)
from silent_auction.apps.bidding.notifications.topic_broker import TopicBroker
from silent_auction.apps.bidding.services.auction_lifecycle import (
    AuctionLifecycleController,
)
from silent_auction.apps.bidding.services.auction_sweep_service import (
    AuctionSweepService,
)
from silent_auction.apps.bidding.services.bidding_engine import BiddingEngine
from silent_auction.core.command import Clock, utc_now
from silent_auction.core.logging import configure_logging


class GalleryApp:
    """
    Wires the bidding core together:

    BiddingEngine / AuctionLifecycleController -> NotificationDispatcher -> TopicBroker

    The sweep service runs in the background once the app is started. Connection handlers subscribe to
    `broker` topics to push events to clients.
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        config: AppConfig,
        clock: Clock = utc_now,
        scheduler: Scheduler | None = None,
    ):
        self.config = config

        self.db_engine = create_engine(config.database_url)
        Base.metadata.create_all(self.db_engine)
        self.session_factory = sessionmaker(self.db_engine)

        self.ledger = Ledger(self.session_factory, config.bidding.lock_timeout)
        self.broker = TopicBroker()
        self.dispatcher = NotificationDispatcher(self.broker, scheduler)

        self.create_auction = CreateAuction(self.session_factory, clock)
        self.add_lot = AddLot(self.session_factory, clock)

        self.engine = BiddingEngine(
            self.ledger, self.dispatcher, config.bidding, clock
        )
        self.lifecycle = AuctionLifecycleController(self.ledger, self.dispatcher, clock)
        self.sweep_service = AuctionSweepService(
            lifecycle=self.lifecycle,
            find_due_auctions=FindDueAuctions(self.session_factory, clock),
            send_closing_notice=SendClosingNotice(self.ledger, self.dispatcher, clock),
            closing_soon_window=config.bidding.closing_soon_window,
            sweep_interval=config.bidding.sweep_interval,
            healthchecks=[LedgerHealthCheck(self.session_factory)],
        )

    @classmethod
    def from_config_file(cls, file: Path) -> "GalleryApp":
        """
        Constructs a new app instance from the specified TOML config file, and configures logging
        """
        config = AppConfig.from_config_file(file)
        configure_logging(level=config.log_level)
        return cls(config)

    def start(self):
        self.sweep_service.start()

    def stop(self):
        self.sweep_service.stop()
        self.dispatcher.close()
        self.db_engine.dispose()
