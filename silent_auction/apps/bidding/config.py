"""
Bidding configuration
"""
import tomllib
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any


@dataclass(slots=True, frozen=True)
class BiddingConfig:
    """
    BiddingConfig

    Amounts are in minor currency units.
    """

    # the leading bid cannot be withdrawn when less time than this remains
    withdrawal_window: timedelta = timedelta(minutes=5)

    # how long a writer waits for the per-lot lock before failing with ConcurrentConflict
    lock_timeout: timedelta = timedelta(seconds=5)

    # bounds proxy bidding between auto-bidders
    max_auto_bid_iterations: int = 10

    max_bid_amount: int = 999_999_999

    # closing-soon notice is published once the remaining time drops below this window
    closing_soon_window: timedelta = timedelta(minutes=10)

    sweep_interval: timedelta = timedelta(seconds=30)

    # bids accepted within this window of the end trigger an anti-sniping extension,
    # when the auction has auto-extension enabled
    auto_extend_window: timedelta = timedelta(minutes=2)

    def __post_init__(self):
        if self.max_auto_bid_iterations < 0:
            raise ValueError("max_auto_bid_iterations must not be negative")
        if self.max_bid_amount <= 0:
            raise ValueError("max_bid_amount must be positive")
        for name in (
            "withdrawal_window",
            "lock_timeout",
            "closing_soon_window",
            "sweep_interval",
            "auto_extend_window",
        ):
            if getattr(self, name) < timedelta(0):
                raise ValueError(f"{name} must not be negative")

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "BiddingConfig":
        """
        Durations are specified in seconds, e.g.

        [bidding]
        withdrawal_window = 300
        lock_timeout = 5
        """

        def seconds(name: str, default: timedelta) -> timedelta:
            return timedelta(seconds=config[name]) if name in config else default

        defaults = cls()
        return cls(
            withdrawal_window=seconds("withdrawal_window", defaults.withdrawal_window),
            lock_timeout=seconds("lock_timeout", defaults.lock_timeout),
            max_auto_bid_iterations=config.get(
                "max_auto_bid_iterations", defaults.max_auto_bid_iterations
            ),
            max_bid_amount=config.get("max_bid_amount", defaults.max_bid_amount),
            closing_soon_window=seconds(
                "closing_soon_window", defaults.closing_soon_window
            ),
            sweep_interval=seconds("sweep_interval", defaults.sweep_interval),
            auto_extend_window=seconds(
                "auto_extend_window", defaults.auto_extend_window
            ),
        )


@dataclass(slots=True, frozen=True)
class AppConfig:
    """
    Application configuration loaded from a TOML file:

    [database]
    url = "postgresql+psycopg://localhost/silent_auction"

    [logging]
    level = "INFO"

    [bidding]
    withdrawal_window = 300
    """

    database_url: str = "sqlite:///silent_auction.sqlite"
    log_level: str = "WARNING"
    bidding: BiddingConfig = field(default_factory=BiddingConfig)

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> "AppConfig":
        defaults = cls()
        return cls(
            database_url=config.get("database", {}).get("url", defaults.database_url),
            log_level=config.get("logging", {}).get("level", defaults.log_level),
            bidding=BiddingConfig.from_dict(config.get("bidding", {})),
        )

    @classmethod
    def from_config_file(cls, file: Path) -> "AppConfig":
        """
        Constructs a new config instance from the specified TOML config file
        """
        with open(file, "rb") as config_file:
            config = tomllib.load(config_file)
        return cls.from_dict(config)
