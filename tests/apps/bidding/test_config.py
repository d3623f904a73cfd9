import tempfile
import unittest
from datetime import timedelta
from pathlib import Path

from silent_auction.apps.bidding.config import AppConfig, BiddingConfig

CONFIG_TOML = """
[database]
url = "sqlite:///gallery.sqlite"

[logging]
level = "INFO"

[bidding]
withdrawal_window = 600
lock_timeout = 2.5
max_auto_bid_iterations = 25
"""


class BiddingConfigTestCase(unittest.TestCase):
    def test_defaults(self):
        config = BiddingConfig.from_dict({})
        self.assertEqual(BiddingConfig(), config)
        self.assertEqual(timedelta(minutes=5), config.withdrawal_window)
        self.assertEqual(10, config.max_auto_bid_iterations)

    def test_from_dict(self):
        config = BiddingConfig.from_dict(
            {
                "withdrawal_window": 120,
                "closing_soon_window": 900,
                "sweep_interval": 10,
                "auto_extend_window": 60,
                "max_bid_amount": 100_000,
            }
        )
        self.assertEqual(timedelta(minutes=2), config.withdrawal_window)
        self.assertEqual(timedelta(minutes=15), config.closing_soon_window)
        self.assertEqual(timedelta(seconds=10), config.sweep_interval)
        self.assertEqual(timedelta(minutes=1), config.auto_extend_window)
        self.assertEqual(100_000, config.max_bid_amount)

    def test_invalid_config(self):
        invalid = {
            "negative iterations": {"max_auto_bid_iterations": -1},
            "zero max bid": {"max_bid_amount": 0},
            "negative window": {"withdrawal_window": -1},
            "negative lock timeout": {"lock_timeout": -0.5},
        }
        for name, config in invalid.items():
            with self.subTest(name), self.assertRaises(ValueError):
                BiddingConfig.from_dict(config)


class AppConfigTestCase(unittest.TestCase):
    def test_from_config_file(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_file = Path(tmp_dir) / "gallery.toml"
            config_file.write_text(CONFIG_TOML)

            config = AppConfig.from_config_file(config_file)

        self.assertEqual("sqlite:///gallery.sqlite", config.database_url)
        self.assertEqual("INFO", config.log_level)
        self.assertEqual(timedelta(minutes=10), config.bidding.withdrawal_window)
        self.assertEqual(timedelta(seconds=2.5), config.bidding.lock_timeout)
        self.assertEqual(25, config.bidding.max_auto_bid_iterations)
        self.assertEqual(
            BiddingConfig().closing_soon_window, config.bidding.closing_soon_window
        )

    def test_empty_config(self):
        self.assertEqual(AppConfig(), AppConfig.from_dict({}))


if __name__ == "__main__":
    unittest.main()
