"""
CLI tests.
Tests for the operator command line.
"""

from unittest.mock import Mock, patch

import pytest

from pricewatch.cli import get_price, list_assets, main, validate_symbol
from pricewatch.data.fetcher import StockDataFetcher

pytestmark = pytest.mark.usefixtures("clean_env")


@pytest.fixture
def fetcher():
    return Mock(spec=StockDataFetcher)


class TestPriceLookup:
    """Test symbol price lookups."""

    def test_get_price(self, fetcher):
        fetcher.fetch_current_price.return_value = 175.5

        result = get_price(fetcher, " AAPL ")

        assert result == {"success": True, "symbol": "AAPL", "price": 175.5}
        fetcher.fetch_current_price.assert_called_once_with("AAPL")

    def test_get_price_empty_symbol(self, fetcher):
        result = get_price(fetcher, "   ")

        assert result["success"] is False
        fetcher.fetch_current_price.assert_not_called()

    def test_validate_unknown_symbol(self, fetcher):
        fetcher.fetch_current_price.return_value = None

        assert validate_symbol(fetcher, "NOPE") == {
            "success": False,
            "error": "Symbol not found",
        }


class TestListAssets:
    """Test asset listing."""

    def test_list_assets(self, app_config, write_assets):
        write_assets(("AAPL", "Apple Inc.", "stock"), ("ETH-USD", "Ethereum", "crypto"))

        assets = list_assets(app_config)

        assert [a.symbol for a in assets] == ["AAPL", "ETH-USD"]

    def test_tradable_only_on_weekend(self, app_config, write_assets):
        write_assets(("AAPL", "Apple Inc.", "stock"), ("ETH-USD", "Ethereum", "crypto"))

        with patch("pricewatch.data.assets.is_weekend", return_value=True):
            assets = list_assets(app_config, tradable_only=True)

        assert [a.symbol for a in assets] == ["ETH-USD"]


class TestMain:
    """Test command dispatch."""

    def test_price_command(self, capsys):
        with patch.object(StockDataFetcher, "fetch_current_price", return_value=1234.5):
            main(["price", "BTC-USD"])

        assert capsys.readouterr().out.strip() == "BTC-USD: 1,234.50"

    def test_assets_command_without_file(self, tmp_path, capsys):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"storage:\n  assets_file: {tmp_path / 'none.yaml'}\n")

        main(["--config", str(config_file), "assets"])

        assert "No assets configured" in capsys.readouterr().out

    def test_check_command(self):
        with patch("pricewatch.main.PriceWatchApp.run_check") as mock_run, \
             patch("pricewatch.main.setup_logging"):
            main(["check"])

        mock_run.assert_called_once()
