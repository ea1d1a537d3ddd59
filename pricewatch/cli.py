"""
Operator CLI for inspecting symbols and running a one-off check.
"""

import argparse
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from pricewatch.config import AppConfig, load_config
from pricewatch.data.assets import AssetRepository, filter_tradable
from pricewatch.data.fetcher import StockDataFetcher


def get_price(fetcher: StockDataFetcher, symbol: str) -> dict:
    """Look up the latest price of a symbol."""
    symbol = symbol.strip()
    if not symbol:
        return {"success": False, "error": "Invalid symbol"}

    price = fetcher.fetch_current_price(symbol)
    if price is None:
        return {"success": False, "symbol": symbol, "error": "No price available"}
    return {"success": True, "symbol": symbol, "price": price}


def validate_symbol(fetcher: StockDataFetcher, symbol: str) -> dict:
    """Check that the provider knows a symbol."""
    result = get_price(fetcher, symbol)
    if result["success"]:
        return {"success": True, "symbol": result["symbol"]}
    return {"success": False, "error": "Symbol not found"}


def list_assets(config: AppConfig, tradable_only: bool = False) -> list:
    """List configured assets, optionally applying the weekend filter."""
    assets = AssetRepository(config.storage.assets_path).list_assets()
    if tradable_only:
        assets = filter_tradable(assets, config.schedule.timezone)
    return assets


def main(argv: Optional[list[str]] = None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Price watchdog CLI")
    parser.add_argument("--config", default=None, help="Path to YAML config file")

    subparsers = parser.add_subparsers(dest="command", help="Command")

    price_parser = subparsers.add_parser("price", help="Show latest price")
    price_parser.add_argument("symbol", help="Ticker symbol")

    validate_parser = subparsers.add_parser("validate", help="Validate a symbol")
    validate_parser.add_argument("symbol", help="Ticker symbol")

    assets_parser = subparsers.add_parser("assets", help="List configured assets")
    assets_parser.add_argument(
        "--tradable", action="store_true", help="Hide stocks on weekends"
    )

    subparsers.add_parser("check", help="Run one check cycle")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    fetcher = StockDataFetcher(
        initial_lookback_days=config.data_source.initial_lookback_days,
        max_lookback_days=config.data_source.max_lookback_days,
        timeout=config.data_source.request_timeout_seconds,
    )

    # Handle commands
    if args.command == "price":
        result = get_price(fetcher, args.symbol)
        if result["success"]:
            print(f"{result['symbol']}: {result['price']:,.2f}")
        else:
            print(f"Error: {result['error']}")

    elif args.command == "validate":
        result = validate_symbol(fetcher, args.symbol)
        if result["success"]:
            print(f"{result['symbol']} is valid")
        else:
            print(f"{args.symbol}: {result['error']}")

    elif args.command == "assets":
        assets = list_assets(config, tradable_only=args.tradable)
        for asset in assets:
            print(f"{asset.symbol}: {asset.name} ({asset.type.value})")
        if not assets:
            print("No assets configured")

    elif args.command == "check":
        from pricewatch.main import PriceWatchApp, setup_logging

        setup_logging(config.advanced.log_level)
        app = PriceWatchApp.from_config(config)
        app.run_check()

    else:
        parser.print_help()


if __name__ == "__main__":
    main()
