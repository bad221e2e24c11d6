"""
sma-scanner command line.

Usage:
    sma-scanner build                           # scan the ticker universe, store the result
    sma-scanner build --output sma-scan.json    # ...and also write it as JSON
    sma-scanner show --window 200               # print the stored result for one window
    sma-scanner tickers sp500.txt               # regenerate data/tickers.json from a pasted table
    sma-scanner serve --port 8000               # run the API
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sma_scanner.config import configure_logging, load_settings
from sma_scanner.core.errors import ScannerError
from sma_scanner.core.universe import parse_constituents_text, write_tickers
from sma_scanner.db.dbadapter import create_and_init
from sma_scanner.scanner import build_and_store, parse_window, window_view

logger = logging.getLogger("sma_scanner")


async def _build(args, settings) -> int:
    store = await create_and_init(str(settings.resolve_path(settings.db_path)))
    try:
        result = await build_and_store(settings, store)
    finally:
        await store.close()

    if args.output:
        out = Path(args.output)
        out.write_text(json.dumps(result.model_dump(by_alias=True), indent=2) + "\n", encoding="utf8")
        print(f"Wrote scan to {out}")

    print(f"as of {result.as_of or '-'}")
    for window, count in result.count_by_window.items():
        print(f"  SMA{window:>4}: {count} below")
    return 0


async def _show(args, settings) -> int:
    window = parse_window(args.window, settings.windows)
    store = await create_and_init(str(settings.resolve_path(settings.db_path)))
    try:
        result = await store.load_latest()
    finally:
        await store.close()

    view = window_view(result, window, settings.windows)
    print(json.dumps(view.model_dump(by_alias=True), indent=2))
    return 0


def _tickers(args) -> int:
    text = Path(args.input).read_text(encoding="utf8")
    symbols = parse_constituents_text(text)
    out = write_tickers(symbols, args.output)
    print(f"Wrote {len(symbols)} tickers to {out}")
    print(f"First 10: {', '.join(symbols[:10])}")
    return 0


def _serve(args, settings) -> int:
    import uvicorn

    from sma_scanner.api.server import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sma-scanner", description="S&P 500 below-SMA scanner")
    parser.add_argument("--config", help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Run the batch scan and store the result")
    build.add_argument("--output", help="Also write the scan as JSON to this file")
    build.add_argument("--source", choices=["stooq", "twelvedata"], help="Override the data source")
    build.add_argument("--concurrency", type=int, help="Max in-flight fetches")

    show = sub.add_parser("show", help="Print the stored scan for one window")
    show.add_argument("--window", required=True, help="SMA window")

    tickers = sub.add_parser("tickers", help="Parse a constituents table into the ticker list")
    tickers.add_argument("input", help="Tab-separated constituents text file")
    tickers.add_argument("--output", default="data/tickers.json")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "tickers":
        return _tickers(args)

    try:
        settings = load_settings(
            args.config,
            data_source=getattr(args, "source", None),
            concurrency=getattr(args, "concurrency", None),
        )
        configure_logging(settings.log_level)

        if args.command == "serve":
            return _serve(args, settings)
        if args.command == "show":
            return asyncio.run(_show(args, settings))
        return asyncio.run(_build(args, settings))
    except ScannerError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
