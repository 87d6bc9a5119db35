from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from listingwatch.config import settings
from listingwatch.connectors.zoopla import ListingOptions, ZooplaConnector
from listingwatch.jobs.stream import StreamConfig
from listingwatch.logging_config import setup_logging

log = logging.getLogger("stream_listings")


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Stream new Zoopla listings for an area")
    p.add_argument("--area", default="Oxford")
    p.add_argument("--beds", type=int, default=2, help="Exact bedroom count (min = max)")
    p.add_argument("--status", default=None, help="rent | sale")
    p.add_argument("--interval", type=float, default=settings.STREAM_INTERVAL_S, help="Seconds between polls")
    p.add_argument("--discard-initial", action="store_true", default=settings.STREAM_DISCARD_INITIAL)
    p.add_argument("--max-minutes", type=float, default=1000, help="Stop after this long")
    return p


async def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    connector = ZooplaConnector.from_env()
    options = ListingOptions(
        area=args.area,
        minimum_beds=args.beds,
        maximum_beds=args.beds,
        listing_status=args.status,
    )
    config = StreamConfig(interval_s=args.interval, discard_initial=args.discard_initial)

    stream = connector.stream_listings(options, config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stream.stop)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass
    loop.call_later(args.max_minutes * 60, stream.stop)

    async def _log_listings() -> None:
        async for listing in stream.listings:
            log.info("Received listing: %s %s", listing.listing_id, listing.displayable_address)

    async def _log_errors() -> None:
        async for err in stream.errors:
            log.error("Stream error: %s", err)

    try:
        await asyncio.gather(_log_listings(), _log_errors())
    except KeyboardInterrupt:
        pass
    finally:
        await stream.aclose()
        log.info("Stopped after %d ticks, %d listings", stream.health.ticks, stream.health.listings_published)


if __name__ == "__main__":
    asyncio.run(main())
