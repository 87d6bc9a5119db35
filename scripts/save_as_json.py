from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os

from listingwatch.config import settings
from listingwatch.connectors.zoopla import ListingOptions, ZooplaConnector
from listingwatch.domain.listing import Listing
from listingwatch.logging_config import setup_logging

log = logging.getLogger("save_as_json")


def _file_stem(listing_id: str) -> str | None:
    """The id as a bare file name, or None if it would leave out_dir."""
    if not listing_id or listing_id in (".", "..") or "/" in listing_id or "\\" in listing_id:
        return None
    return listing_id


def write_listings(listings: list[Listing], out_dir: str) -> list[str]:
    os.makedirs(out_dir, exist_ok=True)
    paths: list[str] = []
    for listing in listings:
        stem = _file_stem(listing.listing_id)
        if stem is None:
            log.warning("Skipping listing with unsafe id %r", listing.listing_id)
            continue
        path = os.path.join(out_dir, f"{stem}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(listing.to_json_dict(), f, indent=2)
        paths.append(path)
    return paths


async def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(description="Save one page of Zoopla listings as JSON files")
    p.add_argument("--area", default="London")
    p.add_argument("--beds", type=int, default=2)
    p.add_argument("--status", default="rent")
    p.add_argument("--page-size", type=int, default=30)
    p.add_argument("--out", default="data/listings")
    args = p.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)

    connector = ZooplaConnector.from_env()
    resp = await connector.fetch_listings(
        ListingOptions(
            area=args.area,
            minimum_beds=args.beds,
            maximum_beds=args.beds,
            order_by="age",
            page_size=args.page_size,
            listing_status=args.status,
        )
    )
    log.info("Fetched %d of %d listings for %s", len(resp.listings), resp.result_count, resp.area_name or args.area)

    paths = write_listings(list(resp.listings), args.out)
    log.info("Wrote %d files to %s", len(paths), args.out)


if __name__ == "__main__":
    asyncio.run(main())
