# listingwatch/domain/seen.py
from __future__ import annotations


class SeenSet:
    """
    Listing ids already handled by one stream.
    Grows for the lifetime of the stream, never persisted.
    """

    def __init__(self) -> None:
        self._ids: set[str] = set()

    def add(self, listing_id: str) -> None:
        self._ids.add(listing_id)

    def delete(self, listing_id: str) -> None:
        self._ids.discard(listing_id)

    def exists(self, listing_id: str) -> bool:
        return listing_id in self._ids

    def __contains__(self, listing_id: object) -> bool:
        return listing_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"SeenSet(size={len(self._ids)})"
