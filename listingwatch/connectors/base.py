# listingwatch/connectors/base.py
from __future__ import annotations

from typing import Any, Protocol, Sequence

from ..domain.listing import Listing


class SnapshotProvider(Protocol):
    async def fetch(self, options: Any) -> Sequence[Listing]:
        """
        Return the current page of listings, newest first, or raise.

        Must be safe to call repeatedly; the stream treats it as stateless.
        """
        ...
