# listingwatch/errors.py
from __future__ import annotations


class ZooplaError(Exception):
    """Base class for everything the listing client raises."""


class TransportError(ZooplaError):
    """Network failure or timeout while talking to the listings API."""


class ResponseStatusError(ZooplaError):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"wrong status code: {status_code}")
        self.status_code = status_code


class ListingDecodeError(ZooplaError):
    """Payload could not be decoded into a ListingResponse."""


class ConfigurationError(ZooplaError, ValueError):
    """
    Raised synchronously while building a connector or a stream
    (bad base URL, non-positive interval). Never published on a stream's
    error output.
    """
