# listingwatch/connectors/zoopla.py
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import httpx

from ..config import Settings
from ..domain.listing import Listing, ListingResponse, decode_listing_response
from ..errors import ConfigurationError, ResponseStatusError, TransportError

if TYPE_CHECKING:
    from ..jobs.stream import ListingStream, StreamConfig

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.zoopla.co.uk/api/v1/"
LISTINGS_PATH = "property_listings.xml"


@dataclass(frozen=True)
class Credentials:
    api_key: str = ""


@dataclass(frozen=True)
class ListingOptions:
    """
    Query for property_listings.xml. Field names are sent lowercased as-is;
    None means "leave it to the API default".
    """

    area: str | None = None
    postcode: str | None = None
    order_by: str | None = None  # "age" | "price"
    ordering: str | None = None  # "descending" | "ascending"
    listing_status: str | None = None  # "rent" | "sale"
    include_sold: bool | None = None
    include_rented: bool | None = None
    minimum_price: int | None = None
    maximum_price: int | None = None
    minimum_beds: int | None = None
    maximum_beds: int | None = None
    furnished: str | None = None
    property_type: str | None = None
    new_homes: bool | None = None
    chain_free: bool | None = None
    keywords: tuple[str, ...] = ()
    listing_id: str | None = None
    branch_id: str | None = None
    page_number: int | None = None
    page_size: int | None = None
    summarised: bool | None = None

    def to_query_params(self) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        for f in dataclasses.fields(self):
            v = getattr(self, f.name)
            if v is None:
                continue
            key = f.name.lower()
            if isinstance(v, bool):
                params.append((key, "true" if v else "false"))
            elif isinstance(v, (tuple, list)):
                params.extend((key, str(x)) for x in v if str(x))
            else:
                s = str(v)
                if s:
                    params.append((key, s))
        return params


def _parse_base_url(u: str) -> httpx.URL:
    try:
        url = httpx.URL(u)
    except (httpx.InvalidURL, TypeError) as e:
        raise ConfigurationError(f"invalid base URL {u!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(f"invalid base URL {u!r}: expected absolute http(s) URL")
    # relative joins must keep the version prefix (/api/v1/)
    if not url.path.endswith("/"):
        url = url.copy_with(path=url.path + "/")
    return url


class ZooplaConnector:
    """
    Thin async client for the Zoopla listings API.

      - one GET per fetch, XML decoded into ListingResponse
      - anything but HTTP 200 is an error (ResponseStatusError)
      - network failures surface as TransportError
    """

    def __init__(
        self,
        credentials: Credentials,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30,
        verify: bool = True,
        user_agent: str = "listingwatch/0.1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.credentials = credentials
        self.base_url = _parse_base_url(base_url)
        self.timeout_s = timeout_s
        self.verify = verify
        self.user_agent = user_agent
        self._transport = transport

    @classmethod
    def from_settings(cls, s: Settings, **kwargs: Any) -> "ZooplaConnector":
        return cls(
            Credentials(api_key=s.ZOOPLA_API_KEY),
            base_url=s.ZOOPLA_BASE_URL,
            timeout_s=s.ZOOPLA_HTTP_TIMEOUT_S,
            verify=s.ZOOPLA_VERIFY_SSL,
            user_agent=s.ZOOPLA_USER_AGENT,
            **kwargs,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "ZooplaConnector":
        """Reads ZOOPLA_* from the environment (and .env) at call time."""
        return cls.from_settings(Settings(), **kwargs)

    def build_listings_url(self, options: ListingOptions | None) -> str:
        params: list[tuple[str, str]] = [("api_key", self.credentials.api_key)]
        if options is not None:
            params.extend(options.to_query_params())
        url = self.base_url.join(LISTINGS_PATH)
        return str(url.copy_with(params=params))

    async def fetch_listings(self, options: ListingOptions | None = None) -> ListingResponse:
        url = self.build_listings_url(options)
        opts = options or ListingOptions()
        log.debug("Fetching listings area=%s page=%s", opts.area, opts.page_number)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_s,
                verify=self.verify,
                headers={"User-Agent": self.user_agent, "Accept": "application/xml"},
                transport=self._transport,
            ) as client:
                r = await client.get(url)
        except httpx.TransportError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        if r.status_code != 200:
            raise ResponseStatusError(r.status_code)

        return decode_listing_response(r.content)

    async def fetch(self, options: ListingOptions | None) -> list[Listing]:
        resp = await self.fetch_listings(options)
        return list(resp.listings)

    def stream_listings(
        self,
        options: ListingOptions | None = None,
        config: StreamConfig | None = None,
        *,
        on_event: Callable[..., Any] | None = None,
    ) -> ListingStream:
        from ..jobs.stream import start_stream

        return start_stream(self, options or ListingOptions(), config, on_event=on_event)
