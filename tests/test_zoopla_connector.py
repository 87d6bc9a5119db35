import asyncio

import httpx
import pytest

from listingwatch.connectors.zoopla import Credentials, ListingOptions, ZooplaConnector
from listingwatch.errors import (
    ConfigurationError,
    ListingDecodeError,
    ResponseStatusError,
    TransportError,
)
from listingwatch.jobs.stream import StreamConfig, start_stream


def _connector(handler, **kwargs) -> ZooplaConnector:
    return ZooplaConnector(Credentials(api_key="k3y"), transport=httpx.MockTransport(handler), **kwargs)


def test_build_listings_url_lowercases_and_skips_unset():
    c = ZooplaConnector(Credentials(api_key="k3y"))
    url = httpx.URL(
        c.build_listings_url(
            ListingOptions(
                area="Oxford",
                minimum_beds=2,
                maximum_beds=2,
                new_homes=False,
                keywords=("garden", "parking"),
            )
        )
    )

    assert str(url).startswith("https://api.zoopla.co.uk/api/v1/property_listings.xml?")
    assert url.params["api_key"] == "k3y"
    assert url.params["area"] == "Oxford"
    assert url.params["minimum_beds"] == "2"
    assert url.params["new_homes"] == "false"
    assert url.params.get_list("keywords") == ["garden", "parking"]
    assert "order_by" not in url.params
    assert "page_size" not in url.params


def test_base_url_without_trailing_slash_keeps_version_prefix():
    c = ZooplaConnector(Credentials(api_key="k"), base_url="http://localhost:8080/api/v1")
    assert c.build_listings_url(None).startswith("http://localhost:8080/api/v1/property_listings.xml?api_key=k")


@pytest.mark.parametrize("bad", ["not a url", "ftp://example.com/", "http://[::1"])
def test_malformed_base_url_is_a_configuration_error(bad):
    with pytest.raises(ConfigurationError):
        ZooplaConnector(Credentials(), base_url=bad)


@pytest.mark.asyncio
async def test_fetch_listings_decodes_xml(make_xml):
    seen_urls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_urls.append(str(request.url))
        return httpx.Response(200, content=make_xml("9", "8").encode("utf-8"))

    resp = await _connector(handler).fetch_listings(ListingOptions(area="Oxford"))

    assert [l.listing_id for l in resp.listings] == ["9", "8"]
    assert resp.area_name == "Oxford"
    assert "api_key=k3y" in seen_urls[0]


@pytest.mark.asyncio
async def test_non_200_status_raises(make_xml):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, content=make_xml("1").encode("utf-8"))

    with pytest.raises(ResponseStatusError) as exc:
        await _connector(handler).fetch_listings()
    assert exc.value.status_code == 204
    assert str(exc.value) == "wrong status code: 204"


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError):
        await _connector(handler).fetch_listings()


@pytest.mark.asyncio
async def test_garbage_body_raises_decode_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    with pytest.raises(ListingDecodeError):
        await _connector(handler).fetch(ListingOptions())


def test_from_env_reads_zoopla_settings(monkeypatch):
    monkeypatch.setenv("ZOOPLA_API_KEY", "from-env")
    monkeypatch.setenv("ZOOPLA_BASE_URL", "https://sandbox.example.com/api/v1/")
    monkeypatch.setenv("ZOOPLA_HTTP_TIMEOUT_S", "5")

    c = ZooplaConnector.from_env()
    assert c.credentials.api_key == "from-env"
    assert c.timeout_s == 5
    assert c.build_listings_url(None).startswith("https://sandbox.example.com/api/v1/property_listings.xml")


@pytest.mark.asyncio
async def test_stream_over_connector_reports_errors_then_listings(make_xml):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        assert request.url.params["order_by"] == "age"
        if calls["n"] == 1:
            return httpx.Response(503)
        return httpx.Response(200, content=make_xml("2", "1").encode("utf-8"))

    stream = _connector(handler).stream_listings(
        ListingOptions(area="Oxford", order_by="price"),
        StreamConfig(interval_s=0.01),
    )
    try:
        err = await asyncio.wait_for(stream.errors.recv(), timeout=2)
        assert isinstance(err, ResponseStatusError)
        assert err.status_code == 503

        first = await asyncio.wait_for(stream.listings.recv(), timeout=2)
        second = await asyncio.wait_for(stream.listings.recv(), timeout=2)
        assert [first.listing_id, second.listing_id] == ["2", "1"]
    finally:
        await asyncio.wait_for(stream.aclose(), timeout=2)


@pytest.mark.asyncio
async def test_stream_without_options_requests_newest_first(make_xml):
    seen_params: list[httpx.QueryParams] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen_params.append(request.url.params)
        return httpx.Response(200, content=make_xml("1").encode("utf-8"))

    stream = start_stream(_connector(handler), config=StreamConfig(interval_s=10))
    try:
        first = await asyncio.wait_for(stream.listings.recv(), timeout=2)
    finally:
        await asyncio.wait_for(stream.aclose(), timeout=2)

    assert first.listing_id == "1"
    assert seen_params[0]["order_by"] == "age"
    assert seen_params[0]["ordering"] == "descending"
    assert seen_params[0]["api_key"] == "k3y"
