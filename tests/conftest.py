# tests/conftest.py
import asyncio

import pytest

from listingwatch.domain.listing import Listing


LISTING_XML = """
  <listing>
    <agent_name>Oxford Lettings</agent_name>
    <agent_id>{agent_id}</agent_id>
    <company_address>1 High St, Oxford</company_address>
    <agent_logo>https://lc.zoocdn.com/logo.png</agent_logo>
    <agent_phone>01865 000000</agent_phone>
    <category>Residential</category>
    <listing_id>{listing_id}</listing_id>
    <details_url>https://www.zoopla.co.uk/to-rent/details/{listing_id}</details_url>
    <image_url>https://lid.zoocdn.com/{listing_id}.jpg</image_url>
    <displayable_address>Cowley Road, Oxford OX4</displayable_address>
    <post_town>Oxford</post_town>
    <outcode>OX4</outcode>
    <available_from_display>Available from 1st Jun 2024</available_from_display>
    <first_published_date>2024-05-01 09:15:00</first_published_date>
    <last_published_date>2024-05-02 10:00:00</last_published_date>
    <status>to_rent</status>
    <description>A bright two bedroom flat.</description>
    <short_description>Two bed flat</short_description>
    <property_type>Flat</property_type>
    <floor_plan></floor_plan>
    <furnished_state>furnished</furnished_state>
    <letting_fees>See agent</letting_fees>
    <num_bedrooms>2</num_bedrooms>
    <num_bathrooms>1</num_bathrooms>
    <num_floors>0</num_floors>
    <num_recepts>1</num_recepts>
    <floor_area>
      <name>internal</name>
      <units>sq_feet</units>
      <value>650</value>
    </floor_area>
    <rental_prices>
      <accurate>per_month</accurate>
      <per_month>{per_month}</per_month>
      <per_week>300</per_week>
      <shared_occupancy>N</shared_occupancy>
    </rental_prices>
  </listing>
"""


def build_response_xml(*listing_ids: str, per_month: str = "1300") -> str:
    listings = "".join(
        LISTING_XML.format(listing_id=lid, agent_id="77", per_month=per_month) for lid in listing_ids
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<response>
  <area_name>Oxford</area_name>
  <street></street>
  <town>Oxford</town>
  <county>Oxfordshire</county>
  <country>England</country>
  <postcode></postcode>
  <latitude>51.75</latitude>
  <longitude>-1.25</longitude>
  <bounding_box>
    <latitude_min>51.70</latitude_min>
    <latitude_max>51.80</latitude_max>
    <longitude_min>-1.30</longitude_min>
    <longitude_max>-1.20</longitude_max>
  </bounding_box>
  <result_count>{len(listing_ids)}</result_count>
  {listings}
</response>
"""


@pytest.fixture
def make_xml():
    return build_response_xml


class ScriptedProvider:
    """
    In-memory snapshot provider:
    - returns scripted pages in order, one per fetch
    - an Exception entry is raised instead of returned
    - once the script runs out every fetch returns an empty page
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0
        self.seen_options = []
        self._waiters: dict[int, asyncio.Event] = {}

    async def fetch(self, options):
        self.calls += 1
        self.seen_options.append(options)
        for n, ev in self._waiters.items():
            if self.calls >= n:
                ev.set()

        step = self.script[self.calls - 1] if self.calls <= len(self.script) else []
        if isinstance(step, Exception):
            raise step
        return [Listing(listing_id=i) for i in step]

    async def reached(self, n: int) -> None:
        """Wait until fetch has been called n times."""
        if self.calls >= n:
            return
        ev = self._waiters.setdefault(n, asyncio.Event())
        await ev.wait()


@pytest.fixture
def scripted():
    return ScriptedProvider
