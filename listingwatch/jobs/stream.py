# listingwatch/jobs/stream.py
from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from ..config import Settings
from ..connectors.base import SnapshotProvider
from ..connectors.zoopla import ListingOptions
from ..domain.listing import Listing
from ..domain.seen import SeenSet
from ..errors import ConfigurationError
from .channel import Channel, ChannelClosed

log = logging.getLogger(__name__)

DEFAULT_STREAM_INTERVAL_S = 60.0

# Early exit is only sound when the newest listing comes first.
NEWEST_FIRST: dict[str, str] = {"order_by": "age", "ordering": "descending"}


@dataclass(frozen=True)
class StreamConfig:
    interval_s: float = DEFAULT_STREAM_INTERVAL_S
    discard_initial: bool = False

    def __post_init__(self) -> None:
        if not (isinstance(self.interval_s, (int, float)) and self.interval_s > 0):
            raise ConfigurationError(f"stream interval must be > 0 seconds, got {self.interval_s!r}")

    @classmethod
    def from_settings(cls, s: Settings) -> "StreamConfig":
        return cls(interval_s=s.STREAM_INTERVAL_S, discard_initial=s.STREAM_DISCARD_INITIAL)


@dataclass
class StreamHealth:
    ticks: int = 0
    fetch_errors: int = 0
    listings_seen: int = 0
    listings_published: int = 0
    baseline_seeded: int = 0
    last_error: str | None = None


@dataclass(frozen=True)
class StreamEvent:
    # tick | fetch_failed | published | baseline | early_exit | stopped
    kind: str
    tick: int
    listing_id: str | None = None
    count: int = 0
    error: BaseException | None = None


class _Once:
    """One-shot gate: the first do() runs fn, every later call is a no-op."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False

    def do(self, fn: Callable[[], None]) -> bool:
        with self._lock:
            if self._done:
                return False
            self._done = True
        fn()
        return True


def newest_first(options: Any) -> Any:
    """
    Copy of options with the sort forced to newest-by-age. Never mutates.

    None means default ListingOptions. Options without order_by/ordering
    fields cannot be sorted, so they are rejected.
    """
    if options is None:
        options = ListingOptions()
    if not dataclasses.is_dataclass(options) or isinstance(options, type):
        raise ConfigurationError(f"cannot force newest-first sort on {type(options).__name__} options")
    names = {f.name for f in dataclasses.fields(options)}
    missing = sorted(set(NEWEST_FIRST) - names)
    if missing:
        raise ConfigurationError(f"options {type(options).__name__} lack sort fields: {', '.join(missing)}")
    return dataclasses.replace(options, **NEWEST_FIRST)


def _listing_id(item: Any) -> str:
    return str(item.listing_id)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ListingStream:
    """
    Turns periodic snapshot fetches into a push stream of newly seen listings.

    Per tick:
      - fetch the current page (newest first)
      - walk it until the first id already seen (early exit)
      - hand each new listing to `listings`, one at a time
      - fetch failures go to `errors`; the loop keeps going

    With discard_initial the first non-empty page only seeds the seen set.
    Nothing is persisted; a new stream starts from an empty seen set.

    stop() may be called any number of times, from any task or thread.
    The first call closes both channels; consumers see end-of-iteration.
    """

    def __init__(
        self,
        provider: SnapshotProvider,
        options: Any = None,
        config: StreamConfig | None = None,
        *,
        on_event: Callable[[StreamEvent], Any] | None = None,
        id_of: Callable[[Any], str] = _listing_id,
    ) -> None:
        self.config = config or StreamConfig()
        self.options = newest_first(options)
        self.listings: Channel[Listing] = Channel()
        self.errors: Channel[Exception] = Channel()
        self.health = StreamHealth()

        self._provider = provider
        self._seen = SeenSet()
        self._discard_initial = self.config.discard_initial
        self._on_event = on_event
        self._id_of = id_of

        self._gate = _Once()
        self._stopped = asyncio.Event()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._task: asyncio.Task[None] | None = None
        self._next_at = 0.0
        self._tick = 0

    # --- lifecycle

    def start(self) -> "ListingStream":
        """Schedule the poll loop on the running event loop."""
        if self._task is not None:
            return self
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._run(), name="listing-stream")
        return self

    def stop(self) -> None:
        self._gate.do(self._shutdown)

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    @property
    def seen(self) -> SeenSet:
        return self._seen

    async def wait_closed(self) -> None:
        if self._task is not None:
            await self._task

    async def aclose(self) -> None:
        self.stop()
        await self.wait_closed()

    async def __aenter__(self) -> "ListingStream":
        return self.start()

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    def __iter__(self) -> Iterator[Any]:
        # listings, errors, stop = start_stream(...)
        return iter((self.listings, self.errors, self.stop))

    def _shutdown(self) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or _running_loop() is loop:
            self._close_outputs()
        else:
            loop.call_soon_threadsafe(self._close_outputs)

    def _close_outputs(self) -> None:
        self._stopped.set()
        self.listings.close()
        self.errors.close()
        log.info("Listing stream stopped after %d ticks", self.health.ticks)
        self._emit("stopped", count=self.health.listings_published)

    # --- poll loop

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        self._next_at = loop.time() + self.config.interval_s
        try:
            while not self._stopped.is_set():
                await self._run_tick()
                if await self._wait_next_tick():
                    break
        except ChannelClosed:
            # stopped while a handoff was pending
            pass
        except Exception:
            log.exception("listing stream crashed: tick=%d", self._tick)
            raise
        finally:
            self.stop()

    async def _run_tick(self) -> None:
        self._tick += 1
        self.health.ticks = self._tick
        log.info("Getting newest listings")
        self._emit("tick")

        try:
            snapshot = await self._provider.fetch(self.options)
        except Exception as e:  # noqa: BLE001
            self.health.fetch_errors += 1
            self.health.last_error = f"{type(e).__name__}: {e}"
            log.warning("listing fetch failed: tick=%d error=%s", self._tick, self.health.last_error)
            self._emit("fetch_failed", error=e)
            await self.errors.send(e)
            return

        published = await self._publish_new(snapshot)
        if published:
            log.info("Published %d new listings", published)
        else:
            log.info("No new listings available")

    async def _publish_new(self, snapshot: Sequence[Any]) -> int:
        published = 0
        seeded = 0
        baseline = False

        for item in snapshot:
            listing_id = self._id_of(item)
            if self._seen.exists(listing_id):
                self._emit("early_exit", listing_id=listing_id)
                break
            self._seen.add(listing_id)
            self.health.listings_seen += 1

            if self._discard_initial:
                self._discard_initial = False
                baseline = True
            if baseline:
                seeded += 1
                continue

            await self.listings.send(item)
            published += 1
            self.health.listings_published += 1
            self._emit("published", listing_id=listing_id)

        if baseline:
            self.health.baseline_seeded += seeded
            log.info("Baseline seeded with %d listings, none published", seeded)
            self._emit("baseline", count=seeded)
        return published

    async def _wait_next_tick(self) -> bool:
        """Sleep until the next tick; True when stopped. Stop wins ties."""
        loop = asyncio.get_running_loop()
        interval = self.config.interval_s
        now = loop.time()

        if now >= self._next_at:
            # ticks fired while we were busy: deliver one now, drop the rest
            missed = math.floor((now - self._next_at) / interval) + 1
            self._next_at += missed * interval
            # let queued callbacks (a cross-thread stop) run before the next fetch
            await asyncio.sleep(0)
            return self._stopped.is_set()

        delay = self._next_at - now
        self._next_at += interval
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
        return self._stopped.is_set()

    def _emit(self, kind: str, **kw: Any) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(StreamEvent(kind=kind, tick=self._tick, **kw))
        except Exception:  # noqa: BLE001
            log.exception("stream event hook failed: kind=%s", kind)


def start_stream(
    provider: SnapshotProvider,
    options: Any = None,
    config: StreamConfig | None = None,
    *,
    on_event: Callable[[StreamEvent], Any] | None = None,
) -> ListingStream:
    """
    Start polling `provider` on the running event loop.

        listings, errors, stop = start_stream(connector, ListingOptions(area="Oxford"))
    """
    return ListingStream(provider, options, config, on_event=on_event).start()
