"""
unified/preview.py — Website preview resolution
================================================

Per entity id:

    absent ──request──▶ loading ──▶ resolved(url)
                           │
                           └──cache lookup failed──▶ error (still carries a
                                                     direct capture URL)

Resolution:
  1. Ask the content API for stored screenshots of the entity.
  2. Newest capture younger than the freshness window (12 h) → use it.
  3. Otherwise build a capture URL; the screenshot service captures on
     first load of that URL, nothing is awaited here.

A request for an id that is already loading or resolved is coalesced into
the existing one. A broken image may be re-resolved once from the live URL;
a second failure parks the entry in error for good.

The state map is replaced wholesale on every transition and each entry is
replaced, never merged.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from unified.models import PreviewEntry

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS = timedelta(hours=12)

Listener = Callable[[Mapping[str, PreviewEntry]], None]


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class PreviewResolver:
    """
    Resolves website previews through the content API.

    Args:
        api:       object with ``list_screenshots(entity_id)`` (async) and
                   ``screenshot_url(live_url, entity_id)``
        freshness: max age of a stored screenshot that may be reused
        clock:     returns the current aware datetime (tests pin it)
    """

    def __init__(self, api, freshness: timedelta = DEFAULT_FRESHNESS,
                 clock: Optional[Callable[[], datetime]] = None):
        self.api = api
        self.freshness = freshness
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._state: Mapping[str, PreviewEntry] = MappingProxyType({})
        self._tasks: Dict[str, asyncio.Task] = {}
        self._retried: Set[str] = set()
        self._listeners: List[Listener] = []

    @classmethod
    def from_config(cls, api, config: dict) -> "PreviewResolver":
        hours = float(config.get("preview", {}).get("freshness_hours", 12))
        return cls(api, freshness=timedelta(hours=hours))

    # --- state ---

    @property
    def state(self) -> Mapping[str, PreviewEntry]:
        return self._state

    def get(self, entity_id: str) -> Optional[PreviewEntry]:
        return self._state.get(entity_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _put(self, entity_id: str, entry: PreviewEntry) -> None:
        state = dict(self._state)
        state[entity_id] = entry
        self._state = MappingProxyType(state)
        for listener in list(self._listeners):
            listener(self._state)

    # --- resolution ---

    def is_fresh(self, captured_at: Any) -> bool:
        captured = _parse_timestamp(captured_at)
        if captured is None:
            return False
        return self.clock() - captured < self.freshness

    def request(self, entity_id: str, live_url: Optional[str]) -> Optional[asyncio.Task]:
        """
        Start resolving a preview for an id that has no entry yet.

        Must be called from a running event loop. Returns the task doing the
        work (the in-flight one when coalesced), or None when nothing is
        needed.
        """
        if not live_url:
            return None
        if entity_id in self._state:
            return self._tasks.get(entity_id)

        self._put(entity_id, PreviewEntry(loading=True))
        task = asyncio.get_running_loop().create_task(self._resolve(entity_id, live_url))
        self._tasks[entity_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(entity_id, None))
        return task

    async def resolve(self, entity_id: str, live_url: Optional[str]) -> Optional[PreviewEntry]:
        """Request and wait for the preview of one entity."""
        task = self.request(entity_id, live_url)
        if task is not None:
            await task
        return self._state.get(entity_id)

    async def _resolve(self, entity_id: str, live_url: str) -> None:
        try:
            captures = await self.api.list_screenshots(entity_id)
        except Exception as e:
            # Non-fatal: fall through to a direct capture URL
            logger.warning(f"Screenshot cache lookup failed for {entity_id}, capturing directly: {e}")
            self._put(entity_id, PreviewEntry(url=self.api.screenshot_url(live_url, entity_id), error=True))
            return

        newest = self._newest(captures or [])
        if newest is not None and newest.get("url") and self.is_fresh(newest.get("createdAt")):
            logger.debug(f"Reusing stored screenshot for {entity_id}")
            self._put(entity_id, PreviewEntry(url=newest["url"]))
            return

        self._put(entity_id, PreviewEntry(url=self.api.screenshot_url(live_url, entity_id)))

    @staticmethod
    def _newest(captures: List[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
        dated = [(c, _parse_timestamp(c.get("createdAt"))) for c in captures]
        dated = [(c, ts) for c, ts in dated if ts is not None]
        if not dated:
            return None
        return max(dated, key=lambda pair: pair[1])[0]

    def report_image_error(self, entity_id: str, live_url: Optional[str]) -> Optional[PreviewEntry]:
        """
        The browser failed to load the preview image for *entity_id*.

        The first failure re-resolves straight from the live URL; any later
        failure (or no live URL) leaves the entry in error.
        """
        if entity_id in self._retried or not live_url:
            entry = PreviewEntry(error=True)
            self._put(entity_id, entry)
            logger.warning(f"Preview for {entity_id} failed to load; giving up")
            return entry

        self._retried.add(entity_id)
        entry = PreviewEntry(url=self.api.screenshot_url(live_url, entity_id))
        self._put(entity_id, entry)
        logger.info(f"Preview for {entity_id} failed to load; retrying from live URL")
        return entry

    async def auto_load(self, entities: Iterable[Mapping[str, Any]], adapter,
                        stagger: float = 0.5) -> None:
        """Resolve previews for every entity with a live URL and no custom image."""
        pending = []
        for index, entity in enumerate(e for e in entities
                                       if adapter.get_live_url(e) and not adapter.has_custom_image(e)):
            if index and stagger:
                await asyncio.sleep(stagger)
            task = self.request(adapter.get_id(entity), adapter.get_live_url(entity))
            if task is not None:
                pending.append(task)
        if pending:
            await asyncio.gather(*pending)
