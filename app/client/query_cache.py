"""Client-side companion cache for the question listing.

Mirrors the server's TTL/key discipline, keeps at most ``max_size``
pages (oldest first out) and speculatively fetches the next pages so
paging forward feels instant. The cache is advisory: anything it holds
may be discarded at any time.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from math import ceil
from time import time
from typing import Any, Callable

import httpx

from app.client.storage import KeyValueStorage
from app.core.cache_keys import QueryParams, QuestionFilters, SortOptions, encode
from app.schemas.question import QuestionListResponse

logger = logging.getLogger("dsa_tracker.client")

STORAGE_KEY = "questions-cache"
CACHE_DURATION = 5 * 60.0
MAX_CACHE_SIZE = 50
PREFETCH_DISTANCE = 2


@dataclass
class CachedPage:
    response: QuestionListResponse
    timestamp: float

    def to_json(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "data": self.response.model_dump(mode="json", by_alias=True)}

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "CachedPage":
        return cls(response=QuestionListResponse.model_validate(raw["data"]), timestamp=float(raw["timestamp"]))


@dataclass
class ClientCacheStats:
    total_entries: int
    valid_entries: int
    expired_entries: int
    approx_byte_size: int
    max_cache_size: int
    cache_duration: float


class ClientQueryCache:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        storage: KeyValueStorage | None = None,
        caller_identity: str | None = None,
        token: str | None = None,
        ttl: float = CACHE_DURATION,
        max_size: int = MAX_CACHE_SIZE,
        prefetch_distance: int = PREFETCH_DISTANCE,
        endpoint: str = "/api/questions",
        storage_key: str = STORAGE_KEY,
        clock: Callable[[], float] = time,
    ):
        self.http_client = http_client
        self.storage = storage
        self.caller_identity = caller_identity
        self.token = token
        self.ttl = ttl
        self.max_size = max_size
        self.prefetch_distance = prefetch_distance
        self.endpoint = endpoint
        self.storage_key = storage_key
        self._clock = clock
        self._entries: dict[str, CachedPage] = {}
        self._in_flight: set[str] = set()
        self._prefetching = False
        self._background: set[asyncio.Task] = set()
        self._load()

    # -- keys ---------------------------------------------------------------

    def params_for(self, filters: QuestionFilters, sort: SortOptions, page: int, page_size: int) -> QueryParams:
        return QueryParams(
            filters=filters,
            sort=sort,
            page=page,
            page_size=page_size,
            caller_identity=self.caller_identity,
        )

    def key_for(self, filters: QuestionFilters, sort: SortOptions, page: int, page_size: int) -> str:
        return encode(self.params_for(filters, sort, page, page_size))

    def _is_fresh(self, entry: CachedPage, now: float) -> bool:
        return now - entry.timestamp < self.ttl

    # -- persistence --------------------------------------------------------

    def _serialize(self) -> str:
        return json.dumps({key: entry.to_json() for key, entry in self._entries.items()})

    def _load(self):
        if self.storage is None:
            return
        try:
            raw = self.storage.get_item(self.storage_key)
            stored = json.loads(raw) if raw else {}
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load questions cache from storage: %s", exc)
            return
        if not isinstance(stored, dict):
            logger.warning("Ignoring malformed questions cache in storage")
            return

        now = self._clock()
        for key, raw_entry in stored.items():
            try:
                entry = CachedPage.from_json(raw_entry)
            except (KeyError, TypeError, ValueError):
                logger.debug("Dropping unreadable cache entry %s", key)
                continue
            if self._is_fresh(entry, now):
                self._entries[key] = entry
        logger.debug("Rehydrated %d of %d cached pages", len(self._entries), len(stored))

    def _persist(self):
        if self.storage is None:
            return
        try:
            self.storage.set_item(self.storage_key, self._serialize())
        except (OSError, ValueError) as exc:
            logger.warning("Failed to save questions cache to storage: %s", exc)

    # -- read / write -------------------------------------------------------

    def get(
        self, filters: QuestionFilters, sort: SortOptions, page: int, page_size: int
    ) -> QuestionListResponse | None:
        key = self.key_for(filters, sort, page, page_size)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not self._is_fresh(entry, self._clock()):
            del self._entries[key]
            self._persist()
            return None
        return entry.response

    def set(
        self,
        filters: QuestionFilters,
        sort: SortOptions,
        page: int,
        page_size: int,
        value: QuestionListResponse,
    ):
        key = self.key_for(filters, sort, page, page_size)
        self._entries[key] = CachedPage(response=value, timestamp=self._clock())

        overflow = len(self._entries) - self.max_size
        if overflow > 0:
            oldest = sorted(self._entries.items(), key=lambda item: item[1].timestamp)[:overflow]
            for stale_key, _ in oldest:
                del self._entries[stale_key]
            logger.debug("Evicted %d oldest cached pages", overflow)

        self._persist()

    async def fetch_page(self, params: QueryParams) -> QuestionListResponse:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else None
        response = await self.http_client.get(self.endpoint, params=params.to_request_params(), headers=headers)
        response.raise_for_status()
        return QuestionListResponse.model_validate(response.json())

    async def load_page(
        self,
        filters: QuestionFilters,
        sort: SortOptions,
        page: int,
        page_size: int,
        prefetch: bool = True,
    ) -> QuestionListResponse:
        """Serve a page from the cache or the network, then warm the next pages.

        Network errors on this path propagate; the follow-up prefetch runs
        in the background and is never awaited here.
        """
        result = self.get(filters, sort, page, page_size)
        if result is None:
            result = await self.fetch_page(self.params_for(filters, sort, page, page_size))
            self.set(filters, sort, page, page_size, result)

        if prefetch:
            task = asyncio.create_task(
                self.prefetch_next_pages(filters, sort, page, page_size, result.total_count)
            )
            self._background.add(task)
            task.add_done_callback(self._on_prefetch_done)
        return result

    # -- prefetch -----------------------------------------------------------

    async def prefetch_next_pages(
        self,
        filters: QuestionFilters,
        sort: SortOptions,
        current_page: int,
        page_size: int,
        total_count: int,
    ) -> int:
        """Fetch up to ``prefetch_distance`` following pages; returns how many were stored."""
        if self._prefetching or page_size <= 0:
            return 0

        total_pages = ceil(total_count / page_size)
        pages = []
        for offset in range(1, self.prefetch_distance + 1):
            page = current_page + offset
            if page > total_pages:
                break
            key = self.key_for(filters, sort, page, page_size)
            if key in self._in_flight or self.get(filters, sort, page, page_size) is not None:
                continue
            pages.append(page)

        if not pages:
            return 0

        self._prefetching = True
        for page in pages:
            self._in_flight.add(self.key_for(filters, sort, page, page_size))
        try:
            stored = await asyncio.gather(*(self._prefetch_page(filters, sort, page, page_size) for page in pages))
        finally:
            self._prefetching = False
        return sum(stored)

    async def _prefetch_page(self, filters: QuestionFilters, sort: SortOptions, page: int, page_size: int) -> bool:
        params = self.params_for(filters, sort, page, page_size)
        key = encode(params)
        try:
            response = await self.fetch_page(params)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to prefetch page %d: %s", page, exc)
            return False
        finally:
            self._in_flight.discard(key)
        self.set(filters, sort, page, page_size, response)
        return True

    def _on_prefetch_done(self, task: asyncio.Task):
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Background prefetch failed: %s", task.exception())

    async def drain_prefetch(self):
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def is_in_flight(self, filters: QuestionFilters, sort: SortOptions, page: int, page_size: int) -> bool:
        return self.key_for(filters, sort, page, page_size) in self._in_flight

    # -- maintenance --------------------------------------------------------

    def clear_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if not self._is_fresh(entry, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            self._persist()
        return len(expired)

    def clear_all(self):
        self._entries.clear()
        if self.storage is None:
            return
        try:
            self.storage.remove_item(self.storage_key)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to clear questions cache from storage: %s", exc)

    def stats(self) -> ClientCacheStats:
        now = self._clock()
        total = len(self._entries)
        valid = sum(1 for entry in self._entries.values() if self._is_fresh(entry, now))
        return ClientCacheStats(
            total_entries=total,
            valid_entries=valid,
            expired_entries=total - valid,
            approx_byte_size=len(self._serialize().encode("utf-8")),
            max_cache_size=self.max_size,
            cache_duration=self.ttl,
        )

    def __len__(self) -> int:
        return len(self._entries)
