from __future__ import annotations

import asyncio
from typing import Callable, List, Optional

from loguru import logger

from .cache import InFlightRegistry, KeyedCache
from .errors import LocalityError
from .models import Candidate, ResultSource, SearchResultSet
from .normalizer import NormalizedQuery, QueryNormalizer
from .search import SearchStrategy

ResultsCallback = Callable[[SearchResultSet], None]
ErrorCallback = Callable[[str], None]

SEARCH_FAILED_MESSAGE = "Search is unavailable right now. Please enter the value manually."


class QueryField:
    """Debounce and stale-response state for one text input.

    Holds the pending timer, the generation of the latest dispatch and the last
    dispatched key. A response is applied only if its generation is still the
    latest one; earlier dispatches are left to finish and their results dropped.
    """

    def __init__(
        self,
        strategy: SearchStrategy,
        cache: KeyedCache[List[Candidate]],
        inflight: InFlightRegistry,
        debounce_seconds: float = 0.3,
        min_query_length: int = 1,
        normalizer: QueryNormalizer | None = None,
        on_results: ResultsCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.strategy = strategy
        self.cache = cache
        self.inflight = inflight
        self.debounce_seconds = debounce_seconds
        self.min_query_length = min_query_length
        self.normalizer = normalizer or QueryNormalizer()
        self.on_results = on_results
        self.on_error = on_error

        self.timer_handle: Optional[asyncio.Task] = None
        self.generation = 0
        self.last_dispatched_key: Optional[str] = None

        self.results = SearchResultSet()
        self.loading = False
        self.error: Optional[str] = None
        self._pending: set[asyncio.Task] = set()

    def submit(self, text: str) -> None:
        """Record a keystroke. Only the last text within one idle window is dispatched."""
        self._cancel_timer()
        query = self.normalizer.normalize(text)
        if len(query) < self.min_query_length:
            self._clear(query)
            return
        if self._already_applied(query):
            self.loading = False
            return
        self.loading = True
        self.timer_handle = asyncio.ensure_future(self._fire_after_delay(query.text))

    async def search_now(self, text: str) -> Optional[SearchResultSet]:
        """Dispatch immediately. Returns the applied result set, or None if it was superseded."""
        query = self.normalizer.normalize(text)
        self.generation += 1
        generation = self.generation
        self.last_dispatched_key = query.key
        if len(query) < self.min_query_length:
            return self._clear(query, generation)

        cache_key = self.cache_key(query)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("{field}: cache hit for {key!r}", field=self.strategy.name, key=query.key)
            return self._apply(SearchResultSet(items=list(cached), source_query=query.text, generation=generation, source=ResultSource.CACHE))

        self.loading = True
        try:
            outcome = await self.inflight.run(cache_key, lambda: self.strategy.run(query))
        except LocalityError as exc:
            if generation != self.generation:
                return None
            logger.error("{field}: search for {query!r} failed completely: {error}", field=self.strategy.name, query=query.text, error=exc)
            self.loading = False
            self.error = SEARCH_FAILED_MESSAGE
            if self.on_error:
                self.on_error(self.error)
            return None

        if generation != self.generation:
            logger.debug(
                "{field}: discarding stale response for {query!r} (generation {old} < {new})",
                field=self.strategy.name,
                query=query.text,
                old=generation,
                new=self.generation,
            )
            return None

        result = SearchResultSet(items=list(outcome.items), source_query=query.text, generation=generation, source=outcome.source)
        if outcome.cacheable:
            self.cache.set(cache_key, list(outcome.items))
        return self._apply(result)

    async def drain(self) -> None:
        """Wait for the pending timer and every dispatch it started."""
        while self.timer_handle is not None or self._pending:
            if self.timer_handle is not None and self.timer_handle.done():
                self.timer_handle = None
            waiting = [task for task in (self.timer_handle, *self._pending) if task is not None]
            await asyncio.gather(*waiting, return_exceptions=True)

    def cancel(self) -> None:
        """Drop the pending timer and invalidate anything still in flight."""
        self._cancel_timer()
        self.generation += 1
        self.loading = False

    def cache_key(self, query: NormalizedQuery) -> str:
        return f"{self.strategy.name}:{query.key}"

    async def _fire_after_delay(self, text: str) -> None:
        try:
            await asyncio.sleep(self.debounce_seconds)
        except asyncio.CancelledError:
            return
        self.timer_handle = None
        task = asyncio.ensure_future(self.search_now(text))
        self._pending.add(task)
        task.add_done_callback(self._dispatch_done)

    def _dispatch_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.opt(exception=exc).error("{field}: debounced search crashed", field=self.strategy.name)
        if self.timer_handle is None and not self._pending:
            self.loading = False

    def _already_applied(self, query: NormalizedQuery) -> bool:
        # same text as the last dispatch, already on screen, nothing newer pending
        return (
            query.key == self.last_dispatched_key
            and self.results.generation == self.generation
            and self.results.source_query.lower() == query.key
            and not self._pending
        )

    def _cancel_timer(self) -> None:
        if self.timer_handle is not None:
            self.timer_handle.cancel()
            self.timer_handle = None

    def _clear(self, query: NormalizedQuery, generation: Optional[int] = None) -> SearchResultSet:
        if generation is None:
            self.generation += 1
            generation = self.generation
        return self._apply(SearchResultSet(items=[], source_query=query.text, generation=generation, source=ResultSource.EMPTY))

    def _apply(self, result: SearchResultSet) -> SearchResultSet:
        self.results = result
        self.loading = False
        self.error = None
        if self.on_results:
            self.on_results(result)
        return result
