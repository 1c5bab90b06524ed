# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import logging
from copy import deepcopy
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Union,
    cast,
)

import deprecation

from astradocs import __version__
from astradocs.commands import Commands, make_command
from astradocs.constants import (
    TNEW,
    DocumentType,
    FilterType,
    ProjectionType,
    SortType,
    T,
    normalize_optional_projection,
)
from astradocs.exceptions import CursorIsStartedException
from astradocs.settings.defaults import DEFAULT_CURSOR_BATCH_SIZE

if TYPE_CHECKING:
    from astradocs.collection import Collection


logger = logging.getLogger(__name__)

CURSOR_METHOD_DEPRECATION_NOTICE = (
    "Iterate over the cursor with `async for` (or use `to_list`) instead."
)


class CursorState(Enum):
    """
    This enum expresses the possible states for a `FindCursor`.

    Values:
        UNINITIALIZED: no page has been fetched yet. Settings can be changed.
        INITIALIZED: at least one page was fetched. Settings are frozen.
        CLOSED: exhausted, explicitly closed or failed. Won't return
            more documents (until a `rewind()`).
    """

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


class _PageStateExhausted:
    """Marks a cursor whose last fetched page was the last one."""

    def __repr__(self) -> str:
        return "EXHAUSTED"


class _EndOfCursor:
    """
    What the internal fetch machinery returns when there are no more
    documents, so that it is never mistaken for a mapped value (even None).
    """

    def __repr__(self) -> str:
        return "END_OF_CURSOR"


EXHAUSTED = _PageStateExhausted()
_END = _EndOfCursor()

PageStateType = Union[str, _PageStateExhausted, None]


def _composite(
    first: Callable[[Any], Any] | None, second: Callable[[Any], Any]
) -> Callable[[Any], Any]:
    if first is None:
        return second
    _first = first

    def _composite_mapper(document: Any) -> Any:
        return second(_first(document))

    return _composite_mapper


class FindCursor(Generic[T]):
    """
    A lazy, resumable cursor over the documents matching a `find`.

    Pages of results are fetched from the API only as the cursor is
    consumed, and kept in a local buffer. The cursor can be consumed with
    `async for`, `next()`, `try_next()`, `to_list()`.

    The search settings (filter, sort, projection, limit, ...) can be set
    with the corresponding methods, which modify the cursor in place and
    return it for chaining, as long as the cursor has not fetched anything
    yet. A `rewind()` brings the cursor back to this pristine state.

    A mapping function, set through `map`, is applied to each document
    as it is yielded (not when it is buffered). Multiple `map` calls
    compose.

    Any error while fetching or mapping closes the cursor, then propagates.

    Example:
        >>> cursor = collection.find({"tag": "x"}).sort({"n": 1}).limit(30)
        >>> async for doc in cursor.map(lambda doc: doc["n"]):
        ...     print(doc)
    """

    _state: CursorState
    _buffer: list[DocumentType]
    _next_page_state: PageStateType
    _num_returned: int
    _consumed: int
    _iteration: int

    def __init__(
        self,
        *,
        collection: Collection,
        filter: FilterType | None = None,
        sort: SortType | None = None,
        projection: ProjectionType | None = None,
        limit: int | None = None,
        skip: int | None = None,
        batch_size: int | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self._collection = collection
        self._filter = deepcopy(filter)
        self._sort = deepcopy(sort)
        self._projection = projection
        self._limit = limit
        self._skip = skip
        self._batch_size = batch_size
        self._include_similarity = include_similarity
        self._timeout_ms = timeout_ms
        self._mapper: Callable[[Any], Any] | None = None
        self._state = CursorState.UNINITIALIZED
        # bumped by each rewind, so that stale iterators cannot close the cursor
        self._iteration = 0
        self._reset_progress()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self._collection.name}", '
            f"{self._state.value}, "
            f"consumed so far: {self._consumed})"
        )

    def _reset_progress(self) -> None:
        self._buffer = []
        self._next_page_state = None
        self._num_returned = 0
        self._consumed = 0

    def _ensure_uninitialized(self) -> None:
        if self._state != CursorState.UNINITIALIZED:
            raise CursorIsStartedException(cursor_state=self._state.value)

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def closed(self) -> bool:
        """Whether the cursor is closed (exhausted, closed or failed)."""
        return self._state == CursorState.CLOSED

    @property
    def namespace(self) -> str:
        """The keyspace of the collection this cursor reads from."""
        return self._collection.namespace

    @property
    def collection(self) -> Collection:
        return self._collection

    @property
    def consumed(self) -> int:
        """The number of documents yielded so far."""
        return self._consumed

    @property
    def buffered_count(self) -> int:
        """
        The number of documents currently in the local buffer.
        Reading this property never triggers API calls.
        """
        return len(self._buffer)

    def filter(self, filter: FilterType | None) -> FindCursor[T]:
        """Set a new filter on the (not yet started) cursor."""
        self._ensure_uninitialized()
        self._filter = deepcopy(filter)
        return self

    def sort(self, sort: SortType | None) -> FindCursor[T]:
        """Set a new sort on the (not yet started) cursor."""
        self._ensure_uninitialized()
        self._sort = deepcopy(sort)
        return self

    def limit(self, limit: int | None) -> FindCursor[T]:
        """
        Set the maximum number of documents the cursor will return
        (zero or None mean no limit).
        """
        self._ensure_uninitialized()
        self._limit = limit
        return self

    def skip(self, skip: int | None) -> FindCursor[T]:
        """Set how many matching documents to skip (requires a sort)."""
        self._ensure_uninitialized()
        self._skip = skip
        return self

    def project(self, projection: ProjectionType | None) -> FindCursor[T]:
        """
        Set a projection on the (not yet started) cursor. The projection
        is applied by the API, hence before any mapping.
        """
        self._ensure_uninitialized()
        self._projection = projection
        return self

    def batch_size(self, batch_size: int | None) -> FindCursor[T]:
        """Set the maximum number of documents requested per page."""
        self._ensure_uninitialized()
        self._batch_size = batch_size
        return self

    def include_similarity(self, include_similarity: bool | None) -> FindCursor[T]:
        """
        Ask the API to return a `$similarity` field in each document
        (meaningful for vector searches only).
        """
        self._ensure_uninitialized()
        self._include_similarity = include_similarity
        return self

    def map(self, mapper: Callable[[T], TNEW]) -> FindCursor[TNEW]:
        """
        Set a mapping function to transform the documents as they are
        yielded. If a mapping is already set, the new function is applied
        to its result: `cursor.map(f).map(g)` yields `g(f(document))`.

        A mapping may return None: it is yielded as any other value.

        Args:
            mapper: a function transforming the cursor's items.

        Returns:
            this same cursor (typed according to the new mapping).
        """
        self._ensure_uninitialized()
        self._mapper = _composite(self._mapper, mapper)
        return cast(FindCursor[TNEW], self)

    def clone(self) -> FindCursor[DocumentType]:
        """
        Create a new, uninitialized cursor with the same search settings as
        this one. Mapping functions are not carried over to the clone.
        """
        return FindCursor(
            collection=self._collection,
            filter=self._filter,
            sort=self._sort,
            projection=self._projection,
            limit=self._limit,
            skip=self._skip,
            batch_size=self._batch_size,
            include_similarity=self._include_similarity,
            timeout_ms=self._timeout_ms,
        )

    def read_buffered_documents(self, max: int | None = None) -> list[DocumentType]:
        """
        Take up to `max` documents (all of them if not specified) out of the
        local buffer, without mapping and without triggering API calls.
        The documents returned are not going to be yielded by the cursor.
        """
        _max = max if max is not None else len(self._buffer)
        if _max < 0:
            raise ValueError("A negative amount of documents was requested.")
        returned, remaining = self._buffer[:_max], self._buffer[_max:]
        self._buffer = remaining
        return returned

    def rewind(self) -> None:
        """
        Bring the cursor back to its uninitialized state, keeping all settings
        (mapping included) but discarding buffer, page state and counts.
        On an uninitialized cursor this does nothing.
        """
        if self._state == CursorState.UNINITIALIZED:
            return
        self._state = CursorState.UNINITIALIZED
        self._iteration += 1
        self._reset_progress()

    def close(self) -> None:
        """
        Close the cursor, regardless of its state. Unconsumed buffered
        documents are discarded.
        """
        self._state = CursorState.CLOSED
        self._buffer = []

    async def _get_more(self) -> None:
        self._state = CursorState.INITIALIZED
        batch_size = self._batch_size or DEFAULT_CURSOR_BATCH_SIZE
        query_limit: int
        if self._limit and self._num_returned + batch_size > self._limit:
            query_limit = self._limit - self._num_returned
        else:
            query_limit = batch_size
        if query_limit <= 0:
            self._next_page_state = EXHAUSTED
            self._buffer = []
            return

        is_first_page = self._next_page_state is None
        paging_state = (
            self._next_page_state if isinstance(self._next_page_state, str) else None
        )
        command = make_command(
            Commands.FIND,
            filter=self._filter or {},
            sort=self._sort or None,
            projection=normalize_optional_projection(self._projection),
            options={
                "limit": query_limit,
                "skip": self._skip if is_first_page and self._skip else None,
                "pagingState": paging_state,
                "includeSimilarity": True if self._include_similarity else None,
            },
        )
        logger.info(f"find on '{self._collection.name}'")
        response = await self._collection._api_commander.request(
            command,
            timeout_ms=self._timeout_ms,
        )
        logger.info(f"finished find on '{self._collection.name}'")
        response_data = response.data or {}
        next_page_state = response_data.get("nextPageState")
        self._next_page_state = next_page_state if next_page_state else EXHAUSTED
        self._buffer = list(response_data.get("documents") or [])
        self._num_returned += len(self._buffer)

    async def _next(self, raw: bool, block: bool) -> Any:
        """
        Core of document retrieval. Returns the next document (mapped unless
        `raw`) or `_END`. If not `block`, at most one page is fetched.
        """
        if self._state == CursorState.CLOSED:
            return _END
        while True:
            if self._buffer:
                document = self._buffer.pop(0)
                self._consumed += 1
                if raw or self._mapper is None:
                    return document
                try:
                    return self._mapper(document)
                except Exception:
                    self.close()
                    raise
            if self._next_page_state is EXHAUSTED:
                self.close()
                return _END
            try:
                await self._get_more()
            except Exception:
                self.close()
                raise
            if not self._buffer and not block:
                return _END

    async def next(self) -> T | None:
        """
        Return the next document, fetching new pages as needed.
        Once the cursor is exhausted, None is returned (at every call).
        """
        document = await self._next(raw=False, block=True)
        if document is _END:
            return None
        return cast(T, document)

    async def try_next(self) -> T | None:
        """
        Return the next document if one is buffered, or if a single page
        fetch yields one. Otherwise return None, without insisting further
        (the cursor may still have documents to return later).
        """
        document = await self._next(raw=False, block=False)
        if document is _END:
            return None
        return cast(T, document)

    async def has_next(self) -> bool:
        """
        Whether the cursor will yield at least one more document. Pages are
        fetched if needed, but no document is consumed.
        """
        if self._buffer:
            return True
        document = await self._next(raw=True, block=True)
        if document is _END:
            return False
        self._buffer.insert(0, document)
        self._consumed -= 1
        return True

    def __aiter__(self) -> _FindCursorIterator[T]:
        return _FindCursorIterator(self)

    async def to_list(self) -> list[T]:
        """Consume the cursor entirely and return all its items in a list."""
        return [document async for document in self]

    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="0.2.0",
        removed_in="1.0.0",
        current_version=__version__,
        details=CURSOR_METHOD_DEPRECATION_NOTICE,
    )
    async def for_each(self, consumer: Callable[[T], bool | None]) -> None:
        """
        Call `consumer` on each item of the cursor, stopping early if it
        returns False.
        """
        iterator = self.__aiter__()
        try:
            async for document in iterator:
                if consumer(document) is False:
                    break
        finally:
            await iterator.aclose()

    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="0.2.0",
        removed_in="1.0.0",
        current_version=__version__,
        details=CURSOR_METHOD_DEPRECATION_NOTICE,
    )
    async def count(self) -> int:
        """Consume the cursor and return how many items it yielded."""
        item_count = 0
        async for _ in self:
            item_count += 1
        return item_count


class _FindCursorIterator(Generic[T]):
    """
    The object driving an `async for` over a `FindCursor`.

    Leaving the loop early (`break`, an exception in the loop body) closes
    the cursor as soon as the iterator is discarded or `aclose()`-d. An
    iterator created before a `rewind()` of its cursor is stale: it yields
    nothing more and never closes the cursor.
    """

    def __init__(self, cursor: FindCursor[T]) -> None:
        self._cursor = cursor
        self._iteration = cursor._iteration
        self._started = False
        self._finished = False

    def __aiter__(self) -> _FindCursorIterator[T]:
        return self

    async def __anext__(self) -> T:
        if self._finished or self._iteration != self._cursor._iteration:
            self._finished = True
            raise StopAsyncIteration
        self._started = True
        try:
            document = await self._cursor._next(raw=False, block=True)
        except BaseException:
            # the cursor is already closed by the failed fetch or mapping
            self._finished = True
            raise
        if document is _END:
            self._finished = True
            raise StopAsyncIteration
        return cast(T, document)

    def _finalize(self) -> None:
        if self._finished:
            return
        self._finished = True
        if self._started and self._iteration == self._cursor._iteration:
            self._cursor.close()

    async def aclose(self) -> None:
        self._finalize()

    def __del__(self) -> None:
        self._finalize()
