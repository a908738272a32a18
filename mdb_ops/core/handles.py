"""
Query and update handles.

A ``QueryHandle`` holds a translated filter and sort for one collection and
runs them lazily: nothing touches the store until a terminal method
(``list``, ``stream``, ``count``, ``first_result``, ``single_result``) is
awaited. Paging is applied with ``page()`` and moved with ``next_page()``
and friends.

An ``UpdateHandle`` holds a normalized update document and applies it to
the documents matched by ``where()`` or to every document with ``all()``.
"""

import logging
import math
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from motor.motor_asyncio import AsyncIOMotorCollection

from ..exceptions import MongoOpsError, NonUniqueResultError, NoResultError
from ..mapping.entity import EntityDescriptor
from ..query import resolve_params, translate_filter

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Page:
    """A page of results: zero-based ``index`` and ``size`` documents per page."""

    index: int = 0
    size: int = 20

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Page index must be >= 0, got {self.index}")
        if self.size <= 0:
            raise ValueError(f"Page size must be > 0, got {self.size}")

    @classmethod
    def of(cls, index: int, size: int) -> "Page":
        return cls(index, size)

    @classmethod
    def of_size(cls, size: int) -> "Page":
        return cls(0, size)

    def next(self) -> "Page":
        return Page(self.index + 1, self.size)

    def previous(self) -> "Page":
        return self if self.index == 0 else Page(self.index - 1, self.size)

    def first(self) -> "Page":
        return Page(0, self.size)

    def at(self, index: int) -> "Page":
        return Page(index, self.size)


class QueryHandle(Generic[T]):
    """
    Lazy, pageable query over one collection.

    Example:
        handle = ops.find(Person, "status = ?1", "active", sort=Sort.by("name"))
        first_page = await handle.page(0, 25).list()
        if await handle.has_next_page():
            second_page = await handle.next_page().list()
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        descriptor: EntityDescriptor,
        filter: Optional[Dict[str, Any]] = None,
        sort: Optional[Dict[str, int]] = None,
    ) -> None:
        self._collection = collection
        self._descriptor = descriptor
        self._filter = filter
        self._sort = sort
        self._page: Optional[Page] = None
        self._count: Optional[int] = None

    @property
    def filter(self) -> Optional[Dict[str, Any]]:
        return self._filter

    @property
    def sort(self) -> Optional[Dict[str, int]]:
        return self._sort

    @property
    def current_page(self) -> Optional[Page]:
        return self._page

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def page(self, index: Union[int, Page], size: Optional[int] = None) -> "QueryHandle[T]":
        """
        Restrict results to one page.

        Accepts either a ``Page`` or an index and size.
        """
        if isinstance(index, Page):
            self._page = index
        else:
            if size is None:
                raise ValueError("Page size is required when paging by index")
            self._page = Page(index, size)
        return self

    def _require_page(self) -> Page:
        if self._page is None:
            raise MongoOpsError(
                "Cannot call a page related method before page() has been called"
            )
        return self._page

    def next_page(self) -> "QueryHandle[T]":
        self._page = self._require_page().next()
        return self

    def previous_page(self) -> "QueryHandle[T]":
        self._page = self._require_page().previous()
        return self

    def first_page(self) -> "QueryHandle[T]":
        self._page = self._require_page().first()
        return self

    async def last_page(self) -> "QueryHandle[T]":
        page = self._require_page()
        self._page = page.at(await self.page_count() - 1)
        return self

    async def has_next_page(self) -> bool:
        page = self._require_page()
        return page.index + 1 < await self.page_count()

    def has_previous_page(self) -> bool:
        return self._require_page().index > 0

    async def page_count(self) -> int:
        """Number of pages; an empty result still has one (empty) page."""
        page = self._require_page()
        count = await self.count()
        if count == 0:
            return 1
        return math.ceil(count / page.size)

    # ------------------------------------------------------------------
    # Terminal operations
    # ------------------------------------------------------------------

    async def count(self) -> int:
        """Count matching documents, ignoring paging. The result is cached."""
        if self._count is None:
            self._count = await self._collection.count_documents(self._filter or {})
        return self._count

    def _cursor(self, limit: Optional[int] = None):
        options: Dict[str, Any] = {}
        if self._sort:
            options["sort"] = list(self._sort.items())
        if self._page is not None:
            options["skip"] = self._page.index * self._page.size
            options["limit"] = self._page.size
        if limit is not None:
            options["limit"] = min(limit, options.get("limit", limit))
        return self._collection.find(self._filter or {}, **options)

    async def list(self) -> List[T]:
        documents = await self._cursor().to_list(length=None)
        codec = self._descriptor.codec
        return [codec.decode(document) for document in documents]

    async def stream(self) -> AsyncIterator[T]:
        """Iterate over matching entities as the cursor delivers them."""
        codec = self._descriptor.codec
        async for document in self._cursor():
            yield codec.decode(document)

    async def first_result(self) -> Optional[T]:
        """Return the first matching entity, or None."""
        documents = await self._cursor(limit=1).to_list(length=1)
        if not documents:
            return None
        return self._descriptor.codec.decode(documents[0])

    async def single_result(self) -> T:
        """
        Return the only matching entity.

        Raises:
            NoResultError: If nothing matches
            NonUniqueResultError: If more than one document matches
        """
        documents = await self._cursor(limit=2).to_list(length=2)
        collection = self._descriptor.collection_name
        if not documents:
            raise NoResultError("No entity found", context={"collection": collection})
        if len(documents) > 1:
            raise NonUniqueResultError(
                "More than one entity found", context={"collection": collection}
            )
        return self._descriptor.codec.decode(documents[0])


class UpdateHandle:
    """
    Pending update of several documents.

    Example:
        modified = await ops.update_fields(Person, "status = ?1", "archived").where(
            "last_login < ?1", cutoff
        )
    """

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        descriptor: EntityDescriptor,
        update: Dict[str, Any],
    ) -> None:
        self._collection = collection
        self._descriptor = descriptor
        self._update = update

    @property
    def update(self) -> Dict[str, Any]:
        return self._update

    async def where(self, query: Union[str, Mapping[str, Any]], *params: Any) -> int:
        """
        Apply the update to the documents matching a filter.

        Returns:
            Number of modified documents
        """
        if isinstance(query, Mapping):
            filter = dict(query)
        else:
            filter = translate_filter(query, resolve_params(params), self._descriptor)
        result = await self._collection.update_many(filter, self._update)
        logger.debug(
            f"Updated {result.modified_count} document(s) in "
            f"'{self._descriptor.collection_name}'"
        )
        return result.modified_count

    async def all(self) -> int:
        """Apply the update to every document of the collection."""
        result = await self._collection.update_many({}, self._update)
        return result.modified_count
