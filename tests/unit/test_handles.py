"""
Unit tests for query handles and paging.
"""

from unittest.mock import MagicMock

import pytest

from mdb_ops import Page, Sort
from mdb_ops.exceptions import MongoOpsError, NonUniqueResultError, NoResultError
from mock_motor import MockCursor
from sample_entities import Person


def people(count):
    return [{"_id": index, "name": f"p{index}"} for index in range(count)]


@pytest.mark.unit
class TestPage:
    """Test page arithmetic."""

    def test_navigation(self):
        """Test next, previous, first and at."""
        page = Page(2, 10)
        assert page.next() == Page(3, 10)
        assert page.previous() == Page(1, 10)
        assert page.first() == Page(0, 10)
        assert page.at(7) == Page(7, 10)
        assert Page(0, 10).previous() == Page(0, 10)
        assert Page.of_size(5) == Page(0, 5)

    @pytest.mark.parametrize("index, size", [(-1, 10), (0, 0)])
    def test_invalid(self, index, size):
        """Test negative indexes and empty pages are rejected."""
        with pytest.raises(ValueError):
            Page(index, size)


@pytest.mark.unit
@pytest.mark.asyncio
class TestQueryHandle:
    """Test lazy queries."""

    async def test_nothing_runs_until_terminal_operation(self, operations, people_collection):
        """Test building a handle makes no store call."""
        operations.find(Person, "age > ?1", 3).page(0, 10)
        people_collection.find.assert_not_called()
        people_collection.count_documents.assert_not_called()

    async def test_page_sets_skip_and_limit(self, operations, people_collection):
        """Test paging is translated to skip and limit."""
        handle = operations.find(Person, sort=Sort.descending("age")).page(2, 25)
        await handle.list()
        people_collection.find.assert_called_once_with(
            {}, sort=[("age", -1)], skip=50, limit=25
        )

    async def test_sort_document(self, operations, people_collection):
        """Test a raw sort document is passed on in order with stored names."""
        await operations.list(Person, None, sort={"birth_year": -1, "name": 1})
        people_collection.find.assert_called_once_with({}, sort=[("birth", -1), ("name", 1)])

    async def test_next_and_previous_page(self, operations, people_collection):
        """Test moving between pages."""
        handle = operations.find_all(Person).page(Page(0, 10))
        await handle.next_page().list()
        assert people_collection.find.call_args.kwargs == {"skip": 10, "limit": 10}
        await handle.previous_page().list()
        assert people_collection.find.call_args.kwargs == {"skip": 0, "limit": 10}

    async def test_paging_requires_a_page(self, operations):
        """Test page navigation before page() is an error."""
        handle = operations.find_all(Person)
        with pytest.raises(MongoOpsError, match="page"):
            handle.next_page()
        with pytest.raises(MongoOpsError):
            await handle.page_count()

    async def test_page_by_index_requires_size(self, operations):
        """Test an index without a size is rejected."""
        with pytest.raises(ValueError):
            operations.find_all(Person).page(1)

    async def test_page_count_and_navigation(self, operations, people_collection):
        """Test page count, has_next_page and last_page."""
        people_collection.count_documents.return_value = 21
        handle = operations.find(Person, "status", "active").page(0, 10)

        assert await handle.page_count() == 3
        assert await handle.has_next_page() is True
        assert handle.has_previous_page() is False

        await handle.last_page()
        assert handle.current_page == Page(2, 10)
        assert await handle.has_next_page() is False
        assert handle.has_previous_page() is True

        handle.first_page()
        assert handle.current_page == Page(0, 10)

    async def test_empty_result_has_one_page(self, operations, people_collection):
        """Test an empty result still has one page."""
        handle = operations.find_all(Person).page(0, 10)
        assert await handle.page_count() == 1

    async def test_count_is_cached(self, operations, people_collection):
        """Test the count is queried once per handle."""
        people_collection.count_documents.return_value = 4
        handle = operations.find(Person, "age > ?1", 30)
        assert await handle.count() == 4
        assert await handle.count() == 4
        people_collection.count_documents.assert_awaited_once_with({"age": {"$gt": 30}})

    async def test_first_result(self, operations, people_collection):
        """Test the first result is decoded, or None."""
        people_collection.find = MagicMock(return_value=MockCursor(people(3)))
        person = await operations.find_all(Person).first_result()
        assert person.name == "p0"
        assert people_collection.find.call_args.kwargs == {"limit": 1}

        people_collection.find = MagicMock(return_value=MockCursor([]))
        assert await operations.find_all(Person).first_result() is None

    async def test_first_result_respects_page(self, operations, people_collection):
        """Test the first result of a page skips the previous pages."""
        await operations.find_all(Person).page(3, 5).first_result()
        assert people_collection.find.call_args.kwargs == {"skip": 15, "limit": 1}

    async def test_single_result(self, operations, people_collection):
        """Test single_result returns the only match."""
        people_collection.find = MagicMock(return_value=MockCursor(people(1)))
        assert (await operations.find(Person, "name", "p0").single_result()).id == 0

    async def test_single_result_without_match(self, operations):
        """Test single_result raises when nothing matches."""
        with pytest.raises(NoResultError):
            await operations.find(Person, "name", "nobody").single_result()

    async def test_single_result_with_several_matches(self, operations, people_collection):
        """Test single_result raises when more than one document matches."""
        people_collection.find = MagicMock(return_value=MockCursor(people(2)))
        with pytest.raises(NonUniqueResultError):
            await operations.find_all(Person).single_result()

    async def test_stream(self, operations, people_collection):
        """Test streaming a page."""
        people_collection.find = MagicMock(return_value=MockCursor(people(2)))
        names = [person.name async for person in operations.find_all(Person).page(0, 2).stream()]
        assert names == ["p0", "p1"]
