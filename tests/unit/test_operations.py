"""
Unit tests for MongoOperations.

Tests instance writes, write plans, type-level queries and updates against
mock collections.
"""

from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo import InsertOne, ReplaceOne
from pymongo.errors import BulkWriteError, DuplicateKeyError

from mdb_ops import MongoOperations, Parameters, Sort
from mdb_ops.core import Insert, ReplaceOrInsert, build_write_plan, materialize, to_write_models
from mdb_ops.exceptions import BindingError, EntityMappingError
from mdb_ops.mapping import DataclassCodec
from mock_motor import MockCursor
from sample_entities import Note, Person, Product


@pytest.mark.unit
class TestWritePlan:
    """Test building ordered write plans."""

    def test_plan_follows_identity(self):
        """Test entities without identity are inserted, others replaced with upsert."""
        codec = DataclassCodec(Person)
        e1 = Person(name="Ada")
        e2 = Person(id=5, name="Grace")

        plan = build_write_plan([e1, e2], lambda entity: codec)

        assert plan == [Insert(e1), ReplaceOrInsert({"_id": 5}, e2, upsert=True)]

    def test_building_a_plan_does_not_assign_identity(self):
        """Test planning has no side effects on entities."""
        codec = DataclassCodec(Person)
        e1 = Person(name="Ada")
        build_write_plan([e1], lambda entity: codec)
        assert e1.id is None

    def test_write_models_keep_order(self):
        """Test plan elements become bulk requests in the same order."""
        codec = DataclassCodec(Person)
        e1 = Person(name="Ada")
        e2 = Person(id=5, name="Grace")
        plan = build_write_plan([e2, e1], lambda entity: codec)

        requests = to_write_models(plan, lambda entity: codec)

        assert requests[0] == ReplaceOne({"_id": 5}, codec.encode(e2), upsert=True)
        assert isinstance(requests[1], InsertOne)
        assert requests[1] == InsertOne({"_id": e1.id, **codec.encode(e1)})


@pytest.mark.unit
@pytest.mark.asyncio
class TestMaterialize:
    """Test consuming entity collections."""

    async def test_generator_is_consumed_once(self):
        """Test a generator is read exactly once."""
        produced = []

        def generate():
            for index in range(3):
                produced.append(index)
                yield Note(text=str(index))

        notes = await materialize(generate())
        assert [note.text for note in notes] == ["0", "1", "2"]
        assert produced == [0, 1, 2]

    async def test_async_generator(self):
        """Test an async generator is accepted."""

        async def generate():
            yield Note(text="a")
            yield Note(text="b")

        assert [note.text for note in await materialize(generate())] == ["a", "b"]

    async def test_single_entity_is_rejected(self):
        """Test passing an entity instead of a collection raises TypeError."""
        with pytest.raises(TypeError, match="single Person"):
            await materialize(Person(name="Ada"))
        with pytest.raises(TypeError, match="single Product"):
            await materialize(Product(title="Lamp"))


@pytest.mark.unit
@pytest.mark.asyncio
class TestPersist:
    """Test inserting entities."""

    async def test_persist_one(self, operations, people_collection):
        """Test one entity is inserted with a generated identity."""
        person = Person(name="Ada", birth_year=1815)

        await operations.persist(person)

        people_collection.insert_one.assert_awaited_once()
        document = people_collection.insert_one.call_args.args[0]
        assert isinstance(person.id, ObjectId)
        assert document == {
            "_id": person.id,
            "name": "Ada",
            "age": 0,
            "status": "active",
            "birth": 1815,
        }

    async def test_persist_many(self, operations, people_collection):
        """Test several entities are inserted with one insert_many."""
        await operations.persist(Person(name="Ada"), Person(id=2, name="Grace"))

        people_collection.insert_many.assert_awaited_once()
        documents = people_collection.insert_many.call_args.args[0]
        assert [document["name"] for document in documents] == ["Ada", "Grace"]
        assert documents[1]["_id"] == 2

    async def test_persist_all_empty_is_noop(self, operations, people_collection):
        """Test an empty batch makes no store call."""
        await operations.persist_all([])
        await operations.persist_all(iter(()))
        people_collection.insert_many.assert_not_called()

    async def test_persist_pydantic_entity(self, operations, products_collection):
        """Test pydantic entities go to their declared database."""
        await operations.persist(Product(id=1, title="Lamp", price=9.5))
        products_collection.insert_one.assert_awaited_once_with(
            {"_id": 1, "title": "Lamp", "price": 9.5, "tags": []}
        )

    async def test_store_errors_propagate(self, operations, people_collection):
        """Test store errors reach the caller unchanged."""
        error = DuplicateKeyError("E11000 duplicate key")
        people_collection.insert_one.side_effect = error

        with pytest.raises(DuplicateKeyError) as exc_info:
            await operations.persist(Person(id=1, name="Ada"))
        assert exc_info.value is error

    async def test_mixed_collections_are_rejected(self, operations, people_collection, mock_mongo_client):
        """Test a batch spanning two collections fails before any store call."""
        with pytest.raises(EntityMappingError, match="single collection"):
            await operations.persist_all([Person(name="Ada"), Note(text="x")])
        people_collection.insert_many.assert_not_called()
        mock_mongo_client["test_db"]["Note"].insert_many.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpdate:
    """Test replacing entities."""

    async def test_update_one(self, operations, people_collection):
        """Test the stored document is replaced by identity."""
        person = Person(id=5, name="Ada")

        await operations.update(person)

        people_collection.replace_one.assert_awaited_once_with(
            {"_id": 5}, DataclassCodec(Person).encode(person)
        )

    async def test_update_many_in_order(self, operations, people_collection):
        """Test each entity is replaced with its own request, in order."""
        await operations.update_all([Person(id=1, name="a"), Person(id=2, name="b")])

        filters = [call.args[0] for call in people_collection.replace_one.await_args_list]
        assert filters == [{"_id": 1}, {"_id": 2}]

    async def test_update_without_identity_logs_warning(self, operations, people_collection, caplog):
        """Test updating an entity without identity warns and matches nothing."""
        with caplog.at_level("WARNING", logger="mdb_ops.core.operations"):
            await operations.update(Person(name="Ada"))

        assert "without identity" in caplog.text
        assert people_collection.replace_one.call_args.args[0] == {"_id": None}


@pytest.mark.unit
@pytest.mark.asyncio
class TestPersistOrUpdate:
    """Test inserting or upserting entities."""

    async def test_single_without_identity_is_inserted(self, operations, people_collection):
        """Test an entity without identity is inserted."""
        person = Person(name="Ada")
        await operations.persist_or_update(person)
        people_collection.insert_one.assert_awaited_once()
        assert person.id is not None

    async def test_single_with_identity_is_upserted(self, operations, people_collection):
        """Test an entity with identity is replaced with upsert."""
        person = Person(id=5, name="Ada")
        await operations.persist_or_update(person)
        people_collection.replace_one.assert_awaited_once_with(
            {"_id": 5}, DataclassCodec(Person).encode(person), upsert=True
        )

    async def test_batch_is_one_ordered_bulk_write(self, operations, people_collection):
        """Test a batch is submitted as one ordered bulk write following the plan."""
        e1 = Person(name="Ada")
        e2 = Person(id=5, name="Grace")

        await operations.persist_or_update_all([e1, e2])

        people_collection.bulk_write.assert_awaited_once()
        requests = people_collection.bulk_write.call_args.args[0]
        assert people_collection.bulk_write.call_args.kwargs == {"ordered": True}
        codec = DataclassCodec(Person)
        assert requests == [
            InsertOne({"_id": e1.id, **codec.encode(e1)}),
            ReplaceOne({"_id": 5}, codec.encode(e2), upsert=True),
        ]
        people_collection.insert_one.assert_not_called()
        people_collection.replace_one.assert_not_called()

    async def test_varargs_batch(self, operations, people_collection):
        """Test several positional entities form one batch."""
        await operations.persist_or_update(Person(id=1, name="a"), Person(id=2, name="b"))
        assert len(people_collection.bulk_write.call_args.args[0]) == 2

    async def test_bulk_write_error_propagates(self, operations, people_collection):
        """Test the first failure stops the batch and is raised unmodified."""
        error = BulkWriteError(
            {"writeErrors": [{"index": 1, "code": 11000, "errmsg": "duplicate key"}], "nInserted": 1}
        )
        people_collection.bulk_write.side_effect = error

        with pytest.raises(BulkWriteError) as exc_info:
            await operations.persist_or_update_all(
                [Person(name="a"), Person(name="b"), Person(id=3, name="c")]
            )
        assert exc_info.value is error
        assert exc_info.value.details["writeErrors"][0]["index"] == 1

    async def test_async_iterable_batch(self, operations, people_collection):
        """Test an async generator is consumed once into one bulk write."""

        async def generate():
            yield Person(id=1, name="a")
            yield Person(id=2, name="b")

        await operations.persist_or_update_all(generate())
        people_collection.bulk_write.assert_awaited_once()

    async def test_empty_batch_is_noop(self, operations, people_collection):
        """Test an empty batch makes no store call."""
        await operations.persist_or_update_all([])
        people_collection.bulk_write.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
class TestDelete:
    """Test deleting entities."""

    async def test_delete_entity(self, operations, people_collection):
        """Test an entity is deleted by identity."""
        await operations.delete(Person(id=5, name="Ada"))
        people_collection.delete_one.assert_awaited_once_with({"_id": 5})

    async def test_delete_many_without_match_returns_zero(self, operations, people_collection):
        """Test deleting with no matching document returns 0 without error."""
        people_collection.delete_many.return_value = MagicMock(deleted_count=0)

        assert await operations.delete_many(Person, {"_id": 5}) == 0
        people_collection.delete_many.assert_awaited_once_with({"_id": 5})

    async def test_delete_many_with_object_query(self, operations, people_collection):
        """Test attribute names are mapped in a delete filter."""
        assert await operations.delete_many(Person, "id = ?1", 5) == 2
        people_collection.delete_many.assert_awaited_once_with({"_id": 5})

    async def test_delete_all(self, operations, people_collection):
        """Test every document is deleted."""
        assert await operations.delete_all(Person) == 2
        people_collection.delete_many.assert_awaited_once_with({})

    async def test_delete_by_id(self, operations, people_collection):
        """Test delete_by_id reports whether a document was deleted."""
        assert await operations.delete_by_id(Person, 5) is True
        people_collection.delete_one.return_value = MagicMock(deleted_count=0)
        assert await operations.delete_by_id(Person, 6) is False


@pytest.mark.unit
@pytest.mark.asyncio
class TestQueries:
    """Test type-level queries."""

    async def test_find_by_id(self, operations, people_collection):
        """Test a document is decoded into an entity."""
        people_collection.find_one.return_value = {"_id": 5, "name": "Ada", "birth": 1815}

        person = await operations.find_by_id(Person, 5)

        people_collection.find_one.assert_awaited_once_with({"_id": 5})
        assert person == Person(id=5, name="Ada", birth_year=1815)

    async def test_find_by_id_missing(self, operations):
        """Test a missing document gives None."""
        assert await operations.find_by_id(Person, 404) is None

    async def test_list_with_named_parameters_and_sort(self, operations, people_collection):
        """Test filter, sort and decoding of a list query."""
        people_collection.find = MagicMock(
            return_value=MockCursor([{"_id": 1, "name": "Ada"}, {"_id": 2, "name": "Alan"}])
        )

        people = await operations.list(
            Person,
            "name like :prefix and age >= :age",
            Parameters.with_("prefix", "^A").and_("age", 18),
            sort=Sort.by("name").and_("birth_year"),
        )

        assert [person.name for person in people] == ["Ada", "Alan"]
        people_collection.find.assert_called_once_with(
            {"name": {"$regex": "^A"}, "age": {"$gte": 18}},
            sort=[("name", 1), ("birth", 1)],
        )

    async def test_list_all(self, operations, people_collection):
        """Test listing without a filter."""
        await operations.list_all(Person)
        people_collection.find.assert_called_once_with({})

    async def test_list_with_mapping_parameters(self, operations, people_collection):
        """Test a plain mapping supplies named values."""
        await operations.list(Person, "{'status': :status}", {"status": "active"})
        people_collection.find.assert_called_once_with({"status": "active"})

    async def test_stream(self, operations, people_collection):
        """Test streaming decodes documents as they arrive."""
        people_collection.find = MagicMock(
            return_value=MockCursor([{"_id": 1, "name": "a"}, {"_id": 2, "name": "b"}])
        )
        names = [person.name async for person in operations.stream(Person, "status", "active")]
        assert names == ["a", "b"]
        people_collection.find.assert_called_once_with({"status": "active"})

    async def test_count(self, operations, people_collection):
        """Test counting with a filter."""
        people_collection.count_documents.return_value = 3
        assert await operations.count(Person, "age > ?1", 30) == 3
        people_collection.count_documents.assert_awaited_once_with({"age": {"$gt": 30}})

    async def test_count_all(self, operations, people_collection):
        """Test counting without a filter."""
        await operations.count(Person)
        people_collection.count_documents.assert_awaited_once_with({})

    async def test_binding_errors_are_raised_before_store_access(self, operations, people_collection):
        """Test a missing parameter fails without touching the store."""
        with pytest.raises(BindingError):
            await operations.count(Person, "name = :n", {})
        people_collection.count_documents.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
class TestUpdateFields:
    """Test multi-document updates."""

    async def test_update_where(self, operations, people_collection):
        """Test an object-query update applied to a filter."""
        modified = await operations.update_fields(Person, "status = ?1", "archived").where(
            "age > ?1", 99
        )

        assert modified == 2
        people_collection.update_many.assert_awaited_once_with(
            {"age": {"$gt": 99}}, {"$set": {"status": "archived"}}
        )

    async def test_update_all_with_operator_document(self, operations, people_collection):
        """Test an operator document is used as is for every document."""
        handle = operations.update_fields(Person, {"$inc": {"age": 1}})
        await handle.all()
        people_collection.update_many.assert_awaited_once_with({}, {"$inc": {"age": 1}})

    async def test_update_mapping_is_normalized(self, operations, people_collection):
        """Test a plain mapping update is wrapped in $set."""
        handle = operations.update_fields(Person, {"status": "x"})
        assert handle.update == {"$set": {"status": "x"}}
        await handle.where({"_id": 1})
        people_collection.update_many.assert_awaited_once_with({"_id": 1}, {"$set": {"status": "x"}})

    async def test_update_with_named_parameters(self, operations, people_collection):
        """Test named values in update and filter."""
        await operations.update_fields(Person, "birth_year = :year", {"year": 1815}).where(
            "name = :name", Parameters.with_("name", "Ada")
        )
        people_collection.update_many.assert_awaited_once_with(
            {"name": "Ada"}, {"$set": {"birth": 1815}}
        )


@pytest.mark.unit
class TestLifecycle:
    """Test raw access and teardown."""

    def test_raw_collection_and_database(self, operations, mock_mongo_client):
        """Test raw motor objects are exposed."""
        assert operations.mongo_collection(Person) is mock_mongo_client["test_db"]["people"]
        assert operations.mongo_database(Product) is mock_mongo_client["catalog"]

    def test_close_keeps_caller_client_open(self, mock_mongo_client, ops_config):
        """Test close() clears caches and leaves a caller-provided client open."""
        ops = MongoOperations(ops_config, client=mock_mongo_client)
        ops.mongo_collection(Person)

        ops.close()
        ops.close()

        assert len(ops.resolver.database_names) == 0
        mock_mongo_client.close.assert_not_called()

    def test_clients_by_name(self, mock_mongo_client, ops_config):
        """Test named clients can be supplied up front."""
        reporting = MagicMock()
        ops = MongoOperations(ops_config, client=mock_mongo_client, clients={"reporting": reporting})
        assert ops.clients.get("reporting") is reporting
        assert ops.clients.get() is mock_mongo_client
