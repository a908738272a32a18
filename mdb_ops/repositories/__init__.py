"""
MDB_OPS Repository Pattern

Provides an abstract repository interface and a MongoDB implementation bound
to one entity type.

Usage:
    from mdb_ops.repositories import MongoRepository, Repository

    class PersonService:
        def __init__(self, people: Repository[Person]):
            self._people = people

        async def rename(self, person: Person, name: str) -> None:
            person.name = name
            await self._people.update(person)

    people = MongoRepository(ops, Person)
"""

from .base import Repository
from .mongo import MongoRepository

__all__ = [
    "Repository",
    "MongoRepository",
]
