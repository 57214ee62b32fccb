import itertools
import typing

from polymorphic_framework.criteria import Criteria, matches
from polymorphic_framework.entity import Entity
from polymorphic_framework.entity_tree import AbstractEntityTree, build
from polymorphic_framework.repository import EntityType, Repository


class InMemoryRepo(Repository[EntityType]):
    """Keeps rows as dicts of column values. Every read builds fresh entities.

    Save options such as ``reload`` are accepted and have nothing to do here.
    """

    def __init__(self, entity: typing.Optional[typing.Type[Entity]] = None) -> None:
        if entity is not None:
            self.entity = entity
        assert self.entity is not None, "Must bind repository to an entity!"
        self._tree: AbstractEntityTree = build(self.entity)
        self._identity = self._tree.identity.name
        self._columns = [column.name for column in self._tree.columns]
        self._rows: typing.Dict[typing.Any, typing.Dict[str, typing.Any]] = {}
        self._sequence = itertools.count(1)

    @property
    def rows(self) -> typing.List[typing.Dict[str, typing.Any]]:
        return [dict(row) for row in self._rows.values()]

    def create(self, **values: typing.Any) -> EntityType:
        return self.entity(**{column: value for column, value in values.items() if column in self._columns})

    async def find(self, criteria: typing.Optional[Criteria] = None) -> typing.List[EntityType]:
        return [self.entity(**row) for row in self._rows.values() if matches(row, criteria)]

    async def find_one(self, criteria: typing.Optional[Criteria] = None) -> typing.Optional[EntityType]:
        for row in self._rows.values():
            if matches(row, criteria):
                return self.entity(**row)
        return None

    async def save(
        self, entity_or_entities: typing.Union[EntityType, typing.List[EntityType]], **options: typing.Any
    ) -> typing.Union[EntityType, typing.List[EntityType]]:
        entities = entity_or_entities if isinstance(entity_or_entities, list) else [entity_or_entities]
        for entity in entities:
            if getattr(entity, self._identity) is None:
                setattr(entity, self._identity, self._next_identity())
            row = {column: getattr(entity, column) for column in self._columns}
            self._rows[row[self._identity]] = row
        return entity_or_entities

    async def delete(self, criteria: Criteria) -> None:
        for identity in [identity for identity, row in self._rows.items() if matches(row, criteria)]:
            del self._rows[identity]

    def _next_identity(self) -> int:
        identity = next(self._sequence)
        while identity in self._rows:
            identity = next(self._sequence)
        return identity
