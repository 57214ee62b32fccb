import logging
import typing

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from polymorphic_framework.criteria import AnyOf, Criteria
from polymorphic_framework.entity import Entity
from polymorphic_framework.repository import EntityType, Repository
from polymorphic_framework.storages.sqlalchemy.registry import SaRegistry

logger = logging.getLogger(__name__)


class SqlAlchemyRepo(Repository[EntityType]):
    registry: SaRegistry = None

    def __init__(
        self,
        session_factory: async_sessionmaker,
        entity: typing.Optional[typing.Type[Entity]] = None,
        registry: typing.Optional[SaRegistry] = None,
    ) -> None:
        self._session_factory = session_factory
        if entity is not None:
            self.entity = entity
        if registry is not None:
            self.registry = registry
        assert self.entity is not None, "Must bind repository to an entity!"
        assert isinstance(self.registry, SaRegistry), "Must set registry to an instance of SaRegistry!"

    @classmethod
    def prepare(cls, entity_cls: typing.Type[Entity]) -> None:
        if cls.registry is not None:
            cls.registry.table_for(entity_cls)

    @property
    def table(self) -> Table:
        return self.registry.table_for(self.entity)

    @property
    def identity(self) -> str:
        return self.registry.tree_for(self.entity).identity.name

    def create(self, **values: typing.Any) -> EntityType:
        columns = self.table.c
        return self.entity(**{name: value for name, value in values.items() if name in columns})

    async def find(self, criteria: typing.Optional[Criteria] = None) -> typing.List[EntityType]:
        statement = select(self.table).where(*self._where(criteria))
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._to_entity(row) for row in result.mappings()]

    async def find_one(self, criteria: typing.Optional[Criteria] = None) -> typing.Optional[EntityType]:
        statement = select(self.table).where(*self._where(criteria)).limit(1)
        async with self._session_factory() as session:
            row = (await session.execute(statement)).mappings().first()
        if row is None:
            return None
        return self._to_entity(row)

    async def save(
        self, entity_or_entities: typing.Union[EntityType, typing.List[EntityType]], reload: bool = False
    ) -> typing.Union[EntityType, typing.List[EntityType]]:
        entities = entity_or_entities if isinstance(entity_or_entities, list) else [entity_or_entities]
        async with self._session_factory.begin() as session:
            for entity in entities:
                await self._save_one(session, entity)
                if reload:
                    await self._reload(session, entity)
        return entity_or_entities

    async def delete(self, criteria: Criteria) -> None:
        async with self._session_factory.begin() as session:
            result = await session.execute(delete(self.table).where(*self._where(criteria)))
        logger.debug("Deleted %s rows from %s", result.rowcount, self.table.name)

    async def _save_one(self, session: AsyncSession, entity: EntityType) -> None:
        values = {column.name: getattr(entity, column.name) for column in self.table.columns}
        identity = values[self.identity]

        if identity is None:
            del values[self.identity]
        else:
            result = await session.execute(
                update(self.table).where(self.table.c[self.identity] == identity).values(**values)
            )
            if result.rowcount:
                return

        result = await session.execute(insert(self.table).values(**values))
        setattr(entity, self.identity, result.inserted_primary_key[0])

    async def _reload(self, session: AsyncSession, entity: EntityType) -> None:
        statement = select(self.table).where(self.table.c[self.identity] == getattr(entity, self.identity))
        row = (await session.execute(statement)).mappings().one()
        for name, value in row.items():
            setattr(entity, name, value)

    def _where(self, criteria: typing.Optional[Criteria]) -> list:
        clauses = []
        for name, expected in (criteria or {}).items():
            column = self.table.c[name]
            if isinstance(expected, AnyOf):
                clauses.append(column.in_(list(expected.values)))
            else:
                clauses.append(column == expected)
        return clauses

    def _to_entity(self, row: RowMapping) -> EntityType:
        return self.entity(**dict(row))
