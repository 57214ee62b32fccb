import typing

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from polymorphic_framework import Registry, RepositoryLocator
from polymorphic_framework.storages.sqlalchemy import SqlAlchemyRepo
from polymorphic_framework.storages.sqlalchemy.registry import SaRegistry
from polymorphic_framework.tests.domain import ALL_ENTITIES


@pytest.fixture()
def sa_registry() -> SaRegistry:
    sa_registry = SaRegistry()
    for entity_cls in ALL_ENTITIES:
        sa_registry.table_for(entity_cls)
    return sa_registry


@pytest_asyncio.fixture()
async def session_factory(sa_registry: SaRegistry, engine: AsyncEngine) -> typing.AsyncGenerator[async_sessionmaker, None]:
    async with engine.begin() as connection:
        await connection.run_sync(sa_registry.metadata.drop_all)
        await connection.run_sync(sa_registry.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    async with engine.begin() as connection:
        await connection.run_sync(sa_registry.metadata.drop_all)


@pytest.fixture()
def sa_locator(registry: Registry, session_factory: async_sessionmaker, sa_registry: SaRegistry) -> RepositoryLocator:
    return RepositoryLocator(registry, lambda entity_cls: SqlAlchemyRepo(session_factory, entity_cls, sa_registry))
