import pathlib
import typing

import pytest_asyncio
from _pytest.fixtures import SubRequest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine


@pytest_asyncio.fixture()
async def engine(request: SubRequest, tmp_path: pathlib.Path) -> typing.AsyncGenerator[AsyncEngine, None]:
    connection_url = request.config.getoption("--sqlalchemy-url")
    if not connection_url:
        connection_url = f"sqlite+aiosqlite:///{tmp_path / 'polymorphic.sqlite'}"
    engine = create_async_engine(connection_url)
    yield engine
    await engine.dispose()
