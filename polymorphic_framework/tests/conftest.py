import typing

import pytest
from _pytest.config.argparsing import Parser

from polymorphic_framework import Registry, RepositoryLocator
from polymorphic_framework.tests.domain import Call, RecordingRepo, register_associations


def pytest_addoption(parser: Parser) -> None:
    parser.addoption("--sqlalchemy-url", action="store", default=None)


@pytest.fixture()
def calls() -> typing.List[Call]:
    return []


@pytest.fixture()
def registry() -> Registry:
    return register_associations(Registry())


@pytest.fixture()
def locator(registry: Registry, calls: typing.List[Call]) -> RepositoryLocator:
    return RepositoryLocator(registry, lambda entity_cls: RecordingRepo(entity_cls, calls))
