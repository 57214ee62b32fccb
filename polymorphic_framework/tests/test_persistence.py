import asyncio
import typing

import pytest

from polymorphic_framework import (
    PersistenceOrchestrator,
    Registry,
    RepositoryLocator,
    RepositoryNotFound,
    polymorphic_children,
    polymorphic_parent,
)
from polymorphic_framework.storages.memory import InMemoryRepo
from polymorphic_framework.tests.domain import Advert, Merchant, RecordingRepo, Tag, User, seed


@pytest.fixture()
def orchestrator(registry: Registry, locator: RepositoryLocator) -> PersistenceOrchestrator:
    return PersistenceOrchestrator(registry, locator)


def saves(calls) -> typing.List[str]:
    return [entity_name for kind, entity_name, _ in calls if kind == "save"]


async def test_passes_through_non_polymorphic_entities(orchestrator, locator: RepositoryLocator, calls):
    tag = Tag(label="sale")

    saved = await orchestrator.prepare_and_save(tag, locator.default(Tag).save)

    assert saved is tag
    assert tag.id == 1
    assert calls == [("save", "Tag", tag)]


async def test_stamps_parent_reference(orchestrator, locator: RepositoryLocator):
    advert = Advert(owner=User(id=7))

    await orchestrator.prepare_and_save(advert, locator.default(Advert).save)

    assert (advert.entityId, advert.entityType) == (7, "User")
    assert locator.default(Advert).rows[0]["entityId"] == 7


async def test_stamps_every_entity_of_batch(orchestrator, locator: RepositoryLocator):
    adverts = [Advert(owner=User(id=1)), Advert(owner=Merchant(id=2)), Advert()]

    await orchestrator.prepare_and_save(adverts, locator.default(Advert).save)

    assert [(advert.entityType, advert.entityId) for advert in adverts] == [("User", 1), ("Merchant", 2), (None, None)]


async def test_never_overwrites_explicit_foreign_key(orchestrator, locator: RepositoryLocator):
    advert = Advert(entityId=3, entityType="Merchant", owner=User(id=7))

    await orchestrator.prepare_and_save(advert, locator.default(Advert).save)

    assert (advert.entityId, advert.entityType) == (3, "Merchant")


async def test_saves_unsaved_parent_first(orchestrator, locator: RepositoryLocator, calls):
    user = User(name="new")
    advert = Advert(owner=user)

    await orchestrator.prepare_and_save(advert, locator.default(Advert).save)

    assert user.id == 1
    assert (advert.entityId, advert.entityType) == (1, "User")
    assert saves(calls) == ["User", "Advert"]


async def test_leaves_unsaved_parent_without_cascade(calls):
    registry = Registry()
    registry.register(Advert, polymorphic_parent("owner", [User, Merchant], cascade=False))
    locator = RepositoryLocator(registry, lambda entity_cls: RecordingRepo(entity_cls, calls))
    advert = Advert(owner=User(name="new"))

    await PersistenceOrchestrator(registry, locator).prepare_and_save(advert, locator.default(Advert).save)

    assert (advert.entityId, advert.entityType) == (None, None)
    assert saves(calls) == ["Advert"]


async def test_missing_parent_repository_saves_nothing(registry: Registry, calls):
    locator = RepositoryLocator(
        registry, lambda entity_cls: None if entity_cls is Merchant else RecordingRepo(entity_cls, calls)
    )
    adverts = [Advert(owner=User(name="new")), Advert(owner=Merchant())]

    with pytest.raises(RepositoryNotFound):
        await PersistenceOrchestrator(registry, locator).prepare_and_save(adverts, locator.default(Advert).save)

    assert saves(calls) == []


async def test_cascades_children(orchestrator, locator: RepositoryLocator, calls):
    user = User(name="owner", adverts=[Advert(title="a"), Advert(title="b")])

    await orchestrator.prepare_and_save(user, locator.default(User).save)

    stored = locator.default(Advert).rows
    assert [(row["title"], row["entityType"], row["entityId"]) for row in stored] == [
        ("a", "User", user.id),
        ("b", "User", user.id),
    ]
    assert saves(calls) == ["User", "Advert"]


async def test_rejects_children_of_undeclared_type(orchestrator, locator: RepositoryLocator):
    user = User(adverts=[Merchant(id=1)])

    with pytest.raises(TypeError):
        await orchestrator.prepare_and_save(user, locator.default(User).save)


@pytest.fixture()
def replacing_registry() -> Registry:
    registry = Registry()
    registry.register(Advert, polymorphic_parent("owner", [User, Merchant], delete_before_update=True))
    registry.register(User, polymorphic_children("adverts", Advert, delete_before_update=True))
    return registry


async def test_delete_before_update_replaces_children(replacing_registry: Registry, calls):
    locator = RepositoryLocator(replacing_registry, lambda entity_cls: RecordingRepo(entity_cls, calls))
    orchestrator = PersistenceOrchestrator(replacing_registry, locator)
    user = User(id=1, adverts=[Advert(title="old"), Advert(title="older")])
    await orchestrator.prepare_and_save(user, locator.default(User).save)
    await seed(locator, Advert(title="foreign", entityId=2, entityType="User"))

    user.adverts = [Advert(title="new")]
    await orchestrator.prepare_and_save(user, locator.default(User).save)

    titles = sorted(row["title"] for row in locator.default(Advert).rows)
    assert titles == ["foreign", "new"]


async def test_delete_before_update_replaces_parent_reference(replacing_registry: Registry):
    locator = RepositoryLocator(replacing_registry, InMemoryRepo)
    orchestrator = PersistenceOrchestrator(replacing_registry, locator)
    advert = Advert(entityId=3, entityType="Merchant", owner=User(id=7))

    await orchestrator.prepare_and_save(advert, locator.default(Advert).save)

    assert (advert.entityId, advert.entityType) == (7, "User")


class SlowDeleteRepo(InMemoryRepo):
    def __init__(self, entity, events):
        super().__init__(entity)
        self.events = events

    async def delete(self, criteria):
        await asyncio.sleep(0.01)
        await super().delete(criteria)
        self.events.append(f"deleted {self.entity.__name__}")

    async def save(self, entity_or_entities, **options):
        self.events.append(f"saving {self.entity.__name__}")
        return await super().save(entity_or_entities, **options)


async def test_deletes_settle_before_save(replacing_registry: Registry):
    events = []
    locator = RepositoryLocator(replacing_registry, lambda entity_cls: SlowDeleteRepo(entity_cls, events))
    orchestrator = PersistenceOrchestrator(replacing_registry, locator)

    await orchestrator.prepare_and_save(User(id=1), locator.default(User).save)

    assert events == ["deleted Advert", "saving User"]


async def test_missing_repository_fails_delete_before_update(replacing_registry: Registry):
    locator = RepositoryLocator(replacing_registry, lambda entity_cls: None if entity_cls is Advert else InMemoryRepo(entity_cls))
    orchestrator = PersistenceOrchestrator(replacing_registry, locator)

    with pytest.raises(RepositoryNotFound):
        await orchestrator.prepare_and_save(User(id=1), locator.default(User).save)


async def test_save_errors_propagate(orchestrator):
    async def failing_save(entity_or_entities):
        raise RuntimeError("constraint violated")

    with pytest.raises(RuntimeError, match="constraint violated"):
        await orchestrator.prepare_and_save(Advert(owner=User(id=1)), failing_save)


async def test_forwards_save_options(orchestrator):
    received = {}

    async def save(entity_or_entities, **options):
        received.update(options)
        return entity_or_entities

    await orchestrator.prepare_and_save(Advert(), save, reload=True)

    assert received == {"reload": True}


async def test_remove_cascades_to_children(orchestrator, locator: RepositoryLocator):
    user = User(id=1, adverts=[Advert(title="mine")])
    await orchestrator.prepare_and_save(user, locator.default(User).save)
    await seed(locator, User(id=2), Advert(title="theirs", entityId=2, entityType="User"))

    await orchestrator.remove(user, locator.default(User).delete, "id")

    assert [row["id"] for row in locator.default(User).rows] == [2]
    assert [row["title"] for row in locator.default(Advert).rows] == ["theirs"]
