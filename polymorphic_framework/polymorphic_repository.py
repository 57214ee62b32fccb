import typing

from polymorphic_framework.criteria import Criteria
from polymorphic_framework.entity_tree import build
from polymorphic_framework.hydration import HydrationEngine
from polymorphic_framework.locator import RepositoryLocator
from polymorphic_framework.persistence import PersistenceOrchestrator
from polymorphic_framework.repository import EntityType, Repository


class PolymorphicRepository(Repository[EntityType]):
    """Adds polymorphic associations on top of a base repository.

    Reads hydrate the eager associations of the returned rows, writes stamp and
    cascade them. Entity types without associations pass straight through.
    """

    def __init__(self, base: Repository, locator: RepositoryLocator) -> None:
        self._base = base
        self._locator = locator
        self.registry = locator.registry
        if base.entity is not None:
            self.entity = base.entity
        assert self.entity is not None, "Base repository must be bound to an entity"

        self._hydration = HydrationEngine(self.registry, locator)
        self._persistence = PersistenceOrchestrator(self.registry, locator)

    @property
    def storage(self) -> Repository:
        return self._base

    @property
    def descriptors(self) -> tuple:
        return self.registry.descriptors_for(self.entity)

    def create(self, **values: typing.Any) -> EntityType:
        entity = self._base.create(**values)
        for descriptor in self.descriptors:
            if descriptor.property_key in values:
                descriptor.accessor.set(entity, values[descriptor.property_key])
        return entity

    async def find(self, criteria: typing.Optional[Criteria] = None) -> typing.List[EntityType]:
        results = await self._base.find(criteria)
        if not self.descriptors:
            return results
        return await self._hydration.hydrate_many(results, eager_only=True)

    async def find_one(self, criteria: typing.Optional[Criteria] = None) -> typing.Optional[EntityType]:
        entity = await self._base.find_one(criteria)
        if entity is None or not self.descriptors:
            return entity
        return await self._hydration.hydrate_one(entity, eager_only=True)

    async def save(
        self, entity_or_entities: typing.Union[EntityType, typing.List[EntityType]], **options: typing.Any
    ) -> typing.Union[EntityType, typing.List[EntityType]]:
        return await self._persistence.prepare_and_save(entity_or_entities, self._base.save, **options)

    async def delete(self, criteria: Criteria) -> None:
        await self._base.delete(criteria)

    async def remove(self, entity_or_entities: typing.Union[EntityType, typing.List[EntityType]]) -> None:
        """Deletes the entities together with the children they cascade to."""
        primary_column = build(self.entity).identity.name
        await self._persistence.remove(entity_or_entities, self._base.delete, primary_column)

    async def hydrate_one(self, entity: EntityType) -> EntityType:
        return await self._hydration.hydrate_one(entity)

    async def hydrate_many(self, entities: typing.List[EntityType]) -> typing.List[EntityType]:
        return await self._hydration.hydrate_many(entities)
