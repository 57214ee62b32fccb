import asyncio
import logging
import typing

from polymorphic_framework.criteria import AnyOf
from polymorphic_framework.descriptor import AssociationDescriptor
from polymorphic_framework.entity import EntityType
from polymorphic_framework.locator import RepositoryLocator
from polymorphic_framework.registry import Registry, UnknownDiscriminator
from polymorphic_framework.repository import Repository

logger = logging.getLogger(__name__)


ValueKeyMap = typing.Dict[str, typing.List[typing.Any]]


def association_key(discriminator: str, value: typing.Any) -> str:
    return f"{discriminator}:{value}"


def distinct(values: typing.Iterable[typing.Any]) -> typing.List[typing.Any]:
    return list(dict.fromkeys(value for value in values if value is not None))


async def gather(*awaitables: typing.Awaitable[typing.Any]) -> typing.List[typing.Any]:
    """Runs the awaitables concurrently.

    When one fails the others are cancelled and awaited before the error propagates,
    so no lookup or write keeps running unobserved.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class HydrationEngine:
    """Fills association fields of loaded entities.

    Issues one lookup per (descriptor, target type) for the whole batch, never one per row.
    Lookups go through the target repository's storage, so hydrated values are not
    hydrated themselves.
    """

    def __init__(self, registry: Registry, locator: RepositoryLocator) -> None:
        self._registry = registry
        self._locator = locator
        registry.freeze()

    async def hydrate_one(self, entity: typing.Any, eager_only: bool = False) -> typing.Any:
        result = await self.hydrate_many([entity], eager_only=eager_only)
        return result[0]

    async def hydrate_many(self, entities: typing.List[typing.Any], eager_only: bool = False) -> typing.List[typing.Any]:
        groups: typing.Dict[EntityType, typing.List[typing.Any]] = {}
        for entity in entities:
            groups.setdefault(type(entity), []).append(entity)

        await gather(
            *(self._hydrate_group(owner_cls, group, eager_only) for owner_cls, group in groups.items())
        )
        return entities

    async def _hydrate_group(self, owner_cls: EntityType, entities: typing.List[typing.Any], eager_only: bool) -> None:
        descriptors = [
            descriptor
            for descriptor in self._registry.descriptors_for(owner_cls)
            if descriptor.eager or not eager_only
        ]
        if not descriptors:
            return

        value_maps = await gather(
            *(self._resolve(owner_cls, entities, descriptor) for descriptor in descriptors)
        )

        for descriptor, value_map in zip(descriptors, value_maps):
            for entity in entities:
                matches = value_map.get(self._owner_key(owner_cls, entity, descriptor), [])
                if descriptor.has_many:
                    value = list(matches)
                else:
                    value = matches[0] if matches else None
                descriptor.accessor.set(entity, value)

    def _owner_key(
        self, owner_cls: EntityType, entity: typing.Any, descriptor: AssociationDescriptor
    ) -> typing.Optional[str]:
        if descriptor.is_parent:
            discriminator = getattr(entity, descriptor.type_column)
            value = getattr(entity, descriptor.id_column)
        else:
            discriminator = self._registry.discriminator_of(owner_cls)
            value = getattr(entity, descriptor.primary_column)

        if discriminator is None or value is None:
            return None
        return association_key(discriminator, value)

    async def _resolve(
        self, owner_cls: EntityType, entities: typing.List[typing.Any], descriptor: AssociationDescriptor
    ) -> ValueKeyMap:
        if descriptor.is_parent:
            return await self._resolve_parents(entities, descriptor)
        return await self._resolve_children(owner_cls, entities, descriptor)

    async def _resolve_children(
        self, owner_cls: EntityType, entities: typing.List[typing.Any], descriptor: AssociationDescriptor
    ) -> ValueKeyMap:
        discriminator = self._registry.discriminator_of(owner_cls)
        repositories = [self._locator.locate(target_type).storage for target_type in descriptor.target_types]
        keys = distinct(getattr(entity, descriptor.primary_column) for entity in entities)
        if not keys:
            return {}

        logger.debug(
            "Hydrating %s.%s for %d keys over %d types",
            owner_cls.__name__,
            descriptor.property_key,
            len(keys),
            len(repositories),
        )
        criteria = {descriptor.id_column: AnyOf(keys), descriptor.type_column: discriminator}
        results = await gather(*(repository.find(criteria) for repository in repositories))

        value_map: ValueKeyMap = {}
        for rows in results:
            for row in rows:
                key = association_key(getattr(row, descriptor.type_column), getattr(row, descriptor.id_column))
                value_map.setdefault(key, []).append(row)
        return value_map

    async def _resolve_parents(self, entities: typing.List[typing.Any], descriptor: AssociationDescriptor) -> ValueKeyMap:
        keys_by_discriminator: typing.Dict[str, typing.Dict[typing.Any, None]] = {}
        for entity in entities:
            discriminator = getattr(entity, descriptor.type_column)
            value = getattr(entity, descriptor.id_column)
            if discriminator is None or value is None:
                continue
            keys_by_discriminator.setdefault(discriminator, {})[value] = None

        repositories = {
            discriminator: self._locator.locate(self._target_for(descriptor, discriminator)).storage
            for discriminator in keys_by_discriminator
        }
        lookups = (
            self._find_parents(repositories[discriminator], discriminator, list(keys), descriptor)
            for discriminator, keys in keys_by_discriminator.items()
        )

        value_map: ValueKeyMap = {}
        for discriminator, rows in await gather(*lookups):
            for row in rows:
                key = association_key(discriminator, getattr(row, descriptor.primary_column))
                value_map.setdefault(key, []).append(row)
        return value_map

    async def _find_parents(
        self, repository: Repository, discriminator: str, keys: typing.List[typing.Any], descriptor: AssociationDescriptor
    ) -> typing.Tuple[str, typing.List[typing.Any]]:
        logger.debug("Hydrating %s from %s for %d keys", descriptor.property_key, discriminator, len(keys))
        rows = await repository.find({descriptor.primary_column: AnyOf(keys)})
        return discriminator, rows

    def _target_for(self, descriptor: AssociationDescriptor, discriminator: str) -> EntityType:
        if descriptor.is_dynamic:
            return self._registry.entity_for(discriminator)

        target_type = descriptor.target_for(discriminator)
        if target_type is None:
            raise UnknownDiscriminator(f"{discriminator!r} is not a target of {descriptor.property_key}")
        return target_type
