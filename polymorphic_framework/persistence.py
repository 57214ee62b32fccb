import logging
import typing

from polymorphic_framework.criteria import AnyOf
from polymorphic_framework.descriptor import AssociationDescriptor
from polymorphic_framework.entity import EntityType
from polymorphic_framework.hydration import distinct, gather
from polymorphic_framework.locator import RepositoryLocator
from polymorphic_framework.registry import Registry

logger = logging.getLogger(__name__)


SaveCallable = typing.Callable[..., typing.Awaitable[typing.Any]]
DeleteCallable = typing.Callable[[typing.Any], typing.Awaitable[None]]


def _as_list(entity_or_entities: typing.Any) -> typing.List[typing.Any]:
    if isinstance(entity_or_entities, (list, tuple)):
        return list(entity_or_entities)
    return [entity_or_entities]


def _as_children(value: typing.Any) -> typing.List[typing.Any]:
    if value is None:
        return []
    return _as_list(value)


class PersistenceOrchestrator:
    """Prepares polymorphic entities around the base save.

    Stamps parent references into foreign-key columns, clears stale children when
    ``delete_before_update`` is set and cascades owned rows to their repositories.
    """

    def __init__(self, registry: Registry, locator: RepositoryLocator) -> None:
        self._registry = registry
        self._locator = locator
        registry.freeze()

    async def prepare_and_save(self, entity_or_entities: typing.Any, save: SaveCallable, **options: typing.Any) -> typing.Any:
        entities = _as_list(entity_or_entities)
        descriptors = self._registry.descriptors_for(type(entities[0])) if entities else ()
        if not descriptors:
            return await save(entity_or_entities, **options)

        parents = [descriptor for descriptor in descriptors if descriptor.is_parent]
        children = [descriptor for descriptor in descriptors if descriptor.is_children]

        await self._cascade_parents(entities, parents)
        for descriptor in parents:
            for entity in entities:
                self._stamp_parent(entity, descriptor)

        await self._delete_before_update(entities, children)

        saved = await save(entity_or_entities, **options)

        await self._cascade_children(entities, children)
        return saved

    async def remove(self, entity_or_entities: typing.Any, delete: DeleteCallable, primary_column: str) -> None:
        entities = _as_list(entity_or_entities)
        if not entities:
            return

        owner_cls = type(entities[0])
        descriptors = [
            descriptor
            for descriptor in self._registry.descriptors_for(owner_cls)
            if descriptor.is_children and descriptor.cascade
        ]
        await self._delete_children(owner_cls, entities, descriptors)

        keys = distinct(getattr(entity, primary_column) for entity in entities)
        if keys:
            await delete({primary_column: AnyOf(keys)})

    def _stamp_parent(self, entity: typing.Any, descriptor: AssociationDescriptor) -> None:
        parent = descriptor.accessor.get(entity)
        if parent is None:
            return
        if getattr(entity, descriptor.id_column) is not None and not descriptor.delete_before_update:
            return
        parent_key = getattr(parent, descriptor.primary_column)
        if parent_key is None:
            logger.debug("Parent of %s.%s is not saved yet", type(entity).__name__, descriptor.property_key)
            return

        setattr(entity, descriptor.id_column, parent_key)
        setattr(entity, descriptor.type_column, self._registry.discriminator_of(type(parent)))
        logger.debug(
            "Stamped %s.%s with %s:%s",
            type(entity).__name__,
            descriptor.property_key,
            getattr(entity, descriptor.type_column),
            getattr(entity, descriptor.id_column),
        )

    async def _cascade_parents(self, entities: typing.List[typing.Any], descriptors: typing.List[AssociationDescriptor]) -> None:
        unsaved: typing.Dict[EntityType, typing.List[typing.Any]] = {}
        queued: typing.Set[int] = set()
        for descriptor in descriptors:
            if not descriptor.cascade:
                continue
            for entity in entities:
                parent = descriptor.accessor.get(entity)
                if parent is None or getattr(parent, descriptor.primary_column) is not None:
                    continue
                if id(parent) not in queued:
                    queued.add(id(parent))
                    unsaved.setdefault(type(parent), []).append(parent)

        await self._save_batches(unsaved)

    async def _delete_before_update(
        self, entities: typing.List[typing.Any], descriptors: typing.List[AssociationDescriptor]
    ) -> None:
        descriptors = [descriptor for descriptor in descriptors if descriptor.delete_before_update]
        await self._delete_children(type(entities[0]), entities, descriptors)

    async def _delete_children(
        self, owner_cls: EntityType, entities: typing.List[typing.Any], descriptors: typing.List[AssociationDescriptor]
    ) -> None:
        targets = []
        for descriptor in descriptors:
            repositories = [self._locator.locate(target_type).storage for target_type in descriptor.target_types]
            keys = distinct(getattr(entity, descriptor.primary_column) for entity in entities)
            if keys:
                targets.append((descriptor, repositories, keys))

        deletes = []
        for descriptor, repositories, keys in targets:
            criteria = {
                descriptor.type_column: self._registry.discriminator_of(owner_cls),
                descriptor.id_column: AnyOf(keys),
            }
            for target_type, repository in zip(descriptor.target_types, repositories):
                logger.debug("Deleting %s rows of %s.%s", target_type.__name__, owner_cls.__name__, descriptor.property_key)
                deletes.append(repository.delete(criteria))

        # every delete settles before the caller writes again
        await gather(*deletes)

    async def _cascade_children(
        self, entities: typing.List[typing.Any], descriptors: typing.List[AssociationDescriptor]
    ) -> None:
        batches: typing.Dict[EntityType, typing.List[typing.Any]] = {}
        for descriptor in descriptors:
            if not descriptor.cascade:
                continue
            for entity in entities:
                owner_discriminator = self._registry.discriminator_of(type(entity))
                owner_key = getattr(entity, descriptor.primary_column)
                for child in _as_children(descriptor.accessor.get(entity)):
                    if not isinstance(child, descriptor.target_types):
                        raise TypeError(
                            f"{type(child).__name__} is not a target of "
                            f"{type(entity).__name__}.{descriptor.property_key}"
                        )
                    setattr(child, descriptor.id_column, owner_key)
                    setattr(child, descriptor.type_column, owner_discriminator)
                    batches.setdefault(type(child), []).append(child)

        await self._save_batches(batches)

    async def _save_batches(self, batches: typing.Dict[EntityType, typing.List[typing.Any]]) -> None:
        repositories = {entity_cls: self._locator.locate(entity_cls) for entity_cls in batches}
        saves = []
        for entity_cls, batch in batches.items():
            logger.debug("Cascading save of %d %s rows", len(batch), entity_cls.__name__)
            saves.append(repositories[entity_cls].save(batch))
        await gather(*saves)
