import inspect
import logging
import typing

import attr

from polymorphic_framework.descriptor import AssociationDescriptor
from polymorphic_framework.entity import Entity, EntityType, discriminator_of
from polymorphic_framework.entity_tree import build

logger = logging.getLogger(__name__)


class AssociationConfigurationError(TypeError):
    pass


class ConfigurationAmbiguity(AssociationConfigurationError):
    pass


class MissingDiscriminator(AssociationConfigurationError):
    pass


class UnknownDiscriminator(LookupError):
    pass


class RegistryFrozen(RuntimeError):
    pass


@attr.s(auto_attribs=True)
class Registry:
    entities_to_descriptors: typing.Dict[EntityType, typing.Tuple[AssociationDescriptor, ...]] = attr.Factory(dict)
    discriminators_to_entities: typing.Dict[str, EntityType] = attr.Factory(dict)
    entities_to_repositories: typing.Dict[EntityType, type] = attr.Factory(dict)
    frozen: bool = False

    def register(self, entity_cls: EntityType, *descriptors: AssociationDescriptor) -> None:
        self._ensure_not_frozen()
        registered = {descriptor.property_key: descriptor for descriptor in self.entities_to_descriptors.get(entity_cls, ())}

        self.register_entity(entity_cls)
        for descriptor in descriptors:
            self._validate(entity_cls, descriptor)
            for target_type in descriptor.target_types:
                self.register_entity(target_type)
            if descriptor.property_key in registered:
                logger.warning("Replacing association %s.%s", entity_cls.__name__, descriptor.property_key)
            registered[descriptor.property_key] = descriptor

        self._check_ambiguity(entity_cls, list(registered.values()))
        self.entities_to_descriptors[entity_cls] = tuple(registered.values())
        logger.debug("Registered associations %s on %s", list(registered), entity_cls.__name__)

    def register_entity(self, entity_cls: EntityType) -> None:
        self._ensure_not_frozen()
        discriminator = discriminator_of(entity_cls)
        if not discriminator:
            raise MissingDiscriminator(f"{entity_cls.__name__} does not declare a discriminator")

        known = self.discriminators_to_entities.setdefault(discriminator, entity_cls)
        if known is not entity_cls:
            raise ConfigurationAmbiguity(
                f"Discriminator {discriminator!r} claimed by both {known.__name__} and {entity_cls.__name__}"
            )

    def register_repository(self, entity_cls: EntityType, repository_cls: type) -> None:
        self._ensure_not_frozen()
        self.entities_to_repositories[entity_cls] = repository_cls

    def repository_for(self, entity_cls: EntityType) -> typing.Callable[[type], type]:
        def decorator(repository_cls: type) -> type:
            self.register_repository(entity_cls, repository_cls)
            return repository_cls

        return decorator

    def freeze(self) -> None:
        self.frozen = True

    def descriptors_for(self, entity_cls: EntityType) -> typing.Tuple[AssociationDescriptor, ...]:
        return self.entities_to_descriptors.get(entity_cls, ())

    def is_polymorphic(self, entity_cls: EntityType) -> bool:
        return bool(self.descriptors_for(entity_cls))

    def repository_class_for(self, entity_cls: EntityType) -> typing.Optional[type]:
        return self.entities_to_repositories.get(entity_cls)

    def entity_for(self, discriminator: str) -> EntityType:
        try:
            return self.discriminators_to_entities[discriminator]
        except KeyError:
            raise UnknownDiscriminator(discriminator)

    def discriminator_of(self, entity_cls: EntityType) -> str:
        discriminator = discriminator_of(entity_cls)
        if not discriminator:
            raise MissingDiscriminator(f"{entity_cls.__name__} does not declare a discriminator")
        return discriminator

    def _ensure_not_frozen(self) -> None:
        if self.frozen:
            raise RegistryFrozen("Associations must be registered before the registry is used")

    @staticmethod
    def _validate(entity_cls: EntityType, descriptor: AssociationDescriptor) -> None:
        if inspect.isclass(entity_cls) and issubclass(entity_cls, Entity):
            references = [node.name for node in build(entity_cls).references]
            if descriptor.property_key not in references:
                raise AssociationConfigurationError(
                    f"{entity_cls.__name__} has no association field {descriptor.property_key!r}"
                )
        elif attr.has(entity_cls) and not hasattr(attr.fields(entity_cls), descriptor.property_key):
            raise AssociationConfigurationError(f"{entity_cls.__name__} has no field {descriptor.property_key!r}")

        if descriptor.is_children and not descriptor.target_types:
            raise AssociationConfigurationError(
                f"{entity_cls.__name__}.{descriptor.property_key} needs at least one target type"
            )

        # columns live on the owner for parents, on the targets for children
        holders = [entity_cls] if descriptor.is_parent else list(descriptor.target_types)
        for holder in holders:
            if not attr.has(holder):
                continue
            fields = attr.fields(holder)
            for column in descriptor.column_pair:
                if not hasattr(fields, column):
                    raise AssociationConfigurationError(f"{holder.__name__} has no column {column!r}")

    @staticmethod
    def _check_ambiguity(entity_cls: EntityType, descriptors: typing.List[AssociationDescriptor]) -> None:
        seen: typing.Dict[tuple, str] = {}
        for descriptor in descriptors:
            if descriptor.is_parent:
                keys = [("parent", descriptor.column_pair)]
            else:
                keys = [("children", target_type, descriptor.column_pair) for target_type in descriptor.target_types]

            for key in keys:
                if key in seen:
                    raise ConfigurationAmbiguity(
                        f"{entity_cls.__name__}.{descriptor.property_key} and {entity_cls.__name__}.{seen[key]} "
                        f"share columns {descriptor.column_pair}"
                    )
                seen[key] = descriptor.property_key
