from polymorphic_framework.criteria import AnyOf
from polymorphic_framework.descriptor import (
    AssociationDescriptor,
    Direction,
    FieldAccessor,
    polymorphic_children,
    polymorphic_parent,
)
from polymorphic_framework.entity import Entity, EntityWithoutIdentity, Identity, discriminator_of
from polymorphic_framework.hydration import HydrationEngine
from polymorphic_framework.locator import RepositoryLocator, RepositoryNotFound
from polymorphic_framework.persistence import PersistenceOrchestrator
from polymorphic_framework.polymorphic_repository import PolymorphicRepository
from polymorphic_framework.registry import (
    AssociationConfigurationError,
    ConfigurationAmbiguity,
    MissingDiscriminator,
    Registry,
    RegistryFrozen,
    UnknownDiscriminator,
)
from polymorphic_framework.repository import Repository

__all__ = [
    "AnyOf",
    "AssociationConfigurationError",
    "AssociationDescriptor",
    "ConfigurationAmbiguity",
    "Direction",
    "Entity",
    "EntityWithoutIdentity",
    "FieldAccessor",
    "HydrationEngine",
    "Identity",
    "MissingDiscriminator",
    "PersistenceOrchestrator",
    "PolymorphicRepository",
    "Registry",
    "RegistryFrozen",
    "Repository",
    "RepositoryLocator",
    "RepositoryNotFound",
    "UnknownDiscriminator",
    "discriminator_of",
    "polymorphic_children",
    "polymorphic_parent",
]
