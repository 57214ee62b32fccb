import logging
import typing

from polymorphic_framework.entity import EntityType
from polymorphic_framework.registry import Registry
from polymorphic_framework.repository import Repository

logger = logging.getLogger(__name__)


class RepositoryNotFound(LookupError):
    def __init__(self, token: typing.Any) -> None:
        name = getattr(token, "__name__", token)
        super().__init__(f"Repository cannot be found for given token [{name}]")
        self.token = token


DefaultFactory = typing.Callable[[EntityType], typing.Optional[Repository]]


class RepositoryLocator:
    """Resolves entity types to repositories for one unit of work.

    Lookup order: explicitly registered instances, repository classes declared in the
    registry (instantiated around the default repository), the default factory.
    """

    def __init__(self, registry: Registry, default_factory: typing.Optional[DefaultFactory] = None) -> None:
        self.registry = registry
        self._default_factory = default_factory
        self._repositories: typing.Dict[EntityType, Repository] = {}
        self._defaults: typing.Dict[EntityType, Repository] = {}

    def register(self, entity_cls: EntityType, repository: Repository) -> None:
        self._repositories[entity_cls] = repository

    def locate(self, entity_cls: EntityType) -> Repository:
        if entity_cls not in self._repositories:
            repository_cls = self.registry.repository_class_for(entity_cls)
            if repository_cls is not None:
                logger.debug("Resolved %s to %s", entity_cls.__name__, repository_cls.__name__)
                self._repositories[entity_cls] = repository_cls(self.default(entity_cls), self)
            else:
                self._repositories[entity_cls] = self.default(entity_cls)
        return self._repositories[entity_cls]

    def default(self, entity_cls: EntityType) -> Repository:
        if entity_cls not in self._defaults:
            repository = self._default_factory(entity_cls) if self._default_factory else None
            if repository is None:
                raise RepositoryNotFound(entity_cls)
            self._defaults[entity_cls] = repository
        return self._defaults[entity_cls]
