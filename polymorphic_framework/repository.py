import abc
import inspect
import typing

from polymorphic_framework.criteria import Criteria
from polymorphic_framework.entity import Entity


EntityType = typing.TypeVar("EntityType")


class Repository(typing.Generic[EntityType], abc.ABC):
    entity: typing.Optional[typing.Type[Entity]] = None

    def __init_subclass__(cls, **kwargs: typing.Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in cls.__dict__.get("__orig_bases__", ()):
            if not _is_repository_alias(base):
                continue
            args = typing.get_args(base)
            if args and inspect.isclass(args[0]) and issubclass(args[0], Entity):
                cls.entity = args[0]
                cls.prepare(args[0])

    @classmethod
    def prepare(cls, entity_cls: typing.Type[Entity]) -> None:
        pass

    @property
    def storage(self) -> "Repository[EntityType]":
        """Repository that talks to the store directly."""
        return self

    @abc.abstractmethod
    def create(self, **values: typing.Any) -> EntityType:
        pass

    @abc.abstractmethod
    async def find(self, criteria: typing.Optional[Criteria] = None) -> typing.List[EntityType]:
        pass

    @abc.abstractmethod
    async def find_one(self, criteria: typing.Optional[Criteria] = None) -> typing.Optional[EntityType]:
        pass

    @abc.abstractmethod
    async def save(
        self, entity_or_entities: typing.Union[EntityType, typing.List[EntityType]], **options: typing.Any
    ) -> typing.Union[EntityType, typing.List[EntityType]]:
        pass

    @abc.abstractmethod
    async def delete(self, criteria: Criteria) -> None:
        pass


def _is_repository_alias(base: typing.Any) -> bool:
    origin = typing.get_origin(base)
    return inspect.isclass(origin) and issubclass(origin, Repository)
