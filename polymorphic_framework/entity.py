import abc
import typing

import attr


class EntityWithoutIdentity(TypeError):
    pass


T = typing.TypeVar("T")


class Identity(typing.Generic[T]):
    @classmethod
    def is_identity(cls, field: attr.Attribute) -> bool:
        return typing.get_origin(field.type) is cls


class EntityMeta(abc.ABCMeta):
    def __new__(mcs, name: str, bases: tuple, namespace: dict, discriminator: typing.Optional[str] = None):
        cls = super().__new__(mcs, name, bases, namespace)
        if not bases:
            return cls
        cls.__discriminator__ = discriminator
        attr_cls = attr.s(auto_attribs=True)(cls)
        if not any(Identity.is_identity(field) for field in attr.fields(attr_cls)):
            raise EntityWithoutIdentity(name)
        return attr_cls


class Entity(metaclass=EntityMeta):
    __discriminator__: typing.ClassVar[typing.Optional[str]] = None


EntityType = typing.Type[Entity]


def discriminator_of(entity_cls: EntityType) -> typing.Optional[str]:
    # not inherited: every class declares its own
    return entity_cls.__dict__.get("__discriminator__")
