import enum
import operator
import typing

import attr

from polymorphic_framework.entity import EntityType, discriminator_of


class Direction(enum.Enum):
    PARENT = "parent"
    CHILDREN = "children"


@attr.s(auto_attribs=True, frozen=True)
class FieldAccessor:
    """Reads and writes one association field on an entity."""

    name: str
    get: typing.Callable[[typing.Any], typing.Any]
    set: typing.Callable[[typing.Any, typing.Any], None]

    @classmethod
    def for_attribute(cls, name: str) -> "FieldAccessor":
        def setter(entity: typing.Any, value: typing.Any) -> None:
            setattr(entity, name, value)

        return cls(name, operator.attrgetter(name), setter)


def _to_tuple(target_types: typing.Union[EntityType, typing.Iterable[EntityType]]) -> typing.Tuple[EntityType, ...]:
    if isinstance(target_types, type):
        return (target_types,)
    return tuple(target_types)


@attr.s(auto_attribs=True, frozen=True)
class AssociationDescriptor:
    property_key: str
    direction: Direction
    target_types: typing.Tuple[EntityType, ...] = attr.ib(default=(), converter=_to_tuple)
    has_many: bool = False
    primary_column: str = "id"
    type_column: str = "entityType"
    id_column: str = "entityId"
    eager: bool = True
    cascade: bool = True
    delete_before_update: bool = False
    accessor: FieldAccessor = attr.ib(
        default=attr.Factory(lambda self: FieldAccessor.for_attribute(self.property_key), takes_self=True),
        eq=False,
        repr=False,
    )

    @property
    def is_parent(self) -> bool:
        return self.direction is Direction.PARENT

    @property
    def is_children(self) -> bool:
        return self.direction is Direction.CHILDREN

    @property
    def is_dynamic(self) -> bool:
        return self.is_parent and not self.target_types

    @property
    def column_pair(self) -> typing.Tuple[str, str]:
        return self.type_column, self.id_column

    def target_for(self, discriminator: str) -> typing.Optional[EntityType]:
        for target_type in self.target_types:
            if discriminator_of(target_type) == discriminator:
                return target_type
        return None

    def empty_value(self) -> typing.Any:
        return [] if self.has_many else None


def polymorphic_parent(
    property_key: str,
    target_types: typing.Union[EntityType, typing.Iterable[EntityType]] = (),
    **options: typing.Any,
) -> AssociationDescriptor:
    """Owner stores ``(type_column, id_column)`` pointing at one row of ``target_types``.

    Leave ``target_types`` empty to resolve the target from the stored discriminator.
    """
    options.setdefault("has_many", False)
    return AssociationDescriptor(property_key, Direction.PARENT, target_types, **options)


def polymorphic_children(
    property_key: str, target_types: typing.Union[EntityType, typing.Iterable[EntityType]], **options: typing.Any
) -> AssociationDescriptor:
    """Rows of ``target_types`` point at the owner through their ``(type_column, id_column)``."""
    options.setdefault("has_many", True)
    return AssociationDescriptor(property_key, Direction.CHILDREN, target_types, **options)
