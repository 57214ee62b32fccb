import abc
import datetime
import decimal
import inspect
import typing
import uuid

import attr
import inflection

from polymorphic_framework.entity import Entity, EntityType, Identity


NATIVE_TYPES = (int, str, float, bool, datetime.datetime, datetime.date, decimal.Decimal, uuid.UUID)


def _is_identity(field_type: typing.Any) -> bool:
    return typing.get_origin(field_type) is Identity


def _get_wrapped_type(wrapped_type: typing.Any) -> typing.Any:
    return typing.get_args(wrapped_type)[0]


def _unwrap_optional(field_type: typing.Any) -> typing.Tuple[typing.Any, bool]:
    if typing.get_origin(field_type) is typing.Union:
        args = [arg for arg in typing.get_args(field_type) if arg is not type(None)]
        if len(args) == 1:
            return args[0], True
    return field_type, False


def _is_reference(field_type: typing.Any) -> bool:
    if isinstance(field_type, (str, typing.ForwardRef)):
        return True
    if inspect.isclass(field_type) and issubclass(field_type, Entity):
        return True
    origin = typing.get_origin(field_type)
    if origin in (list, tuple, set, frozenset, typing.Union):
        return all(_is_reference(arg) for arg in typing.get_args(field_type) if arg is not type(None))
    return field_type is typing.Any


class Visitor:
    def traverse_from(self, node: "Node") -> None:
        node.accept(self)
        for child in node.children:
            self.traverse_from(child)
        node.farewell(self)

    def visit_field(self, field: "FieldNode") -> None:
        pass

    def leave_field(self, field: "FieldNode") -> None:
        pass

    def visit_entity(self, entity: "EntityNode") -> None:
        pass

    def leave_entity(self, entity: "EntityNode") -> None:
        pass

    def visit_reference(self, reference: "ReferenceNode") -> None:
        pass

    def leave_reference(self, reference: "ReferenceNode") -> None:
        pass


class NodeMeta(type):
    def __new__(mcs, name: str, bases: tuple, namespace: dict) -> typing.Type:
        cls = super().__new__(mcs, name, bases, namespace)
        if inspect.isabstract(cls):
            return cls
        return attr.s(auto_attribs=True)(cls)


class Node(metaclass=NodeMeta):
    name: str
    type: typing.Any
    nullable: bool = False
    children: typing.List["Node"] = attr.Factory(list)

    @abc.abstractmethod
    def accept(self, visitor: Visitor) -> None:
        pass

    @abc.abstractmethod
    def farewell(self, visitor: Visitor) -> None:
        pass


class FieldNode(Node):
    is_identity: bool = False

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_field(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_field(self)


class EntityNode(Node):
    def accept(self, visitor: Visitor) -> None:
        visitor.visit_entity(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_entity(self)


class ReferenceNode(Node):
    """Association field. Holds related entities in memory, never stored."""

    def accept(self, visitor: Visitor) -> None:
        visitor.visit_reference(self)

    def farewell(self, visitor: Visitor) -> None:
        visitor.leave_reference(self)


@attr.s(auto_attribs=True)
class AbstractEntityTree:
    root: EntityNode

    @property
    def columns(self) -> typing.List[FieldNode]:
        return [node for node in self.root.children if isinstance(node, FieldNode)]

    @property
    def references(self) -> typing.List[ReferenceNode]:
        return [node for node in self.root.children if isinstance(node, ReferenceNode)]

    @property
    def identity(self) -> FieldNode:
        identity_nodes = [node for node in self.columns if node.is_identity]
        assert len(identity_nodes) == 1, "Multiple primary keys not supported"
        return identity_nodes[0]


def build(root: EntityType) -> AbstractEntityTree:
    children: typing.List[Node] = []

    for field in attr.fields(root):
        field_type = field.type
        field_name = field.name

        if _is_identity(field_type):
            children.append(FieldNode(field_name, _get_wrapped_type(field_type), False, [], True))
            continue

        unwrapped_type, nullable = _unwrap_optional(field_type)
        if unwrapped_type in NATIVE_TYPES:
            children.append(FieldNode(field_name, unwrapped_type, nullable, [], False))
        elif _is_reference(field_type):
            children.append(ReferenceNode(field_name, field_type, True, []))
        else:
            raise TypeError(f"Unsupported type - {field_type}")

    return AbstractEntityTree(EntityNode(inflection.underscore(root.__name__), root, False, children))
