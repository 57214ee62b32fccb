from typing import Optional

import inflection
from sqlalchemy import Column, MetaData, Table

from polymorphic_framework.entity_tree import EntityNode, FieldNode, Visitor
from polymorphic_framework.storages.sqlalchemy import native_type_to_column
from polymorphic_framework.storages.sqlalchemy.constructing_model.raw_model import RawTable


class TableConstructingVisitor(Visitor):
    def __init__(self, metadata: MetaData) -> None:
        self._metadata = metadata
        self._raw_table: Optional[RawTable] = None
        self._result: Optional[Table] = None

    @property
    def result(self) -> Table:
        return self._result

    def visit_field(self, field: FieldNode) -> None:
        column = Column(
            field.name,
            native_type_to_column.convert(field.type),
            primary_key=field.is_identity,
            nullable=field.nullable,
        )
        self._raw_table.append_column(column)

    def visit_entity(self, entity: EntityNode) -> None:
        if self._raw_table is not None:
            raise NotImplementedError("Nested entities are stored by their own repositories")
        table_name = inflection.pluralize(inflection.underscore(entity.type.__name__))
        self._raw_table = RawTable(table_name)

    def leave_entity(self, entity: EntityNode) -> None:
        self._result = self._raw_table.materialize(self._metadata)
        self._raw_table = None
