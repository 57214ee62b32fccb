from typing import Dict, Type

import attr
from sqlalchemy import MetaData, Table

from polymorphic_framework.entity import Entity
from polymorphic_framework.entity_tree import AbstractEntityTree, build
from polymorphic_framework.storages.sqlalchemy.constructing_model.visitor import TableConstructingVisitor


@attr.s(auto_attribs=True)
class SaRegistry:
    metadata: MetaData = attr.Factory(MetaData)
    entities_to_aets: Dict[Type[Entity], AbstractEntityTree] = attr.Factory(dict)
    entities_tables: Dict[Type[Entity], Table] = attr.Factory(dict)

    def tree_for(self, entity_cls: Type[Entity]) -> AbstractEntityTree:
        if entity_cls not in self.entities_to_aets:
            self.entities_to_aets[entity_cls] = build(entity_cls)
        return self.entities_to_aets[entity_cls]

    def table_for(self, entity_cls: Type[Entity]) -> Table:
        if entity_cls not in self.entities_tables:
            visitor = TableConstructingVisitor(self.metadata)
            visitor.traverse_from(self.tree_for(entity_cls).root)
            self.entities_tables[entity_cls] = visitor.result
        return self.entities_tables[entity_cls]
