from typing import List

import attr
from sqlalchemy import Column, MetaData, Table


@attr.s(auto_attribs=True)
class RawTable:
    name: str
    columns: List[Column] = attr.Factory(list)

    def append_column(self, column: Column) -> None:
        self.columns.append(column)

    def materialize(self, metadata: MetaData) -> Table:
        return Table(self.name, metadata, *self.columns)
