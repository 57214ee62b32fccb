import typing

import attr


@attr.s(auto_attribs=True, frozen=True)
class AnyOf:
    """Matches a column against any of the given values."""

    values: typing.FrozenSet[typing.Any] = attr.ib(converter=frozenset)

    def __contains__(self, value: typing.Any) -> bool:
        return value in self.values

    def __len__(self) -> int:
        return len(self.values)


Criteria = typing.Mapping[str, typing.Any]


def matches(row: typing.Mapping[str, typing.Any], criteria: typing.Optional[Criteria]) -> bool:
    for column, expected in (criteria or {}).items():
        value = row[column]
        if isinstance(expected, AnyOf):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True
