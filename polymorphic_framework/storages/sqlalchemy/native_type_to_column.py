import datetime
import decimal
import typing
import uuid

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, Numeric, String, Uuid


mapping = {
    int: Integer,
    str: String(255),
    uuid.UUID: Uuid,
    float: Float,
    bool: Boolean,
    datetime.datetime: DateTime,
    datetime.date: Date,
    decimal.Decimal: Numeric,
}


def convert(arg: typing.Type) -> typing.Any:
    try:
        return mapping[arg]
    except KeyError:
        raise TypeError(f"Unsupported type - {arg}")
