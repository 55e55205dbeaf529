from __future__ import annotations

from collections import deque
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any

import msgspec
from pydantic import BaseModel

Serializer = Callable[[Any], Any]

type TypeEncodersMap = dict[Any, Callable[[Any], Any]]


class SerializationError(Exception):
    """Encoding or decoding of an object failed."""


__all__ = (
    "SerializationError",
    "decode_json",
    "default_serializer",
    "encode_json",
    "encode_json_str",
)

DEFAULT_TYPE_ENCODERS: TypeEncodersMap = {
    PurePath: str,
    datetime: lambda val: val.isoformat(),
    date: lambda val: val.isoformat(),
    deque: list,
    Decimal: lambda val: int(val) if val.as_tuple().exponent >= 0 else float(val),
    Enum: lambda val: val.value,
    BaseModel: lambda val: val.model_dump(mode="json", by_alias=True, exclude_none=True),
    BaseException: lambda val: f"{type(val).__name__}: {val}",
}


def default_serializer(value: Any, type_encoders: TypeEncodersMap | None = None) -> Any:
    """Transform values not natively supported by ``msgspec``.

    Raises:
        TypeError: if value is not supported
    """
    type_encoders = DEFAULT_TYPE_ENCODERS if type_encoders is None else {**DEFAULT_TYPE_ENCODERS, **type_encoders}

    # SQLAlchemy rows are rendered column by column
    if hasattr(value, "__tablename__") and hasattr(value, "__table__"):
        return {c.name: getattr(value, c.name) for c in value.__table__.columns}

    for base in value.__class__.__mro__[:-1]:
        encoder = type_encoders.get(base)
        if encoder is not None:
            return encoder(value)

    raise TypeError(f"Unsupported type: {type(value)!r}")


_default_json_encoder = msgspec.json.Encoder(enc_hook=default_serializer)
_default_json_decoder = msgspec.json.Decoder()


def encode_json(value: Any, serializer: Serializer | None = None) -> bytes:
    """Encode a value into JSON bytes.

    Raises:
        SerializationError: If ``value`` cannot be encoded.
    """
    try:
        return msgspec.json.encode(value, enc_hook=serializer) if serializer else _default_json_encoder.encode(value)
    except (TypeError, msgspec.EncodeError) as msgspec_error:
        raise SerializationError(str(msgspec_error)) from msgspec_error


def encode_json_str(value: Any, serializer: Serializer | None = None) -> str:
    return encode_json(value, serializer).decode("utf-8")


def decode_json(value: str | bytes) -> Any:
    """Decode JSON into plain Python objects.

    Raises:
        SerializationError: If ``value`` is not valid JSON.
    """
    try:
        return _default_json_decoder.decode(value)
    except msgspec.DecodeError as msgspec_error:
        raise SerializationError(str(msgspec_error)) from msgspec_error
