"""Report codecs.

A serializer turns one report payload into bytes and back. Reports are
written without key sorting: the builders already emit keys in their
contractual order (sorted ids, reverse dependency ranking) and the codec
must not reshuffle them. Non-string keys (integer line numbers in coverage
detail) are encoded as strings and load back as strings.
"""

from __future__ import annotations

from typing import Any, Dict, Protocol, Type

import orjson

from .errors import SerializerError


class Serializer(Protocol):
    NAME: str
    EXTENSION: str
    ENCODING: str

    def serialize(self, data: Any) -> bytes: ...

    def deserialize(self, payload: bytes) -> Any: ...


class JsonSerializer:
    NAME = "json"
    EXTENSION = "json"
    ENCODING = "utf-8"
    _OPTIONS = orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS

    def serialize(self, data: Any) -> bytes:
        return orjson.dumps(data, option=self._OPTIONS)

    def deserialize(self, payload: bytes) -> Any:
        return orjson.loads(payload)


class PrettyJsonSerializer(JsonSerializer):
    NAME = "pretty-json"
    _OPTIONS = (
        orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS | orjson.OPT_INDENT_2 | orjson.OPT_APPEND_NEWLINE
    )


SERIALIZERS: Dict[str, Type[JsonSerializer]] = {
    JsonSerializer.NAME: JsonSerializer,
    PrettyJsonSerializer.NAME: PrettyJsonSerializer,
}


def get_serializer(name: str) -> Serializer:
    try:
        return SERIALIZERS[name]()
    except KeyError:
        raise SerializerError(
            "unknown serializer", {"name": name, "known": ",".join(sorted(SERIALIZERS))}
        ) from None
