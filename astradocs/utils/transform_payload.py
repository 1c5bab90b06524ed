# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import base64
import datetime
import json
import math
from decimal import Decimal
from typing import Any, Dict, cast

from bson import Binary, Decimal128, ObjectId

from astradocs.ids import UUID

UUID_BINARY_SUBTYPES = {3, 4}
UUID_BINARY_SUBTYPE_STRINGS = {"03", "04", "3", "4"}
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
ONE_MILLISECOND = datetime.timedelta(milliseconds=1)


def _hyphenated_uuid_from_bytes(uuid_bytes: bytes) -> str:
    return str(UUID(bytes=uuid_bytes))


def _decimal_to_wire(value: Any) -> float:
    """Decimals travel as JSON numbers, hence must fit a double."""
    as_float = float(value)
    if not math.isfinite(as_float):
        raise ValueError(
            f"Decimal value {value!r} cannot be sent to the API: "
            "it does not fit a finite JSON number."
        )
    return as_float


def convert_to_ejson_date_object(
    date_value: datetime.date | datetime.datetime,
) -> dict[str, int]:
    """
    Dates travel as epoch milliseconds. Naive datetimes are taken to be UTC,
    plain dates are taken at midnight UTC.
    """
    if isinstance(date_value, datetime.datetime):
        if date_value.tzinfo is None:
            date_value = date_value.replace(tzinfo=datetime.timezone.utc)
        return {"$date": (date_value - EPOCH) // ONE_MILLISECOND}
    midnight = datetime.datetime(
        date_value.year,
        date_value.month,
        date_value.day,
        tzinfo=datetime.timezone.utc,
    )
    return {"$date": (midnight - EPOCH) // ONE_MILLISECOND}


def convert_ejson_date_object_to_datetime(
    date_object: dict[str, Any],
) -> datetime.datetime:
    return EPOCH + datetime.timedelta(milliseconds=int(date_object["$date"]))


def _normalize_extended_dict(value: dict[str, Any]) -> Any:
    """
    Handle the extended-JSON spellings of special values a caller may pass
    in place of the native objects. Returns the value unchanged if not one.
    """
    if len(value) != 1:
        return value
    key, inner = next(iter(value.items()))
    if key == "$oid" and isinstance(inner, str):
        return inner
    if key == "$numberDecimal":
        return _decimal_to_wire(inner)
    if key == "$numberLong":
        return int(inner)
    if key == "$binary" and isinstance(inner, dict):
        if str(inner.get("subType")) in UUID_BINARY_SUBTYPE_STRINGS:
            return _hyphenated_uuid_from_bytes(base64.b64decode(inner["base64"]))
        return {"$binary": inner["base64"]}
    if key == "$date" and not isinstance(inner, (int, float)):
        if isinstance(inner, str):
            parsed = datetime.datetime.fromisoformat(inner.replace("Z", "+00:00"))
            return convert_to_ejson_date_object(parsed)
        if isinstance(inner, dict) and "$numberLong" in inner:
            return {"$date": int(inner["$numberLong"])}
    return value


def to_wire_value(value: Any) -> Any:
    """
    Recursively convert a value into something that the JSON encoder can
    write as is, the way the Data API expects special types to look like.
    """
    if isinstance(value, dict):
        normalized = _normalize_extended_dict(value)
        if normalized is not value:
            return normalized
        return {k: to_wire_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return [to_wire_value(v) for v in value]
    elif isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    elif isinstance(value, int):
        # bson.Int64 and arbitrarily large ints: JSON numbers, exact.
        return int(value)
    elif isinstance(value, float):
        return value
    elif isinstance(value, Decimal128):
        return _decimal_to_wire(value.to_decimal())
    elif isinstance(value, Decimal):
        return _decimal_to_wire(value)
    elif isinstance(value, ObjectId):
        return str(value)
    elif isinstance(value, UUID):
        return str(value)
    elif isinstance(value, Binary):
        if value.subtype in UUID_BINARY_SUBTYPES:
            return _hyphenated_uuid_from_bytes(bytes(value))
        return {"$binary": base64.b64encode(bytes(value)).decode()}
    elif isinstance(value, (bytes, bytearray)):
        return {"$binary": base64.b64encode(bytes(value)).decode()}
    elif isinstance(value, (datetime.datetime, datetime.date)):
        return convert_to_ejson_date_object(value)
    raise TypeError(
        f"Object of type {type(value).__name__} cannot be serialized for the API."
    )


def serialize_command(command: Any, pretty: bool = False) -> str:
    """
    Encode a command (or any document) into the JSON text sent over the wire.

    Args:
        command: the value to encode, usually a single-key command dictionary.
        pretty: if True, the output is indented. For diagnostic logging only.

    Returns:
        a JSON string.
    """
    wire_value = to_wire_value(command)
    if pretty:
        return json.dumps(wire_value, allow_nan=False, ensure_ascii=False, indent=2)
    return json.dumps(
        wire_value,
        allow_nan=False,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def id_key(id_value: Any) -> str:
    """
    A hashable key for a document `_id`, the same for all representations
    that travel identically on the wire (e.g. an ObjectId and its hex string).
    """
    return json.dumps(to_wire_value(id_value), sort_keys=True)


def _decode_extended_dict(value: dict[str, Any]) -> Any:
    if len(value) == 1:
        key, inner = next(iter(value.items()))
        if key == "$date":
            return convert_ejson_date_object_to_datetime(value)
        if key in {"$oid", "$objectId"} and isinstance(inner, str):
            return ObjectId(inner)
        if key == "$uuid" and isinstance(inner, str):
            return UUID(inner)
        if key == "$numberDecimal":
            return Decimal128(str(inner))
        if key == "$numberLong":
            return int(inner)
        if key == "$binary":
            if isinstance(inner, str):
                return base64.b64decode(inner)
            if isinstance(inner, dict):
                raw_bytes = base64.b64decode(inner["base64"])
                if str(inner.get("subType")) in UUID_BINARY_SUBTYPE_STRINGS:
                    return UUID(bytes=raw_bytes)
                return raw_bytes
    return {k: deserialize(v) for k, v in value.items()}


def deserialize(data: Any) -> Any:
    """
    Decode a payload received from the API, restoring the native types of
    the extended values found in it. Empty payloads are returned unchanged.
    """
    if not data:
        return data
    if isinstance(data, dict):
        return _decode_extended_dict(cast(Dict[str, Any], data))
    elif isinstance(data, list):
        return [deserialize(item) for item in data]
    return data
