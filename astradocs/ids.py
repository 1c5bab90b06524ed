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

from uuid import UUID, uuid1, uuid3, uuid4, uuid5

from bson import Binary, Decimal128, Int64, ObjectId
from uuid6 import uuid6, uuid7, uuid8

from astradocs.constants import DefaultIdType


def generate_default_id(default_id_type: str = DefaultIdType.DEFAULT) -> str:
    """
    Produce a fresh, globally-unique identifier in its string form,
    suitable for use as a document `_id`.

    Args:
        default_id_type: one of the `DefaultIdType` values.

    Returns:
        the identifier as a string (a 24-char hex for ObjectId, the hyphenated
        form for UUIDs).
    """
    if default_id_type == DefaultIdType.OBJECTID:
        return str(ObjectId())
    elif default_id_type == DefaultIdType.UUID:
        return str(uuid4())
    elif default_id_type == DefaultIdType.UUIDV6:
        return str(uuid6())
    elif default_id_type == DefaultIdType.UUIDV7:
        return str(uuid7())
    raise ValueError(f"Unsupported default id type: '{default_id_type}'.")


__all__ = [
    "Binary",
    "Decimal128",
    "Int64",
    "ObjectId",
    "UUID",
    "generate_default_id",
    "uuid1",
    "uuid3",
    "uuid4",
    "uuid5",
    "uuid6",
    "uuid7",
    "uuid8",
]
