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

from typing import Any, Dict, Iterable, Optional, Tuple, TypeVar, Union

DocumentType = Dict[str, Any]
ProjectionType = Union[Iterable[str], Dict[str, Any]]
SortType = Dict[str, Any]
FilterType = Dict[str, Any]
CommandType = Dict[str, Dict[str, Any]]
CallerType = Tuple[Optional[str], Optional[str]]


T = TypeVar("T")
TNEW = TypeVar("TNEW")


def normalize_optional_projection(
    projection: ProjectionType | None,
) -> dict[str, Any] | None:
    if projection:
        if isinstance(projection, dict):
            return projection
        else:
            # an iterable over strings: coerce to allow-list projection
            return {field: True for field in projection}
    else:
        return None


class ReturnDocument:
    """
    Admitted values for the `return_document` parameter in
    `find_one_and_replace` and `find_one_and_update` collection
    methods.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    BEFORE = "before"
    AFTER = "after"


class SortMode:
    """
    Admitted values for the `sort` parameter in the find collection methods,
    e.g. `sort={"field": SortMode.ASCENDING}`.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    ASCENDING = 1
    DESCENDING = -1


class DefaultIdType:
    """
    Admitted values for the `default_id_type` client option, i.e. the kind
    of identifier generated for documents inserted without an `_id`.
    """

    def __init__(self) -> None:
        raise NotImplementedError

    OBJECTID = "objectId"
    UUID = "uuid"
    UUIDV6 = "uuidv6"
    UUIDV7 = "uuidv7"
    DEFAULT = "objectId"
