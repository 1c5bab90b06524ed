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

from typing import Any

from astradocs.constants import DefaultIdType, DocumentType
from astradocs.ids import generate_default_id


def set_default_id_for_insert(
    document: DocumentType,
    default_id_type: str = DefaultIdType.DEFAULT,
) -> Any:
    """
    Give the document a freshly-generated `_id` if it has none (or a None one).
    The document is modified in place, so that the caller sees the `_id`.

    Returns:
        the `_id` of the document, whether pre-existing or new.
    """
    if document.get("_id") is None:
        document["_id"] = generate_default_id(default_id_type)
    return document["_id"]


def _update_sets_field(update: dict[str, Any], field_name: str) -> bool:
    return any(
        isinstance(operand, dict) and field_name in operand
        for operand in update.values()
    )


def set_default_id_for_upsert(
    payload: dict[str, Any],
    replace: bool = False,
    default_id_type: str = DefaultIdType.DEFAULT,
) -> None:
    """
    Make an upserting command payload carry an `_id` for the document it
    may create, unless the filter or the update/replacement already pins it.
    The payload is modified in place.

    Nothing happens unless `options.upsert` is set and the filter has no `_id`.
    For a replacement the `_id` goes into the replacement document, otherwise
    an `$setOnInsert: {"_id": ...}` is added to the update (unless an update
    operator already sets `_id`).

    Args:
        payload: the inner part of an updateOne/updateMany/findOneAndUpdate
            or findOneAndReplace command.
        replace: whether this is a findOneAndReplace payload.
        default_id_type: the kind of `_id` to generate.
    """
    filter = payload.get("filter")
    if filter is None or "_id" in filter:
        return
    if not (payload.get("options") or {}).get("upsert"):
        return

    if replace:
        replacement = payload.get("replacement")
        if replacement is not None and "_id" in replacement:
            return
        if replacement is None:
            replacement = payload["replacement"] = {}
        replacement["_id"] = generate_default_id(default_id_type)
        return

    update = payload.get("update")
    if update is not None and _update_sets_field(update, "_id"):
        return
    if update is None:
        update = payload["update"] = {}
    set_on_insert = update.setdefault("$setOnInsert", {})
    if "_id" not in set_on_insert:
        set_on_insert["_id"] = generate_default_id(default_id_type)
