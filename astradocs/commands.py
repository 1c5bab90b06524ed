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

"""
Names of the Data API commands, the options each of them accepts,
and a helper to build command dictionaries.
"""

from __future__ import annotations

from typing import Any, FrozenSet


class Commands:
    def __init__(self) -> None:
        raise NotImplementedError

    INSERT_ONE = "insertOne"
    INSERT_MANY = "insertMany"
    UPDATE_ONE = "updateOne"
    UPDATE_MANY = "updateMany"
    DELETE_ONE = "deleteOne"
    DELETE_MANY = "deleteMany"
    FIND = "find"
    FIND_ONE = "findOne"
    FIND_ONE_AND_UPDATE = "findOneAndUpdate"
    FIND_ONE_AND_REPLACE = "findOneAndReplace"
    FIND_ONE_AND_DELETE = "findOneAndDelete"
    COUNT_DOCUMENTS = "countDocuments"
    CREATE_COLLECTION = "createCollection"
    DELETE_COLLECTION = "deleteCollection"
    FIND_COLLECTIONS = "findCollections"
    CREATE_NAMESPACE = "createNamespace"


# The option keys the API accepts, per command. Anything else is dropped.
OPTION_KEYS_BY_COMMAND: dict[str, FrozenSet[str]] = {
    Commands.INSERT_MANY: frozenset({"ordered"}),
    Commands.UPDATE_ONE: frozenset({"upsert"}),
    Commands.UPDATE_MANY: frozenset({"upsert"}),
    Commands.FIND_ONE: frozenset({"includeSimilarity"}),
    Commands.FIND_ONE_AND_UPDATE: frozenset({"returnDocument", "upsert"}),
    Commands.FIND_ONE_AND_REPLACE: frozenset({"returnDocument", "upsert"}),
    Commands.FIND: frozenset({"limit", "skip", "pagingState", "includeSimilarity"}),
    Commands.CREATE_COLLECTION: frozenset({"vector", "indexing"}),
    Commands.FIND_COLLECTIONS: frozenset({"explain"}),
}


def option_keys_for(command_name: str) -> FrozenSet[str] | None:
    """The allowed option keys for a command, None if it has no allow-list."""
    return OPTION_KEYS_BY_COMMAND.get(command_name)


def make_command(command_name: str, **kwargs: Any) -> dict[str, dict[str, Any]]:
    """
    Build a command, leaving out the payload keys whose value is None.
    The same applies to the entries of "options", which is omitted
    altogether if nothing is left in it.

    Example:
        >>> make_command("deleteOne", filter={"a": 1}, sort=None)
        {'deleteOne': {'filter': {'a': 1}}}
    """
    payload: dict[str, Any] = {}
    for key, value in kwargs.items():
        if key == "options" and isinstance(value, dict):
            value = {ok: ov for ok, ov in value.items() if ov is not None} or None
        if value is not None:
            payload[key] = value
    return {command_name: payload}
