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

import logging
from typing import Any

from astradocs.collection import Collection
from astradocs.commands import Commands, make_command
from astradocs.utils.api_commander import APICommander

logger = logging.getLogger(__name__)


class Database:
    """
    A keyspace ("namespace") on a Data API endpoint, where collections live.

    Get one through `Client.db()` rather than instantiating it directly.

    Args:
        client_commander: the API commander of the client, targeting the
            endpoint without any keyspace.
        name: the keyspace name.
    """

    def __init__(self, client_commander: APICommander, name: str) -> None:
        if not name:
            raise ValueError("Database: name is required")
        self._name = name
        self._client_commander = client_commander
        self._api_commander = client_commander._copy(keyspace=name)

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(namespace="{self.namespace}", '
            f'endpoint="{self._api_commander.base_url}")'
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Database):
            return all(
                [
                    self._name == other._name,
                    self._api_commander == other._api_commander,
                ]
            )
        else:
            return False

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> str:
        """The keyspace this object works on."""
        return self._name

    def collection(self, name: str) -> Collection:
        """
        Get a Collection object for the given name. No API call is made:
        the collection is not checked for existence.
        """
        return Collection(self, name)

    async def create_collection(
        self,
        name: str,
        *,
        vector: dict[str, Any] | None = None,
        indexing: dict[str, Any] | None = None,
        timeout_ms: int | None = None,
    ) -> Collection:
        """
        Create a collection in this keyspace and return it.

        Args:
            name: the collection name.
            vector: the vector settings, e.g.
                `{"dimension": 5, "metric": "cosine"}`.
            indexing: the indexing settings, e.g. `{"deny": ["blob"]}`.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            a Collection object.

        Example:
            >>> await database.create_collection("vectors", vector={"dimension": 3})
            Collection(name="vectors", keyspace="default_keyspace", ...)
        """

        command = make_command(
            Commands.CREATE_COLLECTION,
            name=name,
            options={"vector": vector, "indexing": indexing},
        )
        logger.info(f"createCollection('{name}')")
        await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished createCollection('{name}')")
        return self.collection(name)

    async def drop_collection(
        self, name: str, *, timeout_ms: int | None = None
    ) -> bool:
        """
        Drop a collection. Returns True if the API acknowledged with `ok: 1`.
        """
        command = make_command(Commands.DELETE_COLLECTION, name=name)
        logger.info(f"deleteCollection('{name}')")
        response = await self._api_commander.request(
            command, timeout_ms=timeout_ms, raise_api_errors=False
        )
        logger.info(f"finished deleteCollection('{name}')")
        return (response.status or {}).get("ok") == 1 and not response.is_error

    async def list_collections(
        self,
        *,
        name_only: bool = True,
        timeout_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        List the collections in this keyspace.

        Args:
            name_only: if True, each entry is just `{"name": ...}`; otherwise
                the entries carry the collection options as well.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            a list of dictionaries, one per collection.
        """

        command = make_command(
            Commands.FIND_COLLECTIONS,
            options={"explain": not name_only},
        )
        logger.info("findCollections")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info("finished findCollections")
        collections = (response.status or {}).get("collections") or []
        return [
            {"name": collection} if isinstance(collection, str) else collection
            for collection in collections
        ]

    async def list_collection_names(
        self, *, timeout_ms: int | None = None
    ) -> list[str]:
        """The names of the collections in this keyspace."""
        return [
            collection_info["name"]
            for collection_info in await self.list_collections(
                name_only=True, timeout_ms=timeout_ms
            )
        ]

    async def create_database(self, *, timeout_ms: int | None = None) -> bool:
        """
        Create the keyspace this object refers to (if the endpoint allows it).
        Returns True if the API acknowledged.
        """
        command = make_command(Commands.CREATE_NAMESPACE, name=self._name)
        logger.info(f"createNamespace('{self._name}')")
        response = await self._client_commander.request(
            command, timeout_ms=timeout_ms
        )
        logger.info(f"finished createNamespace('{self._name}')")
        return (response.status or {}).get("ok") == 1

    async def drop_database(self) -> None:
        raise NotImplementedError(
            "Cannot drop database in Astra. Please use the Astra UI to drop "
            "the database."
        )
