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
import re
from dataclasses import replace
from types import TracebackType
from typing import Any

import deprecation

from astradocs import __version__
from astradocs.collection import Collection
from astradocs.database import Database
from astradocs.settings.defaults import (
    DEFAULT_ASTRA_API_PATH,
    DEFAULT_KEYSPACE,
    KEYSPACE_NAME_PATTERN,
)
from astradocs.utils.api_commander import APICommander
from astradocs.utils.api_options import ClientOptions, defaultClientOptions
from astradocs.utils.request_tools import set_package_log_level
from astradocs.utils.uri import parse_uri

logger = logging.getLogger(__name__)


class Client:
    """
    A client for a Data API endpoint: the entry point to reach keyspaces
    (`Database` objects) and their collections.

    All objects spawned from a client share its connections, which are
    released by `close()` (or by exiting an `async with` block).

    Args:
        base_url: the endpoint, e.g. "http://localhost:8181".
        keyspace: the keyspace for the default database.
        options: a ClientOptions object. The `application_token` is required.

    Example:
        >>> client = Client.connect("http://localhost:8181/v1/ks?applicationToken=T")
        >>> async with client:
        ...     coll = client.collection("my_collection")
        ...     await coll.insert_one({"a": 1})
    """

    def __init__(
        self,
        base_url: str,
        keyspace: str | None = None,
        options: ClientOptions | None = None,
    ) -> None:
        if options is None or not options.application_token:
            raise ValueError("Application Token is required")
        self._options = defaultClientOptions.with_override(options)
        if self._options.log_level is not None:
            set_package_log_level(self._options.log_level)
        self._keyspace = keyspace or DEFAULT_KEYSPACE
        self._api_commander = APICommander(
            base_url=base_url,
            token=self._options.application_token,
            options=self._options,
        )
        self._database = Database(self._api_commander, self._keyspace)

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(base_url="{self._api_commander.base_url}", '
            f'keyspace="{self._keyspace}")'
        )

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self.close()

    @classmethod
    def connect(cls, uri: str, options: ClientOptions | None = None) -> Client:
        """
        Create a client out of a connection URI, such as
        "https://host/api/json/v1/my_keyspace?applicationToken=...".

        Token, API path and log level found in the URI apply unless
        `options` sets them.
        """
        parsed_uri = parse_uri(uri)
        uri_options = ClientOptions(
            application_token=parsed_uri.application_token,
            base_api_path=parsed_uri.base_api_path or None,
            log_level=parsed_uri.log_level,
        )
        full_options = defaultClientOptions.with_override(uri_options).with_override(
            options
        )
        logger.info(f"connecting to {parsed_uri.base_url}")
        return cls(parsed_uri.base_url, parsed_uri.keyspace_name, full_options)

    @property
    def namespace(self) -> str:
        """The keyspace of the default database."""
        return self._keyspace

    @property
    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="0.2.0",
        removed_in="1.0.0",
        current_version=__version__,
        details="Use `namespace` instead.",
    )
    def keyspace_name(self) -> str:
        return self._keyspace

    @property
    def options(self) -> ClientOptions:
        return self._options

    @property
    def closed(self) -> bool:
        return self._api_commander.closed

    def db(self, name: str | None = None) -> Database:
        """
        Get a Database object: the default one if no name is given,
        otherwise one for the named keyspace (sharing this client's
        connections).
        """
        if name:
            return Database(self._api_commander, name)
        return self._database

    def collection(self, name: str) -> Collection:
        """A collection in the default database."""
        return self.db().collection(name)

    async def create_collection(
        self,
        name: str,
        *,
        vector: dict[str, Any] | None = None,
        indexing: dict[str, Any] | None = None,
    ) -> Collection:
        return await self.db().create_collection(
            name, vector=vector, indexing=indexing
        )

    async def drop_collection(self, name: str) -> bool:
        return await self.db().drop_collection(name)

    async def list_collections(
        self, *, name_only: bool = True
    ) -> list[dict[str, Any]]:
        return await self.db().list_collections(name_only=name_only)

    async def close(self) -> None:
        """
        Release the connections of this client. All objects spawned from it
        become unusable: requests would raise ClientClosedException.
        """
        await self._api_commander.close()

    def start_session(self) -> None:
        raise NotImplementedError("start_session() not implemented")


class AstraDB(Client):
    """
    A client for an Astra DB database, given its API endpoint and a token.

    Args:
        token: an Astra DB application token ("AstraCS:...").
        endpoint: the API Endpoint of the database.
        keyspace: the keyspace of the default database, "default_keyspace"
            if not given. Must be 1 to 48 letters, digits or underscores.
        options: further client options. The API path defaults to
            "api/json/v1".
    """

    def __init__(
        self,
        token: str,
        endpoint: str,
        keyspace: str | None = None,
        options: ClientOptions | None = None,
    ) -> None:
        _keyspace = keyspace if keyspace is not None else DEFAULT_KEYSPACE
        if not re.match(KEYSPACE_NAME_PATTERN, _keyspace):
            raise ValueError(
                f"Invalid keyspace name '{_keyspace}': it must be 1 to 48 "
                "letters, digits or underscores."
            )
        _options = options if options is not None else ClientOptions()
        astra_options = replace(
            _options,
            application_token=token,
            base_api_path=(
                _options.base_api_path
                if _options.base_api_path is not None
                else DEFAULT_ASTRA_API_PATH
            ),
        )
        super().__init__(endpoint, _keyspace, astra_options)
