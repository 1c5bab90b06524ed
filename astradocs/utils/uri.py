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

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from astradocs.settings.defaults import DEFAULT_ASTRA_API_PATH


@dataclass
class ParsedUri:
    """
    The pieces of a connection URI of the form
    `https://<host>[/<base api path>]/<keyspace>?applicationToken=...&logLevel=...`.

    Attributes:
        base_url: scheme and host (and port) of the URI.
        base_api_path: the path between host and keyspace, without
            surrounding slashes. Empty if none.
        keyspace_name: the last segment of the path.
        application_token: the `applicationToken` query parameter, if any.
        log_level: the `logLevel` query parameter, if any.
    """

    base_url: str
    base_api_path: str
    keyspace_name: str
    application_token: str | None
    log_level: str | None


def _first_query_value(query: dict[str, list[str]], key: str) -> str | None:
    values = query.get(key)
    return values[0] if values else None


def parse_uri(uri: str) -> ParsedUri:
    """
    Split a connection URI into its components.

    Example:
        >>> parse_uri("https://host.io/api/json/v1/my_ks?applicationToken=AstraCS:x")
        ParsedUri(base_url='https://host.io', base_api_path='api/json/v1', keyspace_name='my_ks', application_token='AstraCS:x', log_level=None)

    Raises:
        ValueError: if the URI has no keyspace in its path.
    """
    split_uri = urlsplit(uri)
    path_elements = split_uri.path.split("/")
    keyspace_name = path_elements[-1]
    if not keyspace_name:
        raise ValueError("Invalid URI: keyspace is required")
    base_api_path = "/".join(pe for pe in path_elements[:-1] if pe)
    query = parse_qs(split_uri.query)
    return ParsedUri(
        base_url=f"{split_uri.scheme}://{split_uri.netloc}",
        base_api_path=base_api_path,
        keyspace_name=keyspace_name,
        application_token=_first_query_value(query, "applicationToken"),
        log_level=_first_query_value(query, "logLevel"),
    )


def create_astra_uri(
    api_endpoint: str,
    keyspace: str,
    application_token: str | None = None,
    base_api_path: str | None = None,
    log_level: str | None = None,
) -> str:
    """
    Compose a connection URI for an Astra DB database, suitable for
    `Client.connect`.

    Args:
        api_endpoint: the API Endpoint of the database,
            such as "https://<id>-<region>.apps.astra.datastax.com".
        keyspace: the keyspace to work in.
        application_token: a token, added to the URI if provided.
        base_api_path: the API path, "api/json/v1" if not provided.
        log_level: a log level name, added to the URI if provided.

    Returns:
        the URI as a string.
    """
    split_endpoint = urlsplit(api_endpoint)
    api_path = (base_api_path or DEFAULT_ASTRA_API_PATH).strip("/")
    query_params = {
        k: v
        for k, v in (
            ("applicationToken", application_token),
            ("logLevel", log_level),
        )
        if v
    }
    return urlunsplit(
        (
            split_endpoint.scheme,
            split_endpoint.netloc,
            f"/{api_path}/{keyspace}",
            urlencode(query_params),
            "",
        )
    )
