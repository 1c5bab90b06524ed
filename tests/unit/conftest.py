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
Fixtures and helpers for the unit tests: everything runs against a local
mock HTTP server (pytest-httpserver) standing in for the Data API.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Callable

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from astradocs import Client, ClientOptions, Collection

TEST_TOKEN = "AstraCS:test-token"
TEST_KEYSPACE = "test_ks"
TEST_COLLECTION_NAME = "test_coll"
COLLECTION_PATH = f"/{TEST_KEYSPACE}/{TEST_COLLECTION_NAME}"
KEYSPACE_PATH = f"/{TEST_KEYSPACE}"

HandlerType = Callable[[werkzeug.Request], werkzeug.Response]


def request_payload(request: werkzeug.Request) -> dict[str, Any]:
    return json.loads(request.get_data(as_text=True))  # type: ignore[no-any-return]


def json_response(body: dict[str, Any], status: int = 200) -> werkzeug.Response:
    return werkzeug.Response(
        json.dumps(body),
        status=status,
        content_type="application/json",
    )


def recording_handler(
    responder: Callable[[dict[str, Any], int], dict[str, Any]],
    calls: list[dict[str, Any]],
) -> HandlerType:
    """
    A handler recording each received command into `calls`, and answering
    with what `responder(command, call_index)` returns.
    """

    def _handler(request: werkzeug.Request) -> werkzeug.Response:
        command = request_payload(request)
        call_index = len(calls)
        calls.append(command)
        return json_response(responder(command, call_index))

    return _handler


def paginating_handler(
    documents: list[dict[str, Any]],
    calls: list[dict[str, Any]],
) -> HandlerType:
    """
    A handler serving `find` commands over a fixed list of documents,
    with page size given by the `limit` option and an index-based
    paging state.
    """

    def _responder(command: dict[str, Any], call_index: int) -> dict[str, Any]:
        options = command["find"].get("options", {})
        page_size = options["limit"]
        if "pagingState" in options:
            start = int(options["pagingState"])
        else:
            start = options.get("skip", 0)
        end = start + page_size
        next_page_state = str(end) if end < len(documents) else None
        return {
            "data": {
                "documents": documents[start:end],
                "nextPageState": next_page_state,
            }
        }

    return recording_handler(_responder, calls)


@pytest.fixture
async def client(httpserver: HTTPServer) -> AsyncIterator[Client]:
    client = Client(
        httpserver.url_for("/"),
        TEST_KEYSPACE,
        ClientOptions(application_token=TEST_TOKEN, use_http2=False),
    )
    yield client
    await client.close()


@pytest.fixture
def collection(client: Client) -> Collection:
    return client.collection(TEST_COLLECTION_NAME)
