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
Unit tests for insert_many and the chunked, concurrent insert_many_bulk
"""

from __future__ import annotations

import time
from typing import Any

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from astradocs import Collection
from astradocs.exceptions import (
    DataAPIResponseException,
    InsertManyOrderedException,
)
from astradocs.ids import ObjectId
from astradocs.utils.request_tools import HttpMethod

from .conftest import COLLECTION_PATH, json_response, recording_handler

DUPLICATE_ERROR = {
    "message": "Failed to insert document with _id 'd25': Document already exists",
    "errorCode": "DOCUMENT_ALREADY_EXISTS",
}


def make_documents(count: int) -> list[dict[str, Any]]:
    return [{"_id": f"d{i:02}", "seq": i} for i in range(count)]


def failing_insert_responder(
    failing_ids: set[str],
) -> Any:
    """
    Mimic the API: ordered chunks stop at the first failing document,
    unordered ones go past it.
    """

    def _responder(command: dict[str, Any], call_index: int) -> dict[str, Any]:
        payload = command["insertMany"]
        ordered = payload.get("options", {}).get("ordered", False)
        inserted_ids: list[Any] = []
        errors: list[dict[str, Any]] = []
        for document in payload["documents"]:
            if document["_id"] in failing_ids:
                errors.append(DUPLICATE_ERROR)
                if ordered:
                    break
            else:
                inserted_ids.append(document["_id"])
        response: dict[str, Any] = {"status": {"insertedIds": inserted_ids}}
        if errors:
            response["errors"] = errors
        return response

    return _responder


def serve_inserts(
    httpserver: HTTPServer,
    failing_ids: set[str] | None = None,
) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    httpserver.clear_all_handlers()
    httpserver.expect_request(COLLECTION_PATH, method=HttpMethod.POST).respond_with_handler(
        recording_handler(failing_insert_responder(failing_ids or set()), calls)
    )
    return calls


class TestInsertMany:
    @pytest.mark.describe("test of insert_many success and id injection")
    async def test_insert_many(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        calls = serve_inserts(httpserver)
        documents: list[dict[str, Any]] = [{"_id": "given"}, {"a": 1}]
        result = await collection.insert_many(documents)
        assert ObjectId.is_valid(documents[1]["_id"])
        assert result.inserted_ids == ["given", documents[1]["_id"]]
        assert result.inserted_count == 2
        assert calls[0]["insertMany"]["options"] == {"ordered": False}

        with pytest.raises(ValueError):
            await collection.insert_many(make_documents(21))
        assert len(calls) == 1

    @pytest.mark.describe("test of insert_many failures, ordered and unordered")
    async def test_insert_many_failures(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        serve_inserts(httpserver, failing_ids={"d02"})
        with pytest.raises(InsertManyOrderedException) as exc_info:
            await collection.insert_many(make_documents(5), ordered=True)
        exc = exc_info.value
        assert exc.inserted_ids == ["d00", "d01"]
        assert [fi.document["_id"] for fi in exc.failed_inserts] == [
            "d02",
            "d03",
            "d04",
        ]
        assert isinstance(exc.base_error, DataAPIResponseException)

        with pytest.raises(DataAPIResponseException) as u_exc_info:
            await collection.insert_many(make_documents(5), ordered=False)
        assert u_exc_info.value.inserted_ids == ["d00", "d01", "d03", "d04"]


class TestInsertManyBulk:
    @pytest.mark.describe("test of insert_many_bulk, all succeeding")
    async def test_insert_many_bulk_success(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        calls = serve_inserts(httpserver)
        documents = make_documents(45) + [{"no_id": True}]
        result = await collection.insert_many_bulk(documents, parallel=3)
        assert len(calls) == 3
        assert sorted(len(call["insertMany"]["documents"]) for call in calls) == [
            6,
            20,
            20,
        ]
        assert result.inserted_count == 46
        assert result.failed_count == 0
        assert "_id" in documents[-1]
        assert set(result.inserted_ids) == {document["_id"] for document in documents}
        assert len(result.raw_results) == 3

    @pytest.mark.describe("test of ordered insert_many_bulk stopping at a failure")
    async def test_insert_many_bulk_ordered_short_circuit(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        calls = serve_inserts(httpserver, failing_ids={"d25"})
        documents = make_documents(41)
        result = await collection.insert_many_bulk(documents, ordered=True)

        assert len(calls) == 2
        assert all(call["insertMany"]["options"] == {"ordered": True} for call in calls)
        assert result.inserted_ids == [f"d{i:02}" for i in range(25)]
        assert [fi.document["_id"] for fi in result.failed_inserts] == [
            f"d{i:02}" for i in range(25, 41)
        ]
        assert result.failed_inserts[0].errors == [DUPLICATE_ERROR]
        assert result.inserted_count + result.failed_count == len(documents)

    @pytest.mark.describe("test of unordered insert_many_bulk reconciliation")
    async def test_insert_many_bulk_unordered_reconciliation(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        calls = serve_inserts(httpserver, failing_ids={"d25", "d41"})
        documents = make_documents(45)
        result = await collection.insert_many_bulk(documents, parallel=2)

        assert len(calls) == 3
        assert result.inserted_count == 43
        assert sorted(fi.document["_id"] for fi in result.failed_inserts) == [
            "d25",
            "d41",
        ]
        inserted = set(result.inserted_ids)
        failed = {fi.document["_id"] for fi in result.failed_inserts}
        assert inserted.isdisjoint(failed)
        assert inserted | failed == {document["_id"] for document in documents}

    @pytest.mark.describe("test of insert_many_bulk with a whole chunk failing")
    async def test_insert_many_bulk_chunk_failure(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        def _handler(request: werkzeug.Request) -> werkzeug.Response:
            return json_response({"detail": "unavailable"}, status=503)

        httpserver.expect_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_handler(_handler)
        result = await collection.insert_many_bulk(make_documents(30))
        assert result.inserted_ids == []
        assert result.failed_count == 30
        assert result.failed_inserts[0].errors == [
            {"message": "Server response received : 503!"}
        ]

    @pytest.mark.describe("test of insert_many_bulk with a chunk timing out")
    async def test_insert_many_bulk_timeout(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        def _sleeper(request: werkzeug.Request) -> werkzeug.Response:
            time.sleep(0.5)
            return json_response({"status": {"insertedIds": []}})

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_handler(_sleeper)
        result = await collection.insert_many_bulk(make_documents(3), timeout_ms=100)
        assert result.failed_count == 3
        assert result.failed_inserts[0].errors == [{"message": "Command timed out"}]

    @pytest.mark.describe("test of insert_many_bulk argument validation")
    async def test_insert_many_bulk_validation(
        self, httpserver: HTTPServer, collection: Collection
    ) -> None:
        calls = serve_inserts(httpserver)
        with pytest.raises(ValueError):
            await collection.insert_many_bulk(make_documents(3), ordered=True, parallel=2)
        with pytest.raises(ValueError):
            await collection.insert_many_bulk(make_documents(3), parallel=0)
        assert calls == []

        result = await collection.insert_many_bulk(
            make_documents(3), ordered=True, parallel=1
        )
        assert result.inserted_count == 3

        empty_result = await collection.insert_many_bulk([])
        assert empty_result.inserted_ids == []
        assert empty_result.failed_inserts == []
        assert len(calls) == 1
