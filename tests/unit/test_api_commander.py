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

import datetime
import logging
import time

import pytest
import werkzeug
from pytest_httpserver import HTTPServer

from astradocs import __version__
from astradocs.exceptions import (
    ClientClosedException,
    DataAPIResponseException,
    DataAPITimeoutException,
)
from astradocs.ids import ObjectId
from astradocs.settings.defaults import (
    AUTHENTICATION_FAILED_MESSAGE,
    INVALID_TOKEN_SERVER_MESSAGE,
)
from astradocs.utils.api_commander import APICommander
from astradocs.utils.api_options import FullClientOptions
from astradocs.utils.request_strategies import HTTP1Strategy
from astradocs.utils.request_tools import HttpMethod
from astradocs.utils.user_agents import compose_user_agent, identity_headers

from .conftest import COLLECTION_PATH, TEST_COLLECTION_NAME, TEST_KEYSPACE

SLEEPER_TIME_MS = 500
TIMEOUT_PARAM_MS = 100


def response_sleeper(request: werkzeug.Request) -> werkzeug.Response:
    time.sleep(SLEEPER_TIME_MS / 1000)
    return werkzeug.Response("{}")


def make_commander(
    httpserver: HTTPServer,
    *,
    log_skipped_options: bool = False,
) -> APICommander:
    return APICommander(
        base_url=httpserver.url_for("/"),
        token="tkn",
        keyspace=TEST_KEYSPACE,
        collection=TEST_COLLECTION_NAME,
        options=FullClientOptions(
            use_http2=False,
            log_skipped_options=log_skipped_options,
            callers=[("cn0", "cv0")],
        ),
    )


class TestAPICommander:
    @pytest.mark.describe("test of APICommander construction and copies")
    async def test_apicommander_construction(self, httpserver: HTTPServer) -> None:
        with pytest.raises(ValueError):
            APICommander(base_url="", token="tkn")
        with pytest.raises(ValueError):
            APICommander(base_url="http://x", token=None)

        cmd = make_commander(httpserver)
        assert isinstance(cmd.strategy, HTTP1Strategy)
        assert cmd.full_path.endswith(COLLECTION_PATH)

        cmd_ks = cmd._copy(keyspace="other_ks")
        assert cmd_ks.keyspace == "other_ks"
        assert cmd_ks.collection is None
        assert cmd_ks.strategy is cmd.strategy
        assert cmd_ks != cmd
        assert cmd_ks._copy(collection=TEST_COLLECTION_NAME)._copy(
            keyspace=TEST_KEYSPACE, collection=TEST_COLLECTION_NAME
        ) == cmd
        await cmd.close()

    @pytest.mark.describe("test of APICommander request headers and payload")
    async def test_apicommander_request(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)

        def hv_matcher(hk: str, hv: str | None, ev: str) -> bool:
            if hk.lower() == "user-agent":
                return hv is not None and hv.startswith(ev)
            else:
                return hv == ev

        httpserver.expect_oneshot_request(
            COLLECTION_PATH,
            method=HttpMethod.POST,
            headers={
                "Token": "tkn",
                "X-Requested-With": f"astradocs/{__version__}",
                "User-Agent": "cn0/cv0 astradocs/",
            },
            header_value_matcher=hv_matcher,
            json={"findOne": {"filter": {"a": 1}}},
        ).respond_with_json(
            {
                "data": {"document": {"a": 1, "t": {"$date": 1704067201000}}},
                "status": {"ok": 1},
            }
        )
        response = await cmd.request({"findOne": {"filter": {"a": 1}}})
        assert response.status == {"ok": 1}
        assert response.data == {
            "document": {
                "a": 1,
                "t": datetime.datetime(
                    2024, 1, 1, 0, 0, 1, tzinfo=datetime.timezone.utc
                ),
            }
        }
        assert not response.is_error
        await cmd.close()

    @pytest.mark.describe("test of APICommander with API errors in the response")
    async def test_apicommander_api_errors(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)
        error_body = {
            "errors": [{"message": "Oops", "errorCode": "SOME_ERROR"}],
            "status": {"insertedIds": ["a"]},
        }
        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_json(error_body)
        response = await cmd.execute_command({"insertMany": {"documents": []}})
        assert response.is_error
        assert response.errors == error_body["errors"]
        assert response.status == {"insertedIds": ["a"]}

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_json(error_body)
        with pytest.raises(DataAPIResponseException) as exc_info:
            await cmd.request({"insertMany": {"documents": []}})
        exc = exc_info.value
        assert exc.inserted_ids == ["a"]
        assert exc.error_descriptors[0].error_code == "SOME_ERROR"
        assert exc.error_descriptors[0].message == "Oops"
        assert str(exc.error_descriptors[0]) == "Oops (SOME_ERROR)"
        assert str(exc).startswith(
            'Command "insertMany" failed with the following errors: '
        )
        await cmd.close()

    @pytest.mark.describe("test of APICommander classification of HTTP failures")
    async def test_apicommander_http_failures(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_json({"detail": "boom"}, status=500)
        response_500 = await cmd.execute_command({"findOne": {}})
        assert response_500.errors == [{"message": "Server response received : 500!"}]

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_data("Unauthorized", status=401)
        response_401 = await cmd.execute_command({"findOne": {}})
        assert response_401.errors == [{"message": AUTHENTICATION_FAILED_MESSAGE}]

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_json({"errors": [{"message": INVALID_TOKEN_SERVER_MESSAGE}]})
        response_inv = await cmd.execute_command({"findOne": {}})
        assert response_inv.errors == [{"message": AUTHENTICATION_FAILED_MESSAGE}]

        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_data("this is not JSON", status=200)
        response_bad = await cmd.execute_command({"findOne": {}})
        assert response_bad.is_error
        assert response_bad.errors is not None
        assert response_bad.errors[0]["message"].startswith(
            "Unable to parse response as JSON"
        )
        await cmd.close()

    @pytest.mark.describe("test of APICommander with an unreachable endpoint")
    async def test_apicommander_unreachable(self) -> None:
        cmd = APICommander(
            base_url="http://127.0.0.1:1",
            token="tkn",
            keyspace=TEST_KEYSPACE,
            options=FullClientOptions(use_http2=False),
        )
        response = await cmd.execute_command({"findCollections": {}})
        assert response.is_error
        assert response.errors is not None
        assert response.errors[0]["message"]
        await cmd.close()

    @pytest.mark.describe("test of APICommander cleanup of unsupported options")
    async def test_apicommander_options_cleanup(
        self,
        httpserver: HTTPServer,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        cmd = make_commander(httpserver, log_skipped_options=True)
        command = {
            "insertMany": {
                "documents": [{"_id": 1}],
                "options": {"ordered": True, "bogus": 1},
            }
        }
        httpserver.expect_oneshot_request(
            COLLECTION_PATH,
            method=HttpMethod.POST,
            json={"insertMany": {"documents": [{"_id": 1}], "options": {"ordered": True}}},
        ).respond_with_json({"status": {"insertedIds": [1]}})
        with caplog.at_level(logging.WARNING):
            response = await cmd.execute_command(command)
            warnings = [
                record.getMessage()
                for record in caplog.records
                if record.levelno == logging.WARNING
            ]
        assert response.status == {"insertedIds": [1]}
        assert "'insertMany' does not support option 'bogus'" in warnings
        # the caller's command is not modified
        assert command["insertMany"]["options"] == {"ordered": True, "bogus": 1}

        # an explicit allow-list and an options dict left empty
        httpserver.expect_oneshot_request(
            COLLECTION_PATH,
            method=HttpMethod.POST,
            json={"countDocuments": {"filter": {}}},
        ).respond_with_json({"status": {"count": 0}})
        response_c = await cmd.execute_command(
            {"countDocuments": {"filter": {}, "options": {"x": 1}}},
            options_to_retain=[],
        )
        assert response_c.status == {"count": 0}
        await cmd.close()

    @pytest.mark.describe("test of APICommander not logging skipped options by default")
    async def test_apicommander_options_cleanup_silent(
        self,
        httpserver: HTTPServer,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        cmd = make_commander(httpserver)
        httpserver.expect_oneshot_request(
            COLLECTION_PATH,
            method=HttpMethod.POST,
            json={"updateOne": {"filter": {}, "update": {}, "options": {"upsert": True}}},
        ).respond_with_json({"status": {"matchedCount": 0, "modifiedCount": 0}})
        with caplog.at_level(logging.WARNING):
            await cmd.execute_command(
                {
                    "updateOne": {
                        "filter": {},
                        "update": {},
                        "options": {"upsert": True, "returnDocument": "after"},
                    }
                }
            )
            assert not any(
                "does not support option" in record.getMessage()
                for record in caplog.records
            )
        await cmd.close()

    @pytest.mark.describe("test of APICommander timeout")
    async def test_apicommander_timeout(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)
        httpserver.expect_oneshot_request(
            COLLECTION_PATH,
            method=HttpMethod.POST,
        ).respond_with_handler(response_sleeper)
        with pytest.raises(DataAPITimeoutException) as exc_info:
            await cmd.execute_command({"findOne": {}}, timeout_ms=TIMEOUT_PARAM_MS)
        assert exc_info.value.timeout_ms == TIMEOUT_PARAM_MS
        assert exc_info.value.command == {"findOne": {}}
        await cmd.close()

    @pytest.mark.describe("test of APICommander after closing")
    async def test_apicommander_closed(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)
        cmd_copy = cmd._copy(collection="another")
        async with cmd:
            assert not cmd.closed
        assert cmd.closed
        assert cmd_copy.closed
        with pytest.raises(ClientClosedException):
            await cmd_copy.execute_command({"findOne": {}})

    @pytest.mark.describe("test of APICommander decoding of the status part")
    async def test_apicommander_status_decoding(self, httpserver: HTTPServer) -> None:
        cmd = make_commander(httpserver)
        httpserver.expect_oneshot_request(
            COLLECTION_PATH, method=HttpMethod.POST
        ).respond_with_json(
            {
                "status": {
                    "insertedIds": [{"$oid": "65f0c0ffee0ddba11ad0beef"}, "plain"],
                },
                "errors": [{"message": "Oops", "id": {"$oid": "65f0c0ffee0ddba11ad0beef"}}],
            }
        )
        response = await cmd.execute_command({"insertMany": {"documents": []}})
        assert response.status == {
            "insertedIds": [ObjectId("65f0c0ffee0ddba11ad0beef"), "plain"]
        }
        # errors travel untouched
        assert response.errors == [
            {"message": "Oops", "id": {"$oid": "65f0c0ffee0ddba11ad0beef"}}
        ]
        await cmd.close()


class TestUserAgents:
    @pytest.mark.describe("test of user-agent composition")
    def test_user_agents(self) -> None:
        library_token = f"astradocs/{__version__}"
        assert compose_user_agent([]) == library_token
        assert (
            compose_user_agent([("cn0", "cv0"), (None, "x"), ("cn1", None)])
            == f"cn0/cv0 cn1 {library_token}"
        )
        assert identity_headers([("app", "1.0")]) == {
            "X-Requested-With": library_token,
            "User-Agent": f"app/1.0 {library_token}",
        }
