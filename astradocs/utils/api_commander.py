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
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Iterable

import httpx

from astradocs.commands import option_keys_for
from astradocs.exceptions import (
    DataAPIFaultyResponseException,
    DataAPIResponseException,
)
from astradocs.exceptions.data_api_exceptions import command_name
from astradocs.settings.defaults import (
    AUTHENTICATION_FAILED_MESSAGE,
    INVALID_TOKEN_SERVER_MESSAGE,
    SERVER_CALL_FAILED_MESSAGE,
)
from astradocs.utils.api_options import FullClientOptions, defaultClientOptions
from astradocs.utils.request_strategies import (
    HTTP1Strategy,
    HTTP2Strategy,
    RequestInfo,
    RequestStrategy,
)
from astradocs.utils.request_tools import HttpMethod
from astradocs.utils.transform_payload import deserialize, serialize_command
from astradocs.utils.user_agents import identity_headers

logger = logging.getLogger(__name__)


@dataclass
class APIResponse:
    """
    The outcome of a command: the "status", "data" and "errors" parts of
    the API response. A response is erroneous if and only if `errors` is
    a non-empty list; `status` and `data` can be (partially) populated
    regardless, e.g. in a partially-successful insertMany.
    """

    status: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    errors: list[dict[str, Any]] | None = None

    @property
    def is_error(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            k: v
            for k, v in (
                ("status", self.status),
                ("data", self.data),
                ("errors", self.errors),
            )
            if v is not None
        }


def error_response(message: str) -> APIResponse:
    """A synthetic response carrying a single error with the given message."""
    return APIResponse(errors=[{"message": message}])


def raise_if_error_response(response: APIResponse, command: dict[str, Any]) -> None:
    """
    Raise a DataAPIResponseException, carrying command and response,
    if the response reports errors.
    """
    if response.is_error:
        logger.warning(f"APICommander about to raise from: {response.errors}")
        raise DataAPIResponseException.from_response(
            command=command,
            response=response,
        )


def _is_invalid_token_response(response_data: dict[str, Any]) -> bool:
    errors = response_data.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("message") == INVALID_TOKEN_SERVER_MESSAGE
    return False


class APICommander:
    """
    Issues commands to a Data API endpoint, composed as
    `base_url[/base_api_path][/keyspace][/collection]`, and classifies
    the responses.

    All commanders derived from one another through `_copy` share the same
    request strategy (hence the same connection pool or HTTP/2 session).
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None,
        keyspace: str | None = None,
        collection: str | None = None,
        options: FullClientOptions = defaultClientOptions,
        strategy: RequestStrategy | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url required for initialization")
        if not token:
            raise ValueError("application_token required for initialization")
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.keyspace = keyspace
        self.collection = collection
        self.options = options
        self.strategy: RequestStrategy
        if strategy is not None:
            self.strategy = strategy
        elif self.options.use_http2:
            self.strategy = HTTP2Strategy()
        else:
            self.strategy = HTTP1Strategy()

        self.full_headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            self.options.auth_header: self.token,
            **identity_headers(self.options.callers),
        }
        self.full_path = "/".join(
            pc.strip("/")
            for pc in (
                self.base_url,
                self.options.base_api_path,
                self.keyspace,
                self.collection,
            )
            if pc
        )

    def __repr__(self) -> str:
        pieces = [
            f"base_url={self.base_url}",
            f"keyspace={self.keyspace}" if self.keyspace else None,
            f"collection={self.collection}" if self.collection else None,
            f"strategy={self.strategy}",
        ]
        inner_desc = ", ".join(pc for pc in pieces if pc is not None)
        return f"{self.__class__.__name__}({inner_desc})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, APICommander):
            return all(
                [
                    self.base_url == other.base_url,
                    self.token == other.token,
                    self.keyspace == other.keyspace,
                    self.collection == other.collection,
                    self.options == other.options,
                ]
            )
        else:
            return False

    async def __aenter__(self) -> APICommander:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: TracebackType | None = None,
    ) -> None:
        await self.close()

    def _copy(
        self,
        keyspace: str | None = None,
        collection: str | None = None,
    ) -> APICommander:
        # the copy targets a keyspace/collection but shares the strategy:
        return APICommander(
            base_url=self.base_url,
            token=self.token,
            keyspace=keyspace if keyspace is not None else self.keyspace,
            collection=collection,
            options=self.options,
            strategy=self.strategy,
        )

    @property
    def closed(self) -> bool:
        return self.strategy.closed

    async def close(self) -> None:
        await self.strategy.close()

    def _compose_request_url(self) -> str:
        return self.full_path

    def _clean_options(
        self,
        command: dict[str, Any],
        options_to_retain: Iterable[str] | None,
    ) -> dict[str, Any]:
        """
        Return the command with its "options" reduced to the allowed keys.
        The input command is left untouched.
        """
        cmd_name = command_name(command)
        payload = command.get(cmd_name)
        if options_to_retain is None or not isinstance(payload, dict):
            return command
        options = payload.get("options")
        if not options:
            return command
        allowed_keys = set(options_to_retain)
        retained_options: dict[str, Any] = {}
        for option_key, option_value in options.items():
            if option_key in allowed_keys:
                retained_options[option_key] = option_value
            elif self.options.log_skipped_options:
                logger.warning(
                    f"'{cmd_name}' does not support option '{option_key}'"
                )
        new_payload = {k: v for k, v in payload.items() if k != "options"}
        if retained_options:
            new_payload["options"] = retained_options
        return {cmd_name: new_payload}

    async def execute_command(
        self,
        command: dict[str, Any],
        *,
        timeout_ms: int | None = None,
        options_to_retain: Iterable[str] | None = None,
    ) -> APIResponse:
        """
        Send a command and classify the outcome into an APIResponse.

        Remote failures never raise here: transport errors, unparseable
        bodies, authentication failures and non-200 statuses all result in
        a response with a populated `errors` list. A timeout, instead,
        raises DataAPITimeoutException.

        Args:
            command: a single-key command dictionary.
            timeout_ms: a timeout for this request, overriding the default.
            options_to_retain: the option keys allowed for this command. If not
                provided, the known allow-list for the command name is used
                (commands without one have their options sent as they are).

        Returns:
            an APIResponse.
        """
        _options_to_retain = (
            options_to_retain
            if options_to_retain is not None
            else option_keys_for(command_name(command))
        )
        cleaned_command = self._clean_options(command, _options_to_retain)
        request_url = self._compose_request_url()
        _timeout_ms = timeout_ms if timeout_ms is not None else self.options.timeout_ms
        request_info = RequestInfo(
            url=request_url,
            command=cleaned_command,
            headers=self.full_headers,
            timeout_ms=_timeout_ms,
            method=HttpMethod.POST,
        )
        logger.debug(f"Request URL: {HttpMethod.POST} {request_url}")

        try:
            raw_response = await self.strategy.request(request_info)
        except (httpx.HTTPError, DataAPIFaultyResponseException) as exc:
            logger.error(f"Request to {request_url} failed: {exc}")
            return error_response(str(exc) or SERVER_CALL_FAILED_MESSAGE)

        logger.debug(f"Response status code: {raw_response.status_code}")
        if raw_response.status_code == 401 or _is_invalid_token_response(
            raw_response.data
        ):
            return error_response(AUTHENTICATION_FAILED_MESSAGE)

        if raw_response.status_code != 200:
            logger.error(
                f"Error response from {request_url}, "
                f"status: {raw_response.status_code}"
            )
            logger.error(f"Request payload: {serialize_command(cleaned_command)}")
            logger.error(f"Response data: {raw_response.data}")
            return error_response(
                f"Server response received : {raw_response.status_code}!"
            )

        # status is decoded as data is, so that inserted ids come back native
        status = deserialize(raw_response.data.get("status"))
        warning_messages = (status or {}).get("warnings") or []
        for warning_message in warning_messages:
            logger.warning(f"The Data API returned a warning: {warning_message}")
        return APIResponse(
            status=status,
            data=deserialize(raw_response.data.get("data")),
            errors=raw_response.data.get("errors"),
        )

    async def request(
        self,
        command: dict[str, Any],
        *,
        timeout_ms: int | None = None,
        options_to_retain: Iterable[str] | None = None,
        raise_api_errors: bool = True,
    ) -> APIResponse:
        """
        Execute a command and, unless `raise_api_errors` is False,
        raise a DataAPIResponseException if the response has errors.
        """
        response = await self.execute_command(
            command,
            timeout_ms=timeout_ms,
            options_to_retain=options_to_retain,
        )
        if raise_api_errors:
            raise_if_error_response(response, command)
        return response
