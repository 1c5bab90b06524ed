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

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from astradocs.exceptions.error_descriptors import (
    DataAPIErrorDescriptor,
    descriptors_from_errors,
)

if TYPE_CHECKING:
    from astradocs.utils.api_commander import APIResponse


def command_name(command: dict[str, Any] | None) -> str:
    """The (only) top-level key of a command, or 'unknown'."""
    if command:
        return next(iter(command.keys()))
    return "unknown"


def _dump_for_message(value: Any) -> str:
    return json.dumps(value, default=str, ensure_ascii=False)


class DataAPIException(Exception):
    """
    Any exception occurred while issuing commands to the Data API
    and specific to it, such as:
      - the API returns a response with errors,
      - a command times out,
      - a cursor is used in a way its state does not allow,
    but not, for instance,
      - a wrong argument passed to a method (a ValueError is raised then).
    """

    pass


@dataclass
class DataAPIResponseException(DataAPIException):
    """
    The Data API returned a response which reports API-specific error(s),
    possibly alongside partial successes (in its "status" and "data").

    Attributes:
        text: a text message about the exception.
        command: the command to the API that led to the response.
        errors: the "errors" list in the response.
        status: the "status" part of the response, if any.
        data: the "data" part of the response, if any.
        error_descriptors: a list of DataAPIErrorDescriptor, one for each
            item in the response's "errors" field.
    """

    text: str
    command: dict[str, Any] | None
    errors: list[dict[str, Any]]
    status: dict[str, Any] | None
    data: dict[str, Any] | None
    error_descriptors: list[DataAPIErrorDescriptor]

    def __init__(
        self,
        text: str,
        *,
        command: dict[str, Any] | None,
        errors: list[dict[str, Any]],
        status: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.command = command
        self.errors = errors
        self.status = status
        self.data = data
        self.error_descriptors = descriptors_from_errors(errors)

    def __str__(self) -> str:
        return self.text

    @staticmethod
    def from_response(
        *,
        command: dict[str, Any] | None,
        response: APIResponse,
    ) -> DataAPIResponseException:
        """Build the exception out of an erroneous response to a command."""

        status_part = (
            f", status: {_dump_for_message(response.status)}" if response.status else ""
        )
        text = (
            f'Command "{command_name(command)}" failed with the following '
            f"errors: {_dump_for_message(response.errors)}{status_part}"
        )
        return DataAPIResponseException(
            text,
            command=command,
            errors=list(response.errors or []),
            status=response.status,
            data=response.data,
        )

    @property
    def inserted_ids(self) -> list[Any]:
        """The identifiers the server reports as inserted despite the error."""
        return list((self.status or {}).get("insertedIds") or [])


@dataclass
class DataAPITimeoutException(DataAPIException):
    """
    A command to the Data API did not receive a response within the
    configured timeout. The command may or may not have been executed
    on the server.

    Attributes:
        text: a textual description of the error.
        command: the command that timed out.
        timeout_ms: the timeout that was exceeded, in milliseconds.
        endpoint: the URL the request was targeting.
    """

    text: str
    command: dict[str, Any] | None
    timeout_ms: int | None
    endpoint: str | None

    def __init__(
        self,
        text: str,
        *,
        command: dict[str, Any] | None,
        timeout_ms: int | None = None,
        endpoint: str | None = None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.command = command
        self.timeout_ms = timeout_ms
        self.endpoint = endpoint


@dataclass
class DataAPIFaultyResponseException(DataAPIException):
    """
    The Data API response could not be parsed as a JSON object.

    Attributes:
        text: a text message about the exception.
        raw_response: the body of the response, as text.
    """

    text: str
    raw_response: str | None

    def __init__(
        self,
        text: str,
        *,
        raw_response: str | None,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.raw_response = raw_response


@dataclass
class ClientClosedException(DataAPIException):
    """
    A request was attempted through a client (or any object derived
    from it) after the client was closed.

    Attributes:
        text: a text message about the exception.
    """

    text: str

    def __init__(self, text: str) -> None:
        super().__init__(text)
        self.text = text


@dataclass
class CursorException(DataAPIException):
    """
    The cursor operation cannot be invoked in the current state of the cursor.

    Attributes:
        text: a text message about the exception.
        cursor_state: a string description of the current state
            of the cursor. See the documentation for FindCursor.
    """

    text: str
    cursor_state: str

    def __init__(
        self,
        text: str,
        *,
        cursor_state: str,
    ) -> None:
        super().__init__(text)
        self.text = text
        self.cursor_state = cursor_state


@dataclass
class CursorIsStartedException(CursorException):
    """
    A cursor setting was changed after the cursor already fetched results.
    Settings can be changed again only after a `rewind()`.
    """

    def __init__(
        self,
        text: str = "Cursor has already been initialized",
        *,
        cursor_state: str,
    ) -> None:
        super().__init__(text, cursor_state=cursor_state)
