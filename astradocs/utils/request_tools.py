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

import httpx

from astradocs.utils.transform_payload import serialize_command

# A logging level below DEBUG for full request/response payloads
WIRE = 5
logging.addLevelName(WIRE, "WIRE")

logger = logging.getLogger(__name__)


class HttpMethod:
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


def resolve_log_level(log_level: str | int) -> int:
    """
    Turn a level name (case-insensitive, "wire" included) or number
    into a logging level number.
    """
    if isinstance(log_level, int):
        return log_level
    level_number = logging.getLevelName(log_level.upper())
    if not isinstance(level_number, int):
        raise ValueError(f"Unknown log level: '{log_level}'.")
    return level_number


def set_package_log_level(log_level: str | int) -> None:
    """Set the level of the logger shared by the whole package."""
    package_name = __name__.split(".")[0]
    logging.getLogger(package_name).setLevel(resolve_log_level(log_level))


def log_wire_request(
    http_method: str,
    full_url: str,
    command: dict[str, Any] | None,
) -> None:
    """
    Log an outgoing request at the WIRE level, pretty-printing the payload.
    The payload is not even serialized unless WIRE logging is enabled.

    Args:
        http_method: the HTTP verb of the request (e.g. "POST").
        full_url: the URL of the request.
        command: the command being sent, if any.
    """
    if logger.isEnabledFor(WIRE):
        pretty_payload = (
            serialize_command(command, pretty=True) if command is not None else ""
        )
        logger.log(WIRE, f"--- request {http_method} {full_url} {pretty_payload}")


def log_wire_response(
    http_method: str,
    full_url: str,
    status_code: int,
    data: Any,
) -> None:
    """
    Log a received response at the WIRE level.

    Args:
        http_method: the HTTP verb of the request (e.g. "POST").
        full_url: the URL of the request.
        status_code: the HTTP status of the response.
        data: the parsed body of the response.
    """
    if logger.isEnabledFor(WIRE):
        pretty_data = serialize_command(data, pretty=True)
        logger.log(
            WIRE, f"--- response {status_code} {http_method} {full_url} {pretty_data}"
        )


def to_httpx_timeout(timeout_ms: int | None) -> httpx.Timeout | None:
    if timeout_ms is None or timeout_ms == 0:
        return None
    else:
        return httpx.Timeout(timeout_ms / 1000)
