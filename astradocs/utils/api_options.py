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

from dataclasses import dataclass, field, fields
from typing import Sequence

from astradocs.constants import CallerType, DefaultIdType
from astradocs.settings.defaults import (
    DEFAULT_AUTH_HEADER,
    DEFAULT_LOG_SKIPPED_OPTIONS,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_USE_HTTP2,
)


@dataclass
class ClientOptions:
    """
    The settings of a client, possibly partially specified: a None value
    for any setting means "not set here" (and the default, or the setting
    of an outer object, applies).

    Attributes:
        application_token: the token used to authenticate against the API.
        base_api_path: a path segment between the base URL and the keyspace,
            such as "api/json/v1".
        log_level: a level name ("wire", "debug", "info", ...) or number to
            set on the package logger when a client is created.
        log_skipped_options: whether to log (as warnings) the options dropped
            from a command because the command does not support them.
        use_http2: whether to use a persistent HTTP/2 session instead of a
            pool of HTTP/1.1 keep-alive connections.
        auth_header: the name of the header carrying the token.
        timeout_ms: the timeout for each single request, in milliseconds.
        default_id_type: what kind of `_id` is generated for documents
            lacking one. See `DefaultIdType`.
        callers: a list of (name, version) pairs, prepended to the
            User-Agent string of all requests.
    """

    application_token: str | None = None
    base_api_path: str | None = None
    log_level: str | int | None = None
    log_skipped_options: bool | None = None
    use_http2: bool | None = None
    auth_header: str | None = None
    timeout_ms: int | None = None
    default_id_type: str | None = None
    callers: Sequence[CallerType] | None = None


@dataclass
class FullClientOptions(ClientOptions):
    """
    A fully-resolved set of client settings. Only `application_token`,
    `base_api_path` and `log_level` can still be None here.
    """

    log_skipped_options: bool = DEFAULT_LOG_SKIPPED_OPTIONS
    use_http2: bool = DEFAULT_USE_HTTP2
    auth_header: str = DEFAULT_AUTH_HEADER
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    default_id_type: str = DefaultIdType.DEFAULT
    callers: Sequence[CallerType] = field(default_factory=list)

    def with_override(self, other: ClientOptions | None) -> FullClientOptions:
        """
        Given an "overriding" set of options, possibly not defined in all its
        attributes, apply the override logic and return a new full options object.

        Args:
            other: a not-necessarily-fully-specified options object. All its
                defined (i.e. non-None) settings take precedence.
        """

        if other is None:
            return self
        overrides = {
            fld.name: getattr(other, fld.name)
            for fld in fields(ClientOptions)
            if getattr(other, fld.name) is not None
        }
        return FullClientOptions(
            **{
                **{fld.name: getattr(self, fld.name) for fld in fields(self)},
                **overrides,
            }
        )


defaultClientOptions = FullClientOptions()
