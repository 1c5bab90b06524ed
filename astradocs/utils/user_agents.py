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
The headers telling the API who is calling: `X-Requested-With` names this
library alone, `User-Agent` lists the application callers first, then
this library, e.g. `my-app/1.2 astradocs/0.3.0`.
"""

from __future__ import annotations

from typing import Sequence

from astradocs import __version__
from astradocs.constants import CallerType
from astradocs.settings.defaults import REQUESTED_WITH_HEADER

LIBRARY_CALLER: CallerType = (__name__.split(".")[0], __version__)


def _caller_token(caller: CallerType) -> str | None:
    name, version = caller
    if not name:
        return None
    return f"{name}/{version}" if version else name


def compose_user_agent(callers: Sequence[CallerType]) -> str:
    """
    Join the caller tokens, skipping nameless callers, and append the
    library token last.
    """
    tokens = [_caller_token(caller) for caller in [*callers, LIBRARY_CALLER]]
    return " ".join(token for token in tokens if token)


def identity_headers(callers: Sequence[CallerType]) -> dict[str, str]:
    return {
        REQUESTED_WITH_HEADER: _caller_token(LIBRARY_CALLER) or "",
        "User-Agent": compose_user_agent(callers),
    }
