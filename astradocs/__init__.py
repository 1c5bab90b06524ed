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

# setup.py reads this line: keep it a plain string literal
__version__: str = "0.3.0"


import astradocs.constants  # noqa: E402
import astradocs.ids  # noqa: F401, E402
from astradocs.client import AstraDB, Client  # noqa: E402
from astradocs.collection import Collection  # noqa: E402
from astradocs.cursors import CursorState, FindCursor  # noqa: E402
from astradocs.database import Database  # noqa: E402
from astradocs.utils.api_options import ClientOptions  # noqa: E402
from astradocs.utils.uri import create_astra_uri, parse_uri  # noqa: E402

__all__ = [
    "AstraDB",
    "Client",
    "ClientOptions",
    "Collection",
    "CursorState",
    "Database",
    "FindCursor",
    "create_astra_uri",
    "parse_uri",
    "__version__",
]


__pdoc__ = {
    "utils": False,
    "settings": False,
}
