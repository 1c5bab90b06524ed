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

# Defaults/settings for keyspaces and endpoints
DEFAULT_KEYSPACE = "default_keyspace"
DEFAULT_ASTRA_API_PATH = "api/json/v1"
KEYSPACE_NAME_PATTERN = r"^[a-zA-Z0-9_]{1,48}$"

# Defaults/settings for Data API requests
DEFAULT_AUTH_HEADER = "Token"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_USE_HTTP2 = True
DEFAULT_LOG_SKIPPED_OPTIONS = False
DEFAULT_HTTP1_MAX_KEEPALIVE_CONNECTIONS = 20
REQUESTED_WITH_HEADER = "X-Requested-With"

# The Data API accepts at most this many documents in a single insertMany
BULK_CHUNK_SIZE = 20
DEFAULT_BULK_PARALLEL = 4

# Defaults/settings for cursors
DEFAULT_CURSOR_BATCH_SIZE = 1000

# Fixed messages for synthesized error responses
AUTHENTICATION_FAILED_MESSAGE = "Authentication failed; is your token valid?"
INVALID_TOKEN_SERVER_MESSAGE = "UNAUTHENTICATED: Invalid token"
SERVER_CALL_FAILED_MESSAGE = "Server call failed, please retry!"
