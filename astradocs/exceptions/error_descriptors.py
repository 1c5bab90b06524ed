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

from dataclasses import dataclass
from typing import Any


@dataclass
class DataAPIErrorDescriptor:
    """
    A single entry of the "errors" list in a Data API response.

    Attributes:
        error_code: the error's "errorCode" field, if any.
        message: the error's "message" field, if any.
        attributes: a dict with any further key-value pairs in the entry.
    """

    error_code: str | None
    message: str | None
    attributes: dict[str, Any]

    _known_dict_fields = {"errorCode", "message"}

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        if isinstance(error_dict, str):
            self.error_code = None
            self.message = error_dict
            self.attributes = {}
        else:
            self.error_code = error_dict.get("errorCode")
            self.message = error_dict.get("message")
            self.attributes = {
                k: v for k, v in error_dict.items() if k not in self._known_dict_fields
            }

    def __str__(self) -> str:
        return self.summary()

    def summary(self) -> str:
        if self.error_code:
            if self.message:
                return f"{self.message} ({self.error_code})"
            return self.error_code
        return self.message or ""


def descriptors_from_errors(
    errors: list[dict[str, Any]] | None,
) -> list[DataAPIErrorDescriptor]:
    return [DataAPIErrorDescriptor(error) for error in errors or []]
