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
from typing import TYPE_CHECKING, Any

from astradocs.exceptions.data_api_exceptions import (
    DataAPIException,
    command_name,
)

if TYPE_CHECKING:
    from astradocs.results import FailedInsert


@dataclass
class InsertManyOrderedException(DataAPIException):
    """
    An ordered `insert_many` stopped at the first failing document.
    Documents before it were inserted, that one and all the following
    ones were not.

    Attributes:
        base_error: the root exception that halted the insertion.
        inserted_ids: the IDs of the documents that were inserted.
        failed_inserts: the documents that were not inserted, in order,
            each paired with the errors reported by the API.
    """

    base_error: Exception
    inserted_ids: list[Any]
    failed_inserts: list[FailedInsert]

    def __init__(
        self,
        base_error: Exception,
        inserted_ids: list[Any],
        failed_inserts: list[FailedInsert],
    ) -> None:
        super().__init__(str(base_error))
        self.base_error = base_error
        self.inserted_ids = inserted_ids
        self.failed_inserts = failed_inserts

    def __str__(self) -> str:
        return str(self.base_error)


@dataclass
class TooManyDocumentsException(DataAPIException):
    """
    A multi-document write (`update_many`, `delete_many`) matched more
    documents than the API processes in a single command: only part of
    them was affected.

    Attributes:
        text: a text message about the exception.
        command: the command that was sent to the API.
    """

    text: str
    command: dict[str, Any]

    def __init__(self, message: str, *, command: dict[str, Any]) -> None:
        text = (
            f'Command "{command_name(command)}" failed with the following '
            f"error: {message}"
        )
        super().__init__(text)
        self.text = text
        self.command = command
