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

from abc import ABC
from dataclasses import dataclass, field
from typing import Any

from astradocs.constants import DocumentType


def _ids_repr(ids: list[Any]) -> str:
    if len(ids) > 5:
        return f"[{', '.join(str(_iid) for _iid in ids[:5])} ... ({len(ids)} total)]"
    return str(ids)


@dataclass
class OperationResult(ABC):
    """
    Class that represents the generic result of a single mutation operation.

    Attributes:
        raw_results: responses from the Data API call(s), each a dictionary
            with the "status", "data" and "errors" of a response.
    """

    raw_results: list[dict[str, Any]]

    @property
    def acknowledged(self) -> bool:
        """The API has received and processed the operation."""
        return True

    def _piecewise_repr(self, pieces: list[str | None]) -> str:
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"


@dataclass
class InsertOneResult(OperationResult):
    """
    The result of an `insert_one` operation.

    Attributes:
        raw_results: one-item list with the response from the Data API call.
        inserted_id: the ID of the inserted document.
    """

    inserted_id: Any

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_id={self.inserted_id}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class InsertManyResult(OperationResult):
    """
    The result of an `insert_many` operation.

    Attributes:
        raw_results: one-item list with the response from the Data API call.
        inserted_ids: the IDs of the inserted documents.
    """

    inserted_ids: list[Any]

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_ids={_ids_repr(self.inserted_ids)}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class FailedInsert:
    """
    A document that a bulk insertion could not write, with the errors
    the API returned for the chunk it belonged to.
    """

    document: DocumentType
    errors: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class InsertManyBulkResult(OperationResult):
    """
    The aggregated result of an `insert_many_bulk` operation, possibly
    spanning many API calls, some of which could have (partially) failed.

    Attributes:
        raw_results: the responses from all Data API calls, in the order
            they were received.
        inserted_ids: the IDs of all documents confirmed as inserted.
        failed_inserts: the documents that were not inserted, each
            with the API errors that caused the failure.
    """

    inserted_ids: list[Any]
    failed_inserts: list[FailedInsert]

    @property
    def inserted_count(self) -> int:
        return len(self.inserted_ids)

    @property
    def failed_count(self) -> int:
        return len(self.failed_inserts)

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_ids={_ids_repr(self.inserted_ids)}",
                f"failed_count={self.failed_count}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class UpdateResult(OperationResult):
    """
    The result of an update (or replace) operation.

    Attributes:
        raw_results: one-item list with the response from the Data API call.
        matched_count: how many documents matched the filter.
        modified_count: how many documents were actually changed.
        upserted_id: the ID of the document created by an upsert, if any.
    """

    matched_count: int
    modified_count: int
    upserted_id: Any = None

    @property
    def upserted_count(self) -> int:
        return 0 if self.upserted_id is None else 1

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"matched_count={self.matched_count}",
                f"modified_count={self.modified_count}",
                f"upserted_id={self.upserted_id}"
                if self.upserted_id is not None
                else None,
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class DeleteResult(OperationResult):
    """
    The result of a delete operation.

    Attributes:
        raw_results: response/responses from the Data API call.
            `delete_many_bulk` can issue several calls in a row.
        deleted_count: number of deleted documents.
    """

    deleted_count: int

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"deleted_count={self.deleted_count}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )
