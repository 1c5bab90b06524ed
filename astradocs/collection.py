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

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Iterable

import deprecation

from astradocs import __version__
from astradocs.commands import Commands, make_command
from astradocs.constants import (
    DocumentType,
    FilterType,
    ProjectionType,
    SortType,
    normalize_optional_projection,
)
from astradocs.cursors import FindCursor
from astradocs.exceptions import (
    DataAPIFaultyResponseException,
    DataAPIResponseException,
    DataAPITimeoutException,
    InsertManyOrderedException,
    TooManyDocumentsException,
)
from astradocs.results import (
    DeleteResult,
    FailedInsert,
    InsertManyBulkResult,
    InsertManyResult,
    InsertOneResult,
    UpdateResult,
)
from astradocs.settings.defaults import BULK_CHUNK_SIZE, DEFAULT_BULK_PARALLEL
from astradocs.utils.api_commander import APICommander, APIResponse, error_response
from astradocs.utils.document_ids import (
    set_default_id_for_insert,
    set_default_id_for_upsert,
)
from astradocs.utils.transform_payload import id_key

if TYPE_CHECKING:
    from astradocs.database import Database


logger = logging.getLogger(__name__)

COUNT_DEPRECATION_NOTICE = "Use `count_documents` instead."


def _status(response: APIResponse) -> dict[str, Any]:
    return response.status or {}


def _document_or_metadata(
    response: APIResponse, include_result_metadata: bool
) -> DocumentType | dict[str, Any] | None:
    document = (response.data or {}).get("document")
    if include_result_metadata:
        return {"value": document, "ok": 1}
    return document


def _extract_dotted_path(document: Any, path: list[str]) -> list[Any]:
    """
    The values found at the dotted path in a document, lists being flattened
    (at the end of the path only). Missing paths give an empty list.
    """
    value = document
    for path_segment in path:
        if isinstance(value, dict) and path_segment in value:
            value = value[path_segment]
        else:
            return []
    if isinstance(value, list):
        return value
    return [value]


class Collection:
    """
    A Data API collection, the object to interact with documents:
    insert, find, update, delete and so on.

    This class is not meant to be instantiated directly: get one through
    the `collection` or `create_collection` methods of a `Database`.

    Args:
        database: the Database this collection belongs to.
        name: the collection name.

    Example:
        >>> collection = database.collection("my_collection")
        >>> await collection.insert_one({"_id": "a", "seq": 1})
        InsertOneResult(inserted_id=a, raw_results=...)
    """

    def __init__(self, database: Database, name: str) -> None:
        if not name:
            raise ValueError("collection name is required")
        self._database = database
        self._name = name
        self._api_commander: APICommander = database._api_commander._copy(
            collection=name
        )
        self._default_id_type = self._api_commander.options.default_id_type

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(name="{self.name}", '
            f'keyspace="{self.namespace}", database={self.database})'
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Collection):
            return all(
                [
                    self._name == other._name,
                    self._database == other._database,
                ]
            )
        else:
            return False

    @property
    def name(self) -> str:
        """The name of this collection."""
        return self._name

    @property
    def collection_name(self) -> str:
        return self._name

    @property
    def namespace(self) -> str:
        """The keyspace this collection is in."""
        return self._database.namespace

    @property
    def database(self) -> Database:
        return self._database

    async def insert_one(
        self,
        document: DocumentType,
        *,
        timeout_ms: int | None = None,
    ) -> InsertOneResult:
        """
        Insert a single document in the collection.

        If the document has no `_id`, one is generated and set on the
        document itself (i.e. the caller's dictionary is modified).

        Args:
            document: the dictionary expressing the document to insert.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            an InsertOneResult object.

        Raises:
            DataAPIResponseException: if the API reports an error (such as
                a duplicate `_id`).
        """

        set_default_id_for_insert(document, self._default_id_type)
        command = make_command(Commands.INSERT_ONE, document=document)
        logger.info(f"insertOne on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished insertOne on '{self.name}'")
        inserted_ids = _status(response).get("insertedIds") or []
        if not inserted_ids:
            raise DataAPIFaultyResponseException(
                text="Faulty response from insertOne API command.",
                raw_response=str(response.to_dict()),
            )
        return InsertOneResult(
            raw_results=[response.to_dict()],
            inserted_id=inserted_ids[0],
        )

    async def insert_many(
        self,
        documents: Iterable[DocumentType],
        *,
        ordered: bool = False,
        timeout_ms: int | None = None,
    ) -> InsertManyResult:
        """
        Insert up to 20 documents with a single API command.
        For larger amounts of documents, use `insert_many_bulk`.

        Documents without `_id` get one generated, as for `insert_one`.

        Args:
            documents: the documents to insert (at most 20).
            ordered: if True, the API inserts documents in order and stops
                at the first failure.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            an InsertManyResult object.

        Raises:
            ValueError: if too many documents are passed.
            InsertManyOrderedException: if an ordered insertion fails. The
                exception lists the inserted IDs and the documents left out.
            DataAPIResponseException: if an unordered insertion fails.
        """

        _documents = list(documents)
        if len(_documents) > BULK_CHUNK_SIZE:
            raise ValueError(
                f"insert_many accepts at most {BULK_CHUNK_SIZE} documents "
                f"(got {len(_documents)}): use insert_many_bulk instead."
            )
        for document in _documents:
            set_default_id_for_insert(document, self._default_id_type)
        command = make_command(
            Commands.INSERT_MANY,
            documents=_documents,
            options={"ordered": ordered},
        )
        logger.info(f"insertMany on '{self.name}'")
        response = await self._api_commander.execute_command(
            command, timeout_ms=timeout_ms
        )
        logger.info(f"finished insertMany on '{self.name}'")
        inserted_ids = list(_status(response).get("insertedIds") or [])
        if response.is_error:
            base_error = DataAPIResponseException.from_response(
                command=command,
                response=response,
            )
            if ordered:
                inserted_keys = {id_key(inserted_id) for inserted_id in inserted_ids}
                failed_inserts = [
                    FailedInsert(document=document, errors=list(response.errors or []))
                    for document in _documents
                    if id_key(document["_id"]) not in inserted_keys
                ]
                raise InsertManyOrderedException(
                    base_error=base_error,
                    inserted_ids=inserted_ids,
                    failed_inserts=failed_inserts,
                )
            raise base_error
        return InsertManyResult(
            raw_results=[response.to_dict()],
            inserted_ids=inserted_ids,
        )

    async def insert_many_bulk(
        self,
        documents: Iterable[DocumentType],
        *,
        ordered: bool = False,
        parallel: int | None = None,
        timeout_ms: int | None = None,
    ) -> InsertManyBulkResult:
        """
        Insert an arbitrary number of documents, split in chunks of 20
        (one API command each), possibly running several chunks at once.

        Failures do not raise: the result reports which documents were
        inserted and which were not. When a command fails, the IDs the API
        still reports as inserted are trusted: the other documents in the
        chunk are recorded as failed.

        Documents without `_id` get one generated, as for `insert_one`.

        Args:
            documents: the documents to insert.
            ordered: if True, chunks are inserted one at a time in order and
                the first failure stops everything: all documents from the
                failure point onward are reported as failed.
            parallel: how many chunks to have in flight at the same time
                (default 4). Cannot be other than 1 if `ordered`.
            timeout_ms: a timeout, in milliseconds, for each API request.
                A chunk that times out counts as failed.

        Returns:
            an InsertManyBulkResult object.

        Raises:
            ValueError: for an invalid combination of `ordered` and `parallel`.
        """

        if ordered and parallel is not None and parallel != 1:
            raise ValueError("Parallel insert with ordered option is not supported")
        _parallel: int
        if ordered:
            _parallel = 1
        else:
            _parallel = parallel if parallel is not None else DEFAULT_BULK_PARALLEL
        if _parallel < 1:
            raise ValueError("Parallel must be greater than 0")

        _documents = list(documents)
        for document in _documents:
            set_default_id_for_insert(document, self._default_id_type)

        logger.info(f"inserting {len(_documents)} documents in '{self.name}'")
        raw_results: list[dict[str, Any]] = []
        inserted_ids: list[Any] = []
        failed_inserts: list[FailedInsert] = []
        next_index = 0
        halted = False

        async def _process_queue() -> None:
            nonlocal next_index, halted
            while not halted and next_index < len(_documents):
                # claim a chunk (no awaits between check and advance)
                start_index = next_index
                end_index = min(start_index + BULK_CHUNK_SIZE, len(_documents))
                next_index = end_index

                command = make_command(
                    Commands.INSERT_MANY,
                    documents=_documents[start_index:end_index],
                    options={"ordered": ordered},
                )
                logger.info(f"insertMany(chunk) on '{self.name}'")
                try:
                    response = await self._api_commander.execute_command(
                        command, timeout_ms=timeout_ms
                    )
                except DataAPITimeoutException as timeout_exc:
                    logger.warning(
                        f"insertMany(chunk) on '{self.name}' timed out "
                        f"(documents {start_index} to {end_index - 1})"
                    )
                    response = error_response(timeout_exc.text)
                logger.info(f"finished insertMany(chunk) on '{self.name}'")
                raw_results.append(response.to_dict())
                chunk_inserted_ids = list(_status(response).get("insertedIds") or [])
                inserted_ids.extend(chunk_inserted_ids)
                if not response.is_error:
                    continue

                confirmed_keys = {id_key(c_id) for c_id in chunk_inserted_ids}
                upper_bound = len(_documents) if ordered else end_index
                for document in _documents[start_index:upper_bound]:
                    document_key = id_key(document["_id"])
                    if document_key in confirmed_keys:
                        confirmed_keys.discard(document_key)
                    else:
                        failed_inserts.append(
                            FailedInsert(
                                document=document,
                                errors=list(response.errors or []),
                            )
                        )
                if ordered:
                    halted = True

        await asyncio.gather(*(_process_queue() for _ in range(_parallel)))
        logger.info(
            f"finished inserting {len(_documents)} documents in '{self.name}': "
            f"{len(inserted_ids)} inserted, {len(failed_inserts)} failed"
        )
        return InsertManyBulkResult(
            raw_results=raw_results,
            inserted_ids=inserted_ids,
            failed_inserts=failed_inserts,
        )

    async def _update(
        self,
        command_name: str,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None,
        upsert: bool | None,
        timeout_ms: int | None,
    ) -> tuple[dict[str, Any], APIResponse]:
        command = make_command(
            command_name,
            filter=filter,
            update=update,
            sort=sort,
            options={"upsert": upsert},
        )
        set_default_id_for_upsert(
            command[command_name],
            default_id_type=self._default_id_type,
        )
        logger.info(f"{command_name} on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished {command_name} on '{self.name}'")
        return command, response

    @staticmethod
    def _update_result(response: APIResponse) -> UpdateResult:
        status = _status(response)
        return UpdateResult(
            raw_results=[response.to_dict()],
            matched_count=status.get("matchedCount", 0),
            modified_count=status.get("modifiedCount", 0),
            upserted_id=status.get("upsertedId"),
        )

    async def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None = None,
        upsert: bool | None = None,
        timeout_ms: int | None = None,
    ) -> UpdateResult:
        """
        Update a single document, the first one (according to `sort`, if
        provided) that matches the filter.

        With `upsert=True` and no match, a new document is created: if the
        filter does not set an `_id`, one is generated for it.

        Args:
            filter: the criterion to select the document.
            update: the update prescription, e.g. `{"$set": {"a": 1}}`.
            sort: determines which document is updated if several match.
            upsert: whether to create a document if none matches.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            an UpdateResult object.
        """

        _, response = await self._update(
            Commands.UPDATE_ONE,
            filter,
            update,
            sort=sort,
            upsert=upsert,
            timeout_ms=timeout_ms,
        )
        return self._update_result(response)

    async def update_many(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        upsert: bool | None = None,
        timeout_ms: int | None = None,
    ) -> UpdateResult:
        """
        Update all documents matching the filter, as long as the API can
        process them with a single command.

        Raises:
            TooManyDocumentsException: if more documents matched than could
                be updated at once (the ones processed stay updated).
        """

        command, response = await self._update(
            Commands.UPDATE_MANY,
            filter,
            update,
            sort=None,
            upsert=upsert,
            timeout_ms=timeout_ms,
        )
        status = _status(response)
        if status.get("moreData"):
            raise TooManyDocumentsException(
                f"More than {status.get('modifiedCount')} records found for "
                "update by the server",
                command=command,
            )
        return self._update_result(response)

    async def delete_one(
        self,
        filter: FilterType,
        *,
        sort: SortType | None = None,
        timeout_ms: int | None = None,
    ) -> DeleteResult:
        """
        Delete one document matching the filter, the first one according
        to `sort` if provided.
        """

        command = make_command(Commands.DELETE_ONE, filter=filter, sort=sort)
        logger.info(f"deleteOne on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished deleteOne on '{self.name}'")
        return DeleteResult(
            raw_results=[response.to_dict()],
            deleted_count=_status(response).get("deletedCount", 0),
        )

    async def delete_many(
        self,
        filter: FilterType,
        *,
        timeout_ms: int | None = None,
    ) -> DeleteResult:
        """
        Delete the documents matching the filter with a single command.

        Raises:
            TooManyDocumentsException: if the API could not delete all
                matching documents at once. Use `delete_many_bulk` then.
        """

        command = make_command(Commands.DELETE_MANY, filter=filter)
        logger.info(f"deleteMany on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished deleteMany on '{self.name}'")
        status = _status(response)
        if status.get("moreData"):
            raise TooManyDocumentsException(
                "More records found to be deleted even after deleting "
                f"{status.get('deletedCount')} records",
                command=command,
            )
        return DeleteResult(
            raw_results=[response.to_dict()],
            deleted_count=status.get("deletedCount", 0),
        )

    async def delete_many_bulk(
        self,
        filter: FilterType,
        *,
        timeout_ms: int | None = None,
    ) -> DeleteResult:
        """
        Delete all documents matching the filter, issuing as many deleteMany
        commands as needed.
        """

        command = make_command(Commands.DELETE_MANY, filter=filter)
        raw_results: list[dict[str, Any]] = []
        deleted_count = 0
        must_proceed = True
        logger.info(f"starting delete_many_bulk on '{self.name}'")
        while must_proceed:
            logger.info(f"deleteMany on '{self.name}'")
            response = await self._api_commander.request(
                command, timeout_ms=timeout_ms
            )
            logger.info(f"finished deleteMany on '{self.name}'")
            raw_results.append(response.to_dict())
            status = _status(response)
            deleted_count += status.get("deletedCount") or 0
            must_proceed = bool(status.get("moreData"))
        logger.info(f"finished delete_many_bulk on '{self.name}'")
        return DeleteResult(raw_results=raw_results, deleted_count=deleted_count)

    def find(
        self,
        filter: FilterType | None = None,
        *,
        sort: SortType | None = None,
        projection: ProjectionType | None = None,
        limit: int | None = None,
        skip: int | None = None,
        batch_size: int | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> FindCursor[DocumentType]:
        """
        Find documents matching the filter. Nothing is fetched until the
        returned cursor is consumed.

        Args:
            filter: the criterion to select documents, e.g. `{"tag": "x"}`.
            sort: the order of results, e.g. `{"n": SortMode.ASCENDING}`
                or a vector search `{"$vector": [...]}`.
            projection: which fields to return.
            limit: the maximum number of documents to return.
            skip: how many matching documents to skip (requires a sort).
            batch_size: the maximum number of documents per page.
            include_similarity: whether to add `$similarity` to the results
                of a vector search.
            timeout_ms: a timeout, in milliseconds, for each page request.

        Returns:
            a FindCursor.
        """

        return FindCursor(
            collection=self,
            filter=filter,
            sort=sort,
            projection=projection,
            limit=limit,
            skip=skip,
            batch_size=batch_size,
            include_similarity=include_similarity,
            timeout_ms=timeout_ms,
        )

    async def find_one(
        self,
        filter: FilterType | None = None,
        *,
        sort: SortType | None = None,
        projection: ProjectionType | None = None,
        include_similarity: bool | None = None,
        timeout_ms: int | None = None,
    ) -> DocumentType | None:
        """
        Return the first document matching the filter (according to `sort`,
        if given), or None if there is none.
        """

        command = make_command(
            Commands.FIND_ONE,
            filter=filter or {},
            sort=sort,
            projection=normalize_optional_projection(projection),
            options={"includeSimilarity": include_similarity},
        )
        logger.info(f"findOne on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished findOne on '{self.name}'")
        return (response.data or {}).get("document")

    async def find_one_and_update(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None = None,
        upsert: bool | None = None,
        return_document: str | None = None,
        include_result_metadata: bool = False,
        timeout_ms: int | None = None,
    ) -> DocumentType | dict[str, Any] | None:
        """
        Update one document and return it, either as it was before the
        update or after it (see `ReturnDocument`).

        Args:
            filter: the criterion to select the document.
            update: the update prescription.
            sort: determines which document is updated if several match.
            upsert: whether to create a document if none matches.
            return_document: `ReturnDocument.BEFORE` (the API default) or
                `ReturnDocument.AFTER`.
            include_result_metadata: if True, the return value is
                `{"value": <document>, "ok": 1}` instead of the document.
            timeout_ms: a timeout, in milliseconds, for the API request.

        Returns:
            the document (None if nothing matched), or a dictionary
            wrapping it, depending on `include_result_metadata`.
        """

        command = make_command(
            Commands.FIND_ONE_AND_UPDATE,
            filter=filter,
            update=update,
            sort=sort,
            options={"returnDocument": return_document, "upsert": upsert},
        )
        set_default_id_for_upsert(
            command[Commands.FIND_ONE_AND_UPDATE],
            default_id_type=self._default_id_type,
        )
        logger.info(f"findOneAndUpdate on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished findOneAndUpdate on '{self.name}'")
        return _document_or_metadata(response, include_result_metadata)

    async def find_one_and_replace(
        self,
        filter: FilterType,
        replacement: DocumentType,
        *,
        sort: SortType | None = None,
        upsert: bool | None = None,
        return_document: str | None = None,
        include_result_metadata: bool = False,
        timeout_ms: int | None = None,
    ) -> DocumentType | dict[str, Any] | None:
        """
        Replace one document and return it, either as it was before the
        replacement or after it. The parameters are as for
        `find_one_and_update`, with a full `replacement` document instead
        of an update prescription.
        """

        command = make_command(
            Commands.FIND_ONE_AND_REPLACE,
            filter=filter,
            replacement=replacement,
            sort=sort,
            options={"returnDocument": return_document, "upsert": upsert},
        )
        set_default_id_for_upsert(
            command[Commands.FIND_ONE_AND_REPLACE],
            replace=True,
            default_id_type=self._default_id_type,
        )
        logger.info(f"findOneAndReplace on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished findOneAndReplace on '{self.name}'")
        return _document_or_metadata(response, include_result_metadata)

    async def find_one_and_delete(
        self,
        filter: FilterType,
        *,
        sort: SortType | None = None,
        include_result_metadata: bool = False,
        timeout_ms: int | None = None,
    ) -> DocumentType | dict[str, Any] | None:
        """Delete one document and return it (None if nothing matched)."""

        command = make_command(Commands.FIND_ONE_AND_DELETE, filter=filter, sort=sort)
        logger.info(f"findOneAndDelete on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished findOneAndDelete on '{self.name}'")
        return _document_or_metadata(response, include_result_metadata)

    async def count_documents(
        self,
        filter: FilterType | None = None,
        *,
        timeout_ms: int | None = None,
    ) -> int:
        """Count the documents matching the filter (all if no filter)."""

        command = make_command(Commands.COUNT_DOCUMENTS, filter=filter or {})
        logger.info(f"countDocuments on '{self.name}'")
        response = await self._api_commander.request(command, timeout_ms=timeout_ms)
        logger.info(f"finished countDocuments on '{self.name}'")
        count = _status(response).get("count")
        if not isinstance(count, int):
            raise DataAPIFaultyResponseException(
                text="Faulty response from countDocuments API command.",
                raw_response=str(response.to_dict()),
            )
        return count

    @deprecation.deprecated(  # type: ignore[misc]
        deprecated_in="0.2.0",
        removed_in="1.0.0",
        current_version=__version__,
        details=COUNT_DEPRECATION_NOTICE,
    )
    async def count(
        self,
        filter: FilterType | None = None,
        *,
        timeout_ms: int | None = None,
    ) -> int:
        return await self.count_documents(filter, timeout_ms=timeout_ms)

    async def distinct(
        self,
        key: str,
        filter: FilterType | None = None,
    ) -> list[Any]:
        """
        Return the distinct values found at `key` (a possibly dotted path,
        e.g. "a.b") across the documents matching the filter. Values in
        lists are counted individually. This scans all matching documents.
        """

        cursor = self.find(filter, projection={"_id": False, key: True})
        path = key.split(".")
        seen_keys: set[str] = set()
        distinct_values: list[Any] = []
        async for document in cursor:
            for value in _extract_dotted_path(document, path):
                value_key = id_key(value)
                if value_key not in seen_keys:
                    seen_keys.add(value_key)
                    distinct_values.append(value)
        return distinct_values

    async def options(self) -> dict[str, Any]:
        """
        The options this collection was created with (vector, indexing).

        Raises:
            ValueError: if the collection is not found in the keyspace.
        """

        collection_infos = await self._database.list_collections(name_only=False)
        for collection_info in collection_infos:
            if collection_info.get("name") == self.name:
                return collection_info.get("options") or {}
        raise ValueError(f"Collection {self.namespace}.{self.name} not found.")

    async def drop(self) -> bool:
        """Drop this collection. Returns whether the API acknowledged."""
        return await self._database.drop_collection(self.name)
