"""
Base repository over one Supabase table.

Provides typed CRUD, filtered listing and page-based listing. Backend
failures surface as QueryError (reads) or WriteError (writes); a missing
row on a single-row lookup is a normal None result.
"""

from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from postgrest.types import CountMethod
from supabase import AsyncClient

from ..exceptions import (ErrorKind, RecordNotFoundError, WriteError,
                          classify_error, error_code, error_message,
                          query_error_for)
from ..logging_config import get_logger
from ..metrics import track_repository_operation
from ..models import (EntityRecord, PaginationOptions, PaginationResult,
                      QueryOptions)

logger = get_logger(__name__)

T = TypeVar("T", bound=EntityRecord)

# Rows fetched when an offset is given without a limit
DEFAULT_WINDOW = 50

# Columns assigned by the store, never sent on insert/update
STORE_MANAGED_FIELDS = frozenset({"id", "created_at", "updated_at"})


class BaseRepository(Generic[T]):
    """
    Generic repository for one table.

    Attributes:
        client: Supabase async client
        table_name: Name of the remote table
        model: Entity model rows are validated into
    """

    def __init__(self, client: AsyncClient, table_name: str, model: Type[T]) -> None:
        self.client = client
        self.table_name = table_name
        self.model = model

    # Query building

    def _table(self):
        return self.client.table(self.table_name)

    @staticmethod
    def _apply_filters(query, filters: Optional[Dict[str, Any]]):
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, value)
        return query

    def _to_models(self, rows: Optional[List[Dict[str, Any]]]) -> List[T]:
        return [self.model.model_validate(row) for row in rows or []]

    @staticmethod
    def _writable(data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in data.items() if k not in STORE_MANAGED_FIELDS}

    # Execution

    async def _execute_read(self, query, operation: str):
        try:
            response = await query.execute()
        except Exception as e:
            track_repository_operation(self.table_name, operation, "error")
            logger.error(
                "Repository read failed",
                table=self.table_name,
                operation=operation,
                error=error_message(e),
                code=error_code(e),
            )
            raise query_error_for(self.table_name, e) from e

        track_repository_operation(self.table_name, operation, "success")
        return response

    async def _execute_write(self, query, operation: str):
        try:
            response = await query.execute()
        except Exception as e:
            track_repository_operation(self.table_name, operation, "error")
            logger.error(
                "Repository write failed",
                table=self.table_name,
                operation=operation,
                error=error_message(e),
                code=error_code(e),
            )
            raise WriteError(
                self.table_name, operation, error_message(e), error_code(e)
            ) from e

        track_repository_operation(self.table_name, operation, "success")
        return response

    async def _fetch_one(self, column: str, value: Any, operation: str) -> T:
        """
        Fetch exactly one row where ``column`` equals ``value``.

        Raises:
            RecordNotFoundError: If no row matches
            QueryError: On any other failure
        """
        query = self._table().select("*").eq(column, value).single()
        try:
            response = await query.execute()
        except Exception as e:
            if classify_error(e) is ErrorKind.NOT_FOUND:
                track_repository_operation(self.table_name, operation, "not_found")
                logger.debug(
                    "Row not found", table=self.table_name, column=column, value=value
                )
                raise RecordNotFoundError(self.table_name, column, value) from e
            track_repository_operation(self.table_name, operation, "error")
            logger.error(
                "Repository read failed",
                table=self.table_name,
                operation=operation,
                error=error_message(e),
                code=error_code(e),
            )
            raise query_error_for(self.table_name, e) from e

        track_repository_operation(self.table_name, operation, "success")
        return self.model.model_validate(response.data)

    # CRUD

    async def get_all(self, options: Optional[QueryOptions] = None) -> List[T]:
        """
        List rows matching the options.

        Args:
            options: Equality filters, ordering and window

        Returns:
            Matching rows

        Raises:
            QueryError: If the read fails
        """
        options = options or QueryOptions()
        query = self._apply_filters(self._table().select("*"), options.filters)

        if options.order_by:
            query = query.order(options.order_by, desc=not options.ascending)

        if options.offset is not None:
            window = options.limit or DEFAULT_WINDOW
            query = query.range(options.offset, options.offset + window - 1)
        elif options.limit:
            query = query.limit(options.limit)

        response = await self._execute_read(query, "get_all")
        return self._to_models(response.data)

    async def get_by_id(self, record_id: str) -> Optional[T]:
        """
        Get one row by id.

        Args:
            record_id: Row identifier

        Returns:
            The row, or None if no row has this id

        Raises:
            QueryError: If the read fails
        """
        try:
            return await self._fetch_one("id", record_id, "get_by_id")
        except RecordNotFoundError:
            return None

    async def create(self, data: Dict[str, Any]) -> T:
        """
        Insert a row. Identifier and timestamps are assigned by the store.

        Args:
            data: Column values

        Returns:
            The stored row

        Raises:
            WriteError: If the insert is rejected or fails
        """
        response = await self._execute_write(
            self._table().insert(self._writable(data)), "create"
        )
        if not response.data:
            raise WriteError(self.table_name, "create", "no row returned")

        logger.info("Row created", table=self.table_name, id=response.data[0].get("id"))
        return self.model.model_validate(response.data[0])

    async def update(self, record_id: str, data: Dict[str, Any]) -> T:
        """
        Update columns of one row.

        Args:
            record_id: Row identifier
            data: Columns to change

        Returns:
            The updated row

        Raises:
            WriteError: If no row has this id or the write is rejected
        """
        query = self._table().update(self._writable(data)).eq("id", record_id)
        response = await self._execute_write(query, "update")
        if not response.data:
            raise WriteError(
                self.table_name, "update", f"no row with id {record_id}"
            )

        return self.model.model_validate(response.data[0])

    async def delete(self, record_id: str) -> None:
        """
        Delete one row. Deleting a missing id succeeds.

        Args:
            record_id: Row identifier

        Raises:
            WriteError: If the delete fails
        """
        await self._execute_write(self._table().delete().eq("id", record_id), "delete")

    # Counting and pagination

    async def count(self, filters: Optional[Dict[str, Any]] = None) -> int:
        """
        Count rows matching equality filters.

        Raises:
            QueryError: If the count fails
        """
        query = self._apply_filters(
            self._table().select("*", count=CountMethod.exact, head=True), filters
        )
        response = await self._execute_read(query, "count")
        return response.count or 0

    async def get_paginated(
        self, options: Optional[PaginationOptions] = None
    ) -> PaginationResult[T]:
        """
        Get one page of rows plus the total row count.

        The count query completes before the data query is issued; a failed
        count aborts the call without issuing the data query.

        Args:
            options: Page, page size, ordering and filters

        Returns:
            The page and its pagination metadata

        Raises:
            QueryError: If either query fails
        """
        options = options or PaginationOptions()

        total_count = await self.count(options.filters)

        query = self._apply_filters(self._table().select("*"), options.filters)
        if options.order_by:
            query = query.order(options.order_by, desc=not options.ascending)
        offset = options.offset
        query = query.range(offset, offset + options.items_per_page - 1)

        response = await self._execute_read(query, "get_paginated")

        return PaginationResult[self.model].build(
            data=self._to_models(response.data),
            total_count=total_count,
            page=options.page,
            items_per_page=options.items_per_page,
        )
