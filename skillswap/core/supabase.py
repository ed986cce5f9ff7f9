import logging
from functools import lru_cache
from typing import Optional, Dict, Any
from supabase import create_client, Client
from postgrest.exceptions import APIError
from .config import get_settings
from .exceptions import DuplicateRecordError

logger = logging.getLogger(__name__)

# PostgreSQL error code for unique_violation
UNIQUE_VIOLATION = "23505"

@lru_cache()
def get_supabase_client() -> Client:
    """Get the shared Supabase client instance."""
    settings = get_settings()

    if not settings.supabase_url or not settings.supabase_key:
        raise ValueError(
            "SUPABASE_URL and SUPABASE_KEY must be set in environment variables"
        )

    logger.info(f"Connecting to Supabase at {settings.supabase_url}")
    return create_client(settings.supabase_url, settings.supabase_key)

def _apply_filters(query, filters: Optional[Dict[str, Any]], any_of: Optional[Dict[str, Any]]):
    for key, value in (filters or {}).items():
        if isinstance(value, (list, tuple, set)):
            query = query.in_(key, list(value))
        else:
            query = query.eq(key, value)

    if any_of:
        query = query.or_(",".join(f"{key}.eq.{value}" for key, value in any_of.items()))

    return query

async def execute_query(
    client: Client,
    table: str,
    query_type: str,
    data: Optional[Dict[str, Any]] = None,
    filters: Optional[Dict[str, Any]] = None,
    any_of: Optional[Dict[str, Any]] = None,
    select: str = "*",
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    order_by: Optional[Dict[str, str]] = None,
):
    """
    Execute a query on the Supabase database.

    Every call maps to exactly one PostgREST request, so an update with
    filters is a single ``UPDATE ... WHERE ... RETURNING *`` statement and
    only the rows that still matched the filters at write time come back.

    Args:
        client: The Supabase client
        table: The table to query
        query_type: The type of query (select, insert, update)
        data: The data to insert or update
        filters: Column filters, all of which must hold. A list value
            means "column is one of"; anything else is equality.
        any_of: Equality filters of which at least one must hold
        select: The columns to select
        limit: The maximum number of rows to return
        offset: Rows to skip before the first returned row; needs a limit
        order_by: The columns to order by, mapped to "asc" or "desc"

    Returns:
        The rows returned by the query

    Raises:
        DuplicateRecordError: If an insert or update violates a unique index
    """
    logger.debug(f"Executing {query_type} on table {table} with filters {filters} {any_of or ''}")

    query = client.table(table)

    try:
        if query_type == "select":
            query = _apply_filters(query.select(select), filters, any_of)

            for key, direction in (order_by or {}).items():
                query = query.order(key, desc=direction.lower() == "desc")

            if limit and offset:
                query = query.range(offset, offset + limit - 1)
            elif limit:
                query = query.limit(limit)

        elif query_type == "insert":
            if not data:
                raise ValueError("Data is required for insert operations")

            query = query.insert(data)

        elif query_type == "update":
            if not data:
                raise ValueError("Data is required for update operations")

            if not filters:
                raise ValueError("Filters are required for update operations")

            query = _apply_filters(query.update(data), filters, any_of)

        else:
            raise ValueError(f"Invalid query type: {query_type}")

        result = query.execute()
        return result.data

    except APIError as e:
        _raise_store_error(e, query_type, table)

async def execute_rpc(client: Client, function: str, params: Optional[Dict[str, Any]] = None):
    """
    Call a database function through PostgREST.

    The function body runs as one transaction, so either all of its writes
    are kept or none are.

    Raises:
        DuplicateRecordError: If the function violates a unique index
    """
    logger.debug(f"Calling function {function} with {params}")

    try:
        result = client.rpc(function, params or {}).execute()
        return result.data

    except APIError as e:
        _raise_store_error(e, "rpc", function)

def _raise_store_error(e: APIError, action: str, target: str):
    if e.code == UNIQUE_VIOLATION:
        logger.info(f"Unique constraint rejected {action} on {target}: {e.message}")
        raise DuplicateRecordError(target, e.message or "") from e

    logger.error(f"Error executing {action} on {target}: {e.message} (code {e.code})")
    raise e
