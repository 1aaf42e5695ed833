"""
PostgreSQL database connector using SQLAlchemy async.

Provides an async functional interface over a pooled asyncpg engine. Used for
reading customer banking documents and for persisting process monitor entries.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..utils.logging import get_logger
from ..utils.settings import config

logger = get_logger()

_async_engine: Optional[AsyncEngine] = None


async def _get_async_engine() -> AsyncEngine:
    """
    Get or create the async SQLAlchemy engine with connection pooling.

    Returns:
        Async SQLAlchemy Engine instance

    Raises:
        SQLAlchemyError: If unable to create engine
    """
    global _async_engine  # pylint: disable=global-statement
    # Engine must be a process-wide singleton to share the connection pool.

    if _async_engine is None:
        try:
            database_url = (
                f"postgresql+asyncpg://{config.postgres_user}:{config.postgres_password}"
                f"@{config.postgres_host}:{config.postgres_port}/{config.postgres_database}"
            )

            _async_engine = create_async_engine(
                database_url,
                pool_size=20,
                max_overflow=40,
                pool_timeout=30,
                pool_recycle=3600,
                pool_pre_ping=True,
                echo=False,
            )

            logger.info(
                "postgres.engine_created",
                host=config.postgres_host,
                port=config.postgres_port,
                database=config.postgres_database,
                pool_size=20,
            )
        except SQLAlchemyError as e:
            logger.error(
                "postgres.engine_error",
                error=str(e),
                host=config.postgres_host,
                port=config.postgres_port,
                database=config.postgres_database,
            )
            raise

    return _async_engine


@asynccontextmanager
async def get_connection(execution_id: Optional[str] = None) -> AsyncGenerator[AsyncConnection, None]:
    """
    Get an async database connection from the pool inside a transaction.

    Args:
        execution_id: Optional execution ID for logging

    Yields:
        Async SQLAlchemy connection object

    Raises:
        SQLAlchemyError: If unable to get connection
    """
    engine = await _get_async_engine()

    async with engine.begin() as conn:
        try:
            yield conn
        except SQLAlchemyError as e:
            logger.error("postgres.connection_error", execution_id=execution_id, error=str(e))
            raise


async def fetch_one(
    query: str,
    params: Optional[Dict[str, Any]] = None,
    execution_id: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Execute a SELECT query and return the first result.

    Args:
        query: SQL SELECT query
        params: Query parameters as dictionary
        execution_id: Optional execution ID for logging

    Returns:
        Dictionary representing the first row, or None if no results

    Raises:
        SQLAlchemyError: If query execution fails
    """
    async with get_connection(execution_id) as conn:
        try:
            result = await conn.execute(text(query), params or {})
            row = result.fetchone()
            if row is None:
                logger.debug("postgres.fetch_one_empty", execution_id=execution_id)
                return None
            return dict(row._mapping)  # pylint: disable=protected-access
        except SQLAlchemyError as e:
            logger.error("postgres.fetch_error", execution_id=execution_id, error=str(e), query=query[:500])
            raise


async def insert_many_async(
    table_name: str,
    records: List[Dict[str, Any]],
    execution_id: Optional[str] = None,
) -> int:
    """
    Insert multiple records into a table in one batch.

    Dict and list values are serialized to JSON for JSONB columns.

    Args:
        table_name: Name of the table to insert into
        records: Records to insert; all must share the same keys
        execution_id: Optional execution ID for logging

    Returns:
        Number of rows inserted

    Raises:
        SQLAlchemyError: If the insert fails
    """
    if not records:
        logger.warning("postgres.insert_many_empty", table=table_name, execution_id=execution_id)
        return 0

    processed_records = []
    for record in records:
        processed = dict(record)
        for key, value in processed.items():
            if isinstance(value, (dict, list)):
                processed[key] = json.dumps(value, default=str)
        processed_records.append(processed)

    columns = list(processed_records[0].keys())
    query = text(
        f"INSERT INTO {table_name} ({', '.join(columns)}) "
        f"VALUES ({', '.join(f':{col}' for col in columns)})"
    )

    async with get_connection(execution_id) as conn:
        try:
            result = await conn.execute(query, processed_records)
            logger.info(
                "postgres.insert_many_success",
                table=table_name,
                rows_inserted=result.rowcount,
                execution_id=execution_id,
            )
            return result.rowcount
        except SQLAlchemyError as e:
            logger.error(
                "postgres.insert_many_error",
                table=table_name,
                record_count=len(records),
                error=str(e),
                execution_id=execution_id,
            )
            raise


async def close_all_connections() -> None:
    """
    Dispose of the async connection pool.

    Called when shutting down the application.
    """
    global _async_engine  # pylint: disable=global-statement
    # The engine singleton is reset so a later call can rebuild the pool.

    if _async_engine:
        await _async_engine.dispose()
        _async_engine = None
        logger.info("postgres.connections_closed")
