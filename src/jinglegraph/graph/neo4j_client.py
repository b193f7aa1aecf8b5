"""
Catalog Graph Client Module.

Thin async wrapper over the Neo4j driver. Everything above it talks to the
database through a few calls: read queries (``execute_cypher``), write
statements that return records (``execute_write_cypher``) or update
counters (``execute_write``), and multi-statement units of work
(``execute_in_transaction``).
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog
from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncManagedTransaction, AsyncSession
from neo4j.exceptions import AuthError, ServiceUnavailable

from jinglegraph.config.settings import Neo4jSettings, get_settings
from jinglegraph.graph.exceptions import GraphConnectionError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Counters reported back from write statements
WRITE_COUNTERS = (
    "nodes_created",
    "nodes_deleted",
    "relationships_created",
    "relationships_deleted",
    "properties_set",
)


class CatalogGraphClient:
    """
    Connection to the catalog database.

    Usage:
        ```python
        client = get_catalog_client()
        await client.connect()

        records = await client.execute_cypher(
            "MATCH (j:Jingle {id: $id}) RETURN j.title AS title", {"id": "j3k7p9a2q"}
        )
        ```

    Query methods connect lazily, so ``connect()`` is only needed to fail
    early on a bad URI or credentials.
    """

    def __init__(self, settings: Neo4jSettings | None = None) -> None:
        self._settings = settings or get_settings().neo4j
        self._driver: AsyncDriver | None = None

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    async def connect(self) -> None:
        """
        Open the driver and check that the server answers.

        Raises:
            GraphConnectionError: Server unreachable or credentials rejected
        """
        if self.is_connected:
            return

        uri = self._settings.uri
        driver = AsyncGraphDatabase.driver(
            uri,
            auth=(self._settings.username, self._settings.password.get_secret_value()),
            max_connection_pool_size=self._settings.max_connection_pool_size,
            connection_timeout=self._settings.connection_timeout_s,
        )
        try:
            await driver.verify_connectivity()
        except (ServiceUnavailable, AuthError, OSError) as e:
            await driver.close()
            logger.error("Catalog database unreachable", uri=uri, error=str(e))
            raise GraphConnectionError(f"Cannot connect to Neo4j at {uri}: {e}") from e

        self._driver = driver
        logger.info("Catalog database connected", uri=uri, database=self._settings.database)

    async def close(self) -> None:
        driver, self._driver = self._driver, None
        if driver is not None:
            await driver.close()
            logger.info("Catalog database connection closed")

    async def verify_connectivity(self) -> bool:
        """True if a trivial query round-trips."""
        try:
            rows = await self.execute_cypher("RETURN 1 AS ok")
        except Exception as e:
            logger.warning("Connectivity check failed", error=str(e))
            return False
        return bool(rows) and rows[0].get("ok") == 1

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if not self.is_connected:
            await self.connect()
        assert self._driver is not None
        async with self._driver.session(database=self._settings.database) as session:
            yield session

    # =========================================================================
    # Statements
    # =========================================================================

    async def execute_cypher(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run a read query and return its records as plain dicts."""
        params = parameters or {}
        async with self._session() as session:
            result = await session.run(query, params)
            rows: list[dict[str, Any]] = await result.data()

        logger.debug("Query returned", query=" ".join(query.split())[:100], params=len(params), rows=len(rows))
        return rows

    async def execute_write_cypher(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Run one write statement in a managed write transaction and return its records."""
        params = parameters or {}

        async def work(tx: AsyncManagedTransaction) -> list[dict[str, Any]]:
            result = await tx.run(query, params)
            rows: list[dict[str, Any]] = await result.data()
            return rows

        rows = await self.execute_in_transaction(work)
        logger.debug("Write returned", query=" ".join(query.split())[:100], params=len(params), rows=len(rows))
        return rows

    async def execute_write(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
    ) -> dict[str, int]:
        """Run one write statement and return its update counters."""
        async with self._session() as session:
            result = await session.run(query, parameters or {})
            summary = await result.consume()

        counters = {name: getattr(summary.counters, name) for name in WRITE_COUNTERS}
        logger.debug("Write applied", **counters)
        return counters

    async def execute_in_transaction(
        self,
        work: Callable[[AsyncManagedTransaction], Awaitable[T]],
    ) -> T:
        """
        Run ``work`` in a single managed write transaction.

        Every statement ``work`` issues on the transaction commits or rolls
        back together. The driver may call ``work`` again after a transient
        failure, so it must not have side effects outside the transaction.
        """
        async with self._session() as session:
            return await session.execute_write(work)


_client: CatalogGraphClient | None = None


def get_catalog_client() -> CatalogGraphClient:
    """Process-wide client built from the current settings."""
    global _client
    if _client is None:
        _client = CatalogGraphClient()
    return _client
