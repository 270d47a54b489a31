"""Graph store access used by the sync planner.

``GraphOracle`` is the narrow capability the planner needs: existence checks,
statement execution and the verification count. ``NebulaOracle`` implements
it on top of a Nebula Graph session. Every call is a blocking round-trip and
nothing is retried.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Set

from nebula3.Config import Config
from nebula3.gclient.net import ConnectionPool

from ..config.loader import NebulaConfig
from ..exceptions import OracleError
from . import ngql

logger = logging.getLogger(__name__)


class GraphOracle(ABC):
    """Existence checks and statement execution against the graph store."""

    @abstractmethod
    def exists(self, node_id: str) -> bool:
        """Return True if the mitigation vertex exists."""

    @abstractmethod
    def existing_subset(self, node_ids: Sequence[str]) -> Set[str]:
        """Return the subset of technique IDs that already exist."""

    @abstractmethod
    def execute(self, statement: str) -> int:
        """Run one statement and return its row count.

        Raises:
            OracleError: If the statement fails
        """

    @abstractmethod
    def count_mitigates_edges(self, mitigation_id: str) -> int:
        """Return the number of mitigates edges leaving a mitigation."""


class NebulaOracle(GraphOracle):
    """Nebula Graph oracle bound to one space.

    Example:
        with NebulaOracle(config.nebula) as oracle:
            oracle.exists("M1037")
    """

    def __init__(self, config: NebulaConfig, pool: Optional[ConnectionPool] = None):
        """Initialize the oracle.

        Args:
            config: Connection settings
            pool: Optional pre-built connection pool for testing
        """
        self.config = config
        self._pool = pool or ConnectionPool()
        self._session = None

    def __enter__(self) -> "NebulaOracle":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def connect(self) -> None:
        """Open a session and switch to the configured space.

        Raises:
            OracleError: If the pool, the session or ``USE <space>`` fails
        """
        address = f"{self.config.host}:{self.config.port}"
        logger.debug(f"Connecting to Nebula Graph at {address}")

        pool_config = Config()
        pool_config.max_connection_pool_size = 1

        try:
            initialized = self._pool.init([(self.config.host, self.config.port)], pool_config)
        except Exception as e:
            self._pool.close()
            raise OracleError(f"failed to create connection pool for {address}: {e}", operation="connect") from e
        if not initialized:
            self._pool.close()
            raise OracleError(f"failed to create connection pool for {address}", operation="connect")

        try:
            self._session = self._pool.get_session(self.config.user, self.config.password)
        except Exception as e:
            self._pool.close()
            raise OracleError(f"failed to create session: {e}", operation="connect") from e

        try:
            self._run(f"USE {self.config.space};", f"USE space {self.config.space}")
        except OracleError:
            self.close()
            raise

        logger.info(f"Connected to Nebula Graph {address}, space {self.config.space}")

    def close(self) -> None:
        """Release the session and close the pool."""
        if self._session is not None:
            self._session.release()
            self._session = None
        self._pool.close()
        logger.debug("Nebula Graph connection closed")

    def _run(self, statement: str, operation: str):
        if self._session is None:
            raise OracleError(f"{operation}: no active Nebula Graph session", operation=operation)

        logger.debug(f"Query: {statement}")
        try:
            result = self._session.execute(statement)
        except Exception as e:
            raise OracleError(f"{operation}: {e}", operation=operation) from e

        if not result.is_succeeded():
            raise OracleError(f"{operation}: {result.error_msg()}", operation=operation)
        return result

    def exists(self, node_id: str) -> bool:
        result = self._run(ngql.mitigation_exists_query(node_id), f"check mitigation {node_id}")
        return result.row_size() > 0

    def existing_subset(self, node_ids: Sequence[str]) -> Set[str]:
        if not node_ids:
            return set()

        result = self._run(ngql.find_techniques_query(node_ids), "check techniques")

        found: Set[str] = set()
        if result.row_size() == 0:
            return found

        value = result.row_values(0)[0]
        if value.is_list():
            for item in value.as_list():
                if item.is_string():
                    found.add(item.as_string())
        return found

    def execute(self, statement: str) -> int:
        result = self._run(statement, "execute statement")
        return result.row_size()

    def count_mitigates_edges(self, mitigation_id: str) -> int:
        result = self._run(ngql.count_mitigates_query(mitigation_id), "verification query")
        if result.row_size() == 0:
            return 0

        value = result.row_values(0)[0]
        if value.is_int():
            return value.as_int()
        return 0
