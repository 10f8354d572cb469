"""Cassandra session for the progress store.

Statements run through `session.aexecute()` (cassandra-asyncio-driver).
Progress writes are lightweight transactions, so the default execution
profile pins LOCAL_QUORUM reads/writes and LOCAL_SERIAL for the Paxos
round; a conditional write and the read that follows it then agree.
"""

import structlog
from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, ExecutionProfile
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from courseflow.config.settings import Settings, get_settings
from courseflow.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)


def _progress_profile(settings: Settings) -> ExecutionProfile:
    return ExecutionProfile(
        load_balancing_policy=TokenAwarePolicy(
            DCAwareRoundRobinPolicy(local_dc=settings.cassandra_local_dc)
        ),
        consistency_level=ConsistencyLevel.LOCAL_QUORUM,
        serial_consistency_level=ConsistencyLevel.LOCAL_SERIAL,
        request_timeout=settings.cassandra_request_timeout,
    )


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        """Open the session (idempotent).

        Raises:
            ConnectionError: If no contact point answers
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()
        credentials = None
        if settings.cassandra_username and settings.cassandra_password:
            credentials = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=credentials,
            protocol_version=settings.cassandra_protocol_version,
            execution_profiles={EXEC_PROFILE_DEFAULT: _progress_profile(settings)},
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", hosts=settings.cassandra_hosts, error=str(e))
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info("cassandra_connected", hosts=settings.cassandra_hosts, port=settings.cassandra_port)
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def init_async_keyspace(session, keyspace: str) -> None:
    """Create the keyspace if it is missing."""
    settings = get_settings()
    if settings.is_production:
        replication = f"'class': 'NetworkTopologyStrategy', '{settings.cassandra_local_dc or 'datacenter1'}': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )


async def init_async_progress_tables(session, keyspace: str) -> None:
    """Create the enrollment progress table."""
    for table_cql in PROGRESS_TABLES_CQL:
        await session.aexecute(table_cql.format(keyspace=keyspace))
    logger.info("progress_tables_ready", keyspace=keyspace, tables=len(PROGRESS_TABLES_CQL))


async def init_async_cassandra():
    """Connect and make sure the schema exists.

    Returns:
        Session bound to the configured keyspace
    """
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    session = AsyncCassandraConnection.connect()
    await init_async_keyspace(session, keyspace)
    session.set_keyspace(keyspace)
    await init_async_progress_tables(session, keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
