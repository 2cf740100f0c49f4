"""
Cassandra archive for posts
"""
import logging
import threading
from datetime import datetime
from typing import Optional, List

from cassandra import DriverException
from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..domain.models import Post
from ..domain.repositories import IPostArchive
from ..exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)


class CassandraPostArchive(IPostArchive):
    """Best-effort wide-column archive, one row per post"""

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        keyspace: Optional[str] = None,
        table: Optional[str] = None,
    ):
        self.hosts = hosts or settings.CASSANDRA_HOSTS
        self.keyspace = keyspace or settings.CASSANDRA_KEYSPACE
        self.table = table or settings.CASSANDRA_TABLE
        self.cluster = None
        self.session = None
        self._insert = None
        self._lock = threading.Lock()

    def _open_session(self):
        # cassandra.cluster selects an event loop reactor at import time
        from cassandra.cluster import Cluster

        cluster = Cluster(
            self.hosts,
            port=settings.CASSANDRA_PORT,
            connect_timeout=settings.ARCHIVE_TIMEOUT,
        )
        try:
            session = cluster.connect()
            session.default_timeout = settings.ARCHIVE_TIMEOUT
            session.execute(
                f"CREATE KEYSPACE IF NOT EXISTS {self.keyspace} "
                "WITH replication = {'class': 'SimpleStrategy', 'replication_factor': 1}"
            )
            session.set_keyspace(self.keyspace)
            session.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    post_id text PRIMARY KEY,
                    author text,
                    message text,
                    lat double,
                    lon double
                )
                """
            )
            insert = session.prepare(
                f"INSERT INTO {self.table} (post_id, author, message, lat, lon) "
                "VALUES (?, ?, ?, ?, ?) USING TIMESTAMP ?"
            )
        except Exception:
            cluster.shutdown()
            raise
        self._insert = insert
        self.cluster = cluster
        self.session = session
        logger.info(f"Cassandra archive ready at {self.keyspace}.{self.table}")

    def _get_session(self):
        if self.session is None:
            with self._lock:
                if self.session is None:
                    self._open_session()
        return self.session

    def _write(self, post: Post, written_at: datetime):
        from cassandra.cluster import NoHostAvailable

        try:
            session = self._get_session()
            session.execute(
                self._insert,
                (
                    post.id,
                    post.user,
                    post.message,
                    post.location.lat,
                    post.location.lon,
                    int(written_at.timestamp() * 1_000_000),
                ),
            )
        except (NoHostAvailable, DriverException) as e:
            raise CollaboratorUnavailable("archive", f"failed to archive post {post.id}: {e}") from e

    async def write_post(self, post: Post, written_at: datetime) -> None:
        """Archive a post; every column carries the write timestamp"""
        await run_in_threadpool(self._write, post, written_at)
        logger.info(f"Archived post {post.id}")

    def disconnect(self):
        """Shut down the Cassandra cluster connection"""
        if self.cluster:
            self.cluster.shutdown()
            self.cluster = None
            self.session = None
            logger.info("Cassandra connection closed")


# Global archive instance
post_archive = CassandraPostArchive()
