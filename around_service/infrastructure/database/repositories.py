"""
Repository implementations - Credential store access
"""
from typing import Optional
import asyncpg

from ...domain.models import Credential
from ...domain.repositories import ICredentialRepository
from .connection import DatabaseConnection


class CredentialRepository(ICredentialRepository):
    """Credential repository implementation using PostgreSQL"""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def _row_to_credential(self, row: Optional[asyncpg.Record]) -> Optional[Credential]:
        """Convert database row to Credential model"""
        if not row:
            return None
        return Credential(username=row["username"], password=row["password"])

    async def find_by_username(self, username: str) -> Optional[Credential]:
        """Find credential by username"""
        row = await self.db.fetch_one(
            """
            SELECT username, password
            FROM credentials
            WHERE username = $1
            """,
            username
        )
        return self._row_to_credential(row)

    async def exists(self, username: str) -> bool:
        """Check if username is registered"""
        return bool(await self.db.fetch_val(
            "SELECT EXISTS(SELECT 1 FROM credentials WHERE username = $1)",
            username
        ))

    async def insert_if_absent(self, credential: Credential) -> bool:
        """Insert credential; the primary key makes a concurrent duplicate a no-op"""
        inserted = await self.db.fetch_val(
            """
            INSERT INTO credentials (username, password)
            VALUES ($1, $2)
            ON CONFLICT (username) DO NOTHING
            RETURNING username
            """,
            credential.username,
            credential.password
        )
        return inserted is not None
