"""Subject Directories — existence lookups for the user and book fact checkers.

Invariants:
    - exists() returns True/False only for an authoritative answer
    - Every other failure (DB down, HTTP 5xx, connection error) raises SubjectLookupError
    - No retries here: the fact checker bounds the call and fails closed

Design Decisions:
    - Users live in the saga's own database (users table); books live behind the
      inventory service's HTTP API
    - HttpBookInventory owns its httpx.AsyncClient unless one is injected (tests)
"""

import logging

import httpx
from sqlalchemy import select

from bookswap.core.errors import DatabaseError, SubjectLookupError
from bookswap.infrastructure.database import DatabaseSessionManager
from bookswap.models.user import User

logger = logging.getLogger(__name__)


class SqlUserDirectory:
    """User existence against the users table."""

    source = "user-directory"

    def __init__(self, db_manager: DatabaseSessionManager):
        self._db = db_manager

    async def exists(self, subject_id: str) -> bool:
        try:
            async with self._db.session() as db:
                result = await db.execute(
                    select(User.id).where(User.id == subject_id),
                )
                return result.scalar_one_or_none() is not None
        except DatabaseError as e:
            raise SubjectLookupError(e.message, self.source)
        except OSError as e:
            # asyncpg surfaces refused connections as raw OSError
            raise SubjectLookupError(f"{type(e).__name__}: {e}", self.source)


class HttpBookInventory:
    """Book existence via GET {base_url}/books/{book_id} on the inventory service."""

    source = "inventory-service"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=timeout_seconds,
        )

    async def exists(self, subject_id: str) -> bool:
        try:
            response = await self._client.get(f"/books/{subject_id}")
        except httpx.HTTPError as e:
            raise SubjectLookupError(
                f"{type(e).__name__}: {e}", self.source,
            )
        if response.status_code == httpx.codes.NOT_FOUND:
            return False
        if response.is_success:
            return True
        raise SubjectLookupError(
            f"unexpected status {response.status_code}", self.source,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
