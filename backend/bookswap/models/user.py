"""User ORM — the user directory the user fact checker reads.

Invariants:
    - id is the opaque subject identifier carried in user validation requests
    - Read-only from the saga's point of view (existence check only)
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from bookswap.db.base import Base


class User(Base):
    """Registered user who can lend or borrow books."""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
