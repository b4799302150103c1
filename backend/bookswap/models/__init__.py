"""ORM Models — SQLAlchemy declarative models for the saga's tables.

Invariants:
    - All models inherit from Base (db/base.py)
    - Exchange is the aggregate root; users is a read-only directory

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all
"""

from bookswap.models.exchange import Exchange  # noqa: F401
from bookswap.models.user import User  # noqa: F401
