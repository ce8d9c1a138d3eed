"""ORM Models - SQLAlchemy declarative models for users, files and messages.

Invariants:
    - All models inherit from Base (db/base.py)
    - User owns files and messages; File owns its messages (cascade delete)

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from briefly.models.user import User  # noqa: F401
from briefly.models.file import File  # noqa: F401
from briefly.models.message import Message  # noqa: F401
