"""Auth Callback - mirrors a freshly signed-in identity into the users table.

Invariants:
    - Incomplete identity (missing email or names) is rejected with 401
    - Idempotent: an existing user row is left untouched
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from briefly.api.dependencies import get_identity
from briefly.core.errors import UnauthorizedError
from briefly.infrastructure.database import get_db
from briefly.models.user import User
from briefly.schemas.user import Identity

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/callback")
async def auth_callback(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Create the user on first sign-in."""
    if not identity.is_complete():
        raise UnauthorizedError("Incomplete identity")

    if await db.get(User, identity.id) is None:
        db.add(User(
            id=identity.id,
            email=identity.email,
            first_name=identity.given_name,
            last_name=identity.family_name,
        ))
        await db.commit()
        logger.info("User created", extra={"user_id": identity.id})
    return {"success": True}
