"""
Authentication middleware and dependencies.

Provides FastAPI dependencies for:
- Resolving the session behind a request
- Getting the current user with their profile role
- Role-based access control
"""

from typing import Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.config import settings
from realaist.core.database import get_db
from realaist.core.exceptions import FORBIDDEN, UNAUTHENTICATED, CampaignError
from realaist.core.security import SessionData, mock_admin_session, verify_session_token
from realaist.models import Profile

logger = structlog.get_logger()

# Bearer token security scheme
security = HTTPBearer(auto_error=False)


class CurrentUser:
    """Current authenticated user context."""

    def __init__(
        self,
        id: str,
        email: Optional[str],
        role: str = "buyer",
        session: Optional[SessionData] = None,
    ):
        self.id = id
        self.email = email
        self.role = role
        self.session = session

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


async def get_current_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> SessionData:
    """
    Resolve the session for a request.

    A bearer token must verify. Without one, a local mock admin is returned
    only when mock sessions are enabled; it is tagged `local-mock` and can
    never approve campaigns.
    """
    if credentials is not None:
        session = verify_session_token(credentials.credentials)
        if session is None:
            raise CampaignError(
                UNAUTHENTICATED,
                "Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return session

    if settings.allow_mock_sessions:
        logger.debug("mock_session_used")
        return mock_admin_session()

    raise CampaignError(
        UNAUTHENTICATED,
        "Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    session: SessionData = Depends(get_current_session),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Get the current user, taking the role from their profile.

    Falls back to the token's role claim when no profile row exists.
    """
    profile = await db.get(Profile, session.user_id)
    if profile is not None:
        return CurrentUser(
            id=profile.id,
            email=profile.email or session.email,
            role=profile.user_type,
            session=session,
        )

    return CurrentUser(
        id=session.user_id,
        email=session.email,
        role=session.role or "buyer",
        session=session,
    )


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require admin role."""
    if not current_user.is_admin:
        raise CampaignError(FORBIDDEN, "Admin access required")
    return current_user
