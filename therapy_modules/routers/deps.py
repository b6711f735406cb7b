"""Shared router dependencies: DB session and acting-user resolution."""
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.config import get_settings
from therapy_modules.core.errors import Unauthenticated
from therapy_modules.core.security import verify_session_token
from therapy_modules.db.session import get_db
from therapy_modules.models.user import User

settings = get_settings()

DbSession = Annotated[AsyncSession, Depends(get_db)]


def _token_from_request(request: Request) -> str | None:
    """Session token from the auth cookie, else from ``Authorization: Bearer``."""
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


async def get_current_user(request: Request, db: DbSession) -> User:
    """Return the acting user; 401 if the token is missing, invalid or expired."""
    user_id = verify_session_token(_token_from_request(request))
    if user_id is None:
        raise Unauthenticated()
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
