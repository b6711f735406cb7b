"""User directory lookups and role predicates."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_modules.core.errors import Forbidden, NotFound
from therapy_modules.models.enums import UserRole
from therapy_modules.models.user import User


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found", detail={"user_id": user_id})
    return user


async def current_therapist_id(db: AsyncSession, user_id: int) -> int | None:
    result = await db.execute(select(User.therapist_id).where(User.id == user_id))
    return result.scalar_one_or_none()


def is_admin(user: User) -> bool:
    return user.has_role(UserRole.ADMIN)


def is_therapist(user: User) -> bool:
    return user.has_role(UserRole.THERAPIST)


def is_verified_therapist(user: User) -> bool:
    return is_therapist(user) and bool(user.is_verified_therapist)


def require_clinician(user: User) -> None:
    """Admins and verified therapists only."""
    if not (is_admin(user) or is_verified_therapist(user)):
        raise Forbidden("Access denied")


def require_admin(user: User) -> None:
    if not is_admin(user):
        raise Forbidden("Access denied")


async def therapist_can_see_patient(db: AsyncSession, therapist_id: int, patient_id: int) -> bool:
    return await current_therapist_id(db, patient_id) == therapist_id


async def require_patient_access(db: AsyncSession, viewer: User, patient_id: int) -> None:
    """Admins see everyone; verified therapists see their own patients."""
    require_clinician(viewer)
    if is_admin(viewer):
        return
    if not await therapist_can_see_patient(db, viewer.id, patient_id):
        raise Forbidden("Forbidden", detail="You are not this user's therapist")
