"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user               → decode JWT, load user from DB, return User
  require_role(...)              → restrict to specific roles
  get_accessible_cooperative_ids → cooperative IDs the caller may see
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kopitrace.auth.jwt import decode_token
from kopitrace.database import get_db
from kopitrace.middleware.exceptions import PermissionDeniedError
from kopitrace.models.cooperative import Cooperative
from kopitrace.models.user import User, UserCooperative, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")

# Roles allowed to write farming, inventory and quality data
WRITE_ROLES = (UserRole.ADMIN, UserRole.OPERATOR)


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT, load the user, and return it."""
    payload = decode_token(token)
    subject: str | None = payload.get("sub")
    if not subject or payload.get("type") != "access" or not subject.isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == int(subject)))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory: restrict to one or more roles.

    Usage:
        @router.post("/")
        async def create(user: User = Depends(require_role(*WRITE_ROLES))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        return user

    return _check


# ── Cooperative scoping ─────────────────────────────────────

async def get_accessible_cooperative_ids(user: User, db: AsyncSession) -> list[int]:
    """Return the cooperative IDs ``user`` may read.

    SUPER_ADMIN sees every cooperative; ADMIN and OPERATOR only those
    assigned to them in ``user_cooperatives``.
    """
    if user.role == UserRole.SUPER_ADMIN:
        result = await db.execute(select(Cooperative.id).order_by(Cooperative.id))
    else:
        result = await db.execute(
            select(UserCooperative.cooperative_id)
            .where(UserCooperative.user_id == user.id)
            .order_by(UserCooperative.cooperative_id)
        )
    return list(result.scalars().all())


async def ensure_cooperative_access(
    user: User, cooperative_id: int, db: AsyncSession
) -> None:
    """Raise 403 unless ``user`` may write to ``cooperative_id``."""
    if user.role == UserRole.SUPER_ADMIN:
        return
    accessible = await get_accessible_cooperative_ids(user, db)
    if cooperative_id not in accessible:
        raise PermissionDeniedError("Access denied: no permission for this cooperative")
