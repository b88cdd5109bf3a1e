"""
Security module — Supabase session verification + Mock auth + Role guard.

Auth Flow:
1. User logs in through Supabase Auth on the frontend → gets an access token
2. Frontend sends the token to FastAPI as a Bearer token
3. FastAPI resolves the token with Supabase Auth
4. Backend fetches the user profile (and role) from user_profiles
5. Backend injects: user_id, role, and the parent/guru wali links

Sessions are never issued here; the service only consumes them.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from g7kaih.core.config import settings
from g7kaih.core.database import get_supabase
from g7kaih.services.store import ActivityStore, get_store

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401 rather than FastAPI's 403
security_scheme = HTTPBearer(auto_error=False)

MOCK_PREFIX = "mock-"
SUPERVISOR_ROLES = ("teacher", "guruwali")


def _profile_to_user(profile: dict) -> dict:
    if not profile.get("rolename"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profil pengguna belum memiliki peran.",
        )
    return {
        "user_id": profile["userid"],
        "email": profile.get("email"),
        "name": profile.get("username"),
        "role": profile["rolename"],
        "kelas": profile.get("kelas"),
        "guruwali_userid": profile.get("guruwali_userid"),
        "parent_of_userid": profile.get("parent_of_userid"),
    }


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    store: ActivityStore = Depends(get_store),
) -> dict:
    """
    Validate the Bearer token and return the caller as a user dict.
    Only users with a profile row can authenticate.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tidak terautentikasi",
        )

    token = credentials.credentials

    if settings.AUTH_MODE == "mock":
        return _mock_auth(token, store)

    return _supabase_auth(token, store)


def _mock_auth(token: str, store: ActivityStore) -> dict:
    """Mock mode: tokens look like `mock-<userid>`."""
    if token.startswith(MOCK_PREFIX):
        profile = store.get_profile(token[len(MOCK_PREFIX):])
        if profile:
            return _profile_to_user(profile)

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token tidak valid.",
    )


def _supabase_auth(token: str, store: ActivityStore) -> dict:
    """Supabase mode: resolve the access token, then load the profile."""
    try:
        response = get_supabase().auth.get_user(token)
    except Exception:
        logger.info("Rejected Supabase token", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token tidak valid atau sudah kedaluwarsa.",
        )

    user = getattr(response, "user", None)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token tidak valid atau sudah kedaluwarsa.",
        )

    profile = store.get_profile(user.id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profil pengguna tidak ditemukan. Hubungi admin sekolah.",
        )
    return _profile_to_user(profile)


# ---------------------------------------------------------------------------
# Role guard dependency
# ---------------------------------------------------------------------------
def require_role(allowed_roles: list[str]):
    """
    Usage:
        @router.get("/guru-only")
        async def endpoint(user=Depends(require_role(["teacher", "guruwali"]))):
    """

    async def role_checker(
        user: dict = Depends(get_current_user),
    ) -> dict:
        if user["role"] not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user['role']}' not authorized. Required: {allowed_roles}",
            )
        return user

    return role_checker


def can_supervise(store: ActivityStore, actor: dict, student_id: Optional[str]) -> bool:
    """Teachers supervise every student; a guru wali only their assigned students."""
    if not student_id:
        return False
    if actor["role"] in ("admin", "teacher"):
        return True
    if actor["role"] == "guruwali":
        student = store.get_profile(student_id) or {}
        return student.get("guruwali_userid") == actor["user_id"]
    return False


def can_view_student(store: ActivityStore, actor: dict, student_id: Optional[str]) -> bool:
    if actor["role"] == "student":
        return actor["user_id"] == student_id
    if actor["role"] == "parent":
        return bool(student_id) and actor.get("parent_of_userid") == student_id
    return can_supervise(store, actor, student_id)
