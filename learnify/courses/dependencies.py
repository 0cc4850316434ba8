# learnify/courses/dependencies.py

from typing import Optional

from fastapi import Depends

from learnify.ai.auth_utils import verify_token, verify_token_optional
from learnify.errors import ForbiddenError


class UserContext:
    """
    Authenticated caller, built from the token payload
    """
    def __init__(self, user_id: str, role: str = "student", name: Optional[str] = None):
        self.user_id = user_id
        self.role = role
        self.name = name
        self.is_admin = role == "admin"

    @classmethod
    def from_payload(cls, payload: dict) -> "UserContext":
        return cls(
            user_id=payload["sub"],
            role=payload.get("role", "student"),
            name=payload.get("name")
        )

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_current_user(payload: dict = Depends(verify_token)) -> UserContext:
    return UserContext.from_payload(payload)


async def get_optional_user(payload: Optional[dict] = Depends(verify_token_optional)) -> Optional[UserContext]:
    """Same as get_current_user but anonymous callers get None"""
    if payload is None:
        return None
    return UserContext.from_payload(payload)


async def require_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    if not user.is_admin:
        raise ForbiddenError("Access denied. Admin only.")
    return user
