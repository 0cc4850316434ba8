# learnify/ai/auth_utils.py
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError
from fastapi import Header, HTTPException

from learnify.config import JWT_SECRET_KEY, JWT_ALGORITHM, JWT_EXPIRE_DAYS

SECRET_KEY = JWT_SECRET_KEY  # Shared with the auth service that issues tokens
ALGORITHM = JWT_ALGORITHM


def create_access_token(user_id: str, role: str = "student", name: Optional[str] = None) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.utcnow() + timedelta(days=JWT_EXPIRE_DAYS)
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def _decode_jwt_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Token is not valid")
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Token is not valid")
    return payload


def extract_token(x_auth_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    if x_auth_token:
        return x_auth_token
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1]
    return None


def verify_token(
    x_auth_token: str = Header(None),
    authorization: str = Header(None)
) -> dict:
    token = extract_token(x_auth_token, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    # Decodes and checks expiration/signature
    return _decode_jwt_token(token)


def verify_token_optional(
    x_auth_token: str = Header(None),
    authorization: str = Header(None)
) -> Optional[dict]:
    token = extract_token(x_auth_token, authorization)
    if not token:
        return None
    try:
        return _decode_jwt_token(token)
    except HTTPException:
        # Public endpoints treat a bad token as anonymous
        return None


def verify_token_ws(token: str) -> dict:
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return _decode_jwt_token(token)
