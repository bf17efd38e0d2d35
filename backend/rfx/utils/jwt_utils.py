import os
import time
from typing import Optional, Dict, Any

import jwt


def _secret() -> str:
    return os.getenv("SECRET_KEY") or "dev-secret"


def create_access_token(user_id: int, ttl_seconds: int = 60 * 60 * 24 * 7, secret: Optional[str] = None) -> str:
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + ttl_seconds,
        "type": "access",
    }
    return jwt.encode(payload, secret or _secret(), algorithm="HS256")


def decode_token(token: str, secret: Optional[str] = None) -> Optional[Dict[str, Any]]:
    try:
        return jwt.decode(token, secret or _secret(), algorithms=["HS256"])
    except jwt.PyJWTError:
        return None


def get_bearer_token(auth_header: str) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None
