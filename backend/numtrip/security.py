"""Signed bearer tokens carrying a user's id and role."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

TOKEN_SALT = "numtrip-auth"
DEFAULT_MAX_AGE = 60 * 60 * 24 * 30  # 30 days


@dataclass(frozen=True)
class TokenIdentity:
    user_id: int
    role: str


def _serializer(secret: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret, salt=TOKEN_SALT)


def issue_token(user_id: int, role: str, secret: str) -> str:
    return _serializer(secret).dumps({"id": int(user_id), "role": str(role or "user")})


def verify_token(token: str, secret: str, max_age: int = DEFAULT_MAX_AGE) -> Optional[TokenIdentity]:
    """Return the token's identity, or None when it is forged, expired or malformed."""
    try:
        data = _serializer(secret).loads(token, max_age=max_age)
    except (SignatureExpired, BadSignature):
        return None
    if not isinstance(data, dict) or data.get("id") is None:
        return None
    try:
        return TokenIdentity(user_id=int(data["id"]), role=str(data.get("role") or "user"))
    except (TypeError, ValueError):
        return None
