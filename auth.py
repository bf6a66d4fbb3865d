import hmac
from dataclasses import dataclass
from typing import Literal, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


class Unauthorized(Exception):
    pass


@dataclass(frozen=True)
class Caller:
    kind: Literal["user", "scheduler"]
    user_id: Optional[str] = None


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.session_secret, salt="session-token")


def issue_session_token(user_id: str) -> str:
    return _serializer().dumps({"u": user_id})


def verify_session_token(token: str) -> Optional[str]:
    settings = get_settings()
    try:
        data = _serializer().loads(
            token, max_age=settings.session_max_age_hours * 3600
        )
    except BadSignature:
        return None
    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, str) or not user_id:
        return None
    return user_id


def is_scheduler_key(token: str) -> bool:
    expected = get_settings().scheduler_key
    if not expected:
        return False
    return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Authentication required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized("Invalid authorization header")
    return token.strip()


def authorize(authorization: Optional[str]) -> Caller:
    token = bearer_token(authorization)
    if is_scheduler_key(token):
        return Caller(kind="scheduler")
    user_id = verify_session_token(token)
    if user_id is None:
        raise Unauthorized("Invalid authentication")
    return Caller(kind="user", user_id=user_id)


def authorize_user(authorization: Optional[str]) -> str:
    token = bearer_token(authorization)
    user_id = verify_session_token(token)
    if user_id is None:
        raise Unauthorized("Invalid token")
    return user_id
