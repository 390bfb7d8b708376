import time
from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


TOKEN_HEADER = "X-User-Token"


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="user-token")


def generate_user_token(user_id: int, max_age_hours: Optional[int] = None) -> str:
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    timestamp = int(time.time())
    expiry = timestamp + (max_age_hours * 3600)

    token_data = {"u": user_id, "exp": expiry}

    return _serializer().dumps(token_data)


def read_user_token(token: str) -> Optional[int]:
    """Return the user id carried by ``token``, or None if it is not valid."""
    max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return None

    if not isinstance(data, dict):
        return None

    current_time = int(time.time())
    if current_time > data.get("exp", 0):
        return None

    user_id = data.get("u")
    if not isinstance(user_id, int) or user_id <= 0:
        return None
    return user_id
