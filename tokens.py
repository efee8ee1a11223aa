from typing import Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.token_secret, salt="access-token")


def issue_access_token(owner_id: int) -> str:
    return _serializer().dumps({"o": owner_id})


def resolve_access_token(
    token: str, max_age_hours: Optional[int] = None
) -> Optional[int]:
    """Return the owner id carried by ``token``, or None if it is invalid or expired."""
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return None

    owner_id = data.get("o") if isinstance(data, dict) else None
    if not isinstance(owner_id, int) or owner_id < 1:
        return None
    return owner_id
