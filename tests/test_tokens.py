from itsdangerous import URLSafeTimedSerializer

from config import get_settings
from tokens import issue_access_token, resolve_access_token


def test_issued_token_resolves_to_owner() -> None:
    token = issue_access_token(42)
    assert resolve_access_token(token) == 42


def test_tampered_or_foreign_tokens_are_rejected() -> None:
    token = issue_access_token(42)
    assert resolve_access_token(token[:-2] + "xx") is None
    assert resolve_access_token("garbage") is None

    foreign = URLSafeTimedSerializer("another-secret", salt="access-token").dumps(
        {"o": 42}
    )
    assert resolve_access_token(foreign) is None


def test_payload_without_valid_owner_is_rejected() -> None:
    serializer = URLSafeTimedSerializer(
        get_settings().token_secret, salt="access-token"
    )
    assert resolve_access_token(serializer.dumps({"o": "42"})) is None
    assert resolve_access_token(serializer.dumps({"o": 0})) is None
    assert resolve_access_token(serializer.dumps([42])) is None
