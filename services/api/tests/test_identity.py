from datetime import datetime, timedelta, timezone

import jwt
import pytest

from packages.shared.schemas.order_v1 import RoleV1
from services.api.app.services.identity import AuthenticationError, decode_principal

SECRET = "identity-secret"


def _token(claims: dict, secret: str = SECRET) -> str:
    return jwt.encode(claims, secret, algorithm="HS256")


def test_decode_reads_user_id_and_role() -> None:
    principal = decode_principal(_token({"userId": "owner-1", "role": "restaurant_owner"}), secret=SECRET)

    assert principal.user_id == "owner-1"
    assert principal.role == RoleV1.RESTAURANT_OWNER


def test_decode_falls_back_to_sub_and_user_role() -> None:
    principal = decode_principal(_token({"sub": "student-9"}), secret=SECRET)

    assert principal.user_id == "student-9"
    assert principal.role == RoleV1.USER


@pytest.mark.parametrize(
    ("token", "message"),
    [
        (_token({"userId": "u-1"}, secret="other-secret"), "Invalid token"),
        ("not-a-jwt", "Invalid token"),
        (_token({"role": "admin"}), "Token has no user id"),
        (_token({"userId": "u-1", "role": "superuser"}), "Unknown role"),
    ],
)
def test_decode_rejects_bad_tokens(token: str, message: str) -> None:
    with pytest.raises(AuthenticationError, match=message):
        decode_principal(token, secret=SECRET)


def test_decode_rejects_expired_token() -> None:
    expired = _token({"userId": "u-1", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)})

    with pytest.raises(AuthenticationError, match="Token expired"):
        decode_principal(expired, secret=SECRET)
