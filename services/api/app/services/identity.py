from __future__ import annotations

import jwt

from packages.shared.schemas.order_v1 import RoleV1
from services.api.app.services.order_base import Principal


class AuthenticationError(Exception):
    """The request carried no usable credentials."""


def decode_principal(token: str, *, secret: str, algorithm: str = "HS256") -> Principal:
    """Verify a bearer token and return the principal it names.

    Tokens are issued elsewhere; only `userId` (or `sub`) and `role` are read.
    """

    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.PyJWTError as e:
        raise AuthenticationError("Invalid token") from e

    user_id = str(claims.get("userId") or claims.get("sub") or "").strip()
    if not user_id:
        raise AuthenticationError("Token has no user id")

    try:
        role = RoleV1(claims.get("role", RoleV1.USER.value))
    except ValueError as e:
        raise AuthenticationError(f"Unknown role: {claims.get('role')!r}") from e

    return Principal(user_id=user_id, role=role)
