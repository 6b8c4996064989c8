"""Bearer token handling.

Tokens are HS256 JWTs carrying the user id in ``sub`` and a ``role`` claim.
The service only verifies them; issuing happens in the account service,
``create_access_token`` exists for operators and tests.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from shortlink.core.config import settings
from shortlink.models.link import OWNER_ID_MAX_LENGTH


class TokenError(Exception):
    """Raised when a bearer token cannot be verified."""
    pass


@dataclass(frozen=True)
class Identity:
    """The authenticated caller of a request."""
    user_id: str
    role: str = "user"


def create_access_token(
    user_id: str,
    role: str = "user",
    expires_minutes: Optional[int] = None,
) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.TOKEN_EXPIRE_MINUTES
    )
    claims = {"sub": str(user_id), "role": role, "exp": expire}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.TOKEN_ALGORITHM)


def decode_access_token(token: str) -> Identity:
    """
    Verify a token and extract the caller identity.

    Args:
        token: Encoded JWT

    Returns:
        Identity: The verified caller

    Raises:
        TokenError: If the token is malformed, expired or badly signed, or its
            subject is missing or too long to be a link owner
    """
    try:
        claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.TOKEN_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenError("token has expired") from e
    except JWTError as e:
        raise TokenError("invalid token") from e

    user_id = claims.get("sub")
    if not user_id:
        raise TokenError("token has no subject")
    if len(str(user_id)) > OWNER_ID_MAX_LENGTH:
        raise TokenError("invalid token")
    return Identity(user_id=str(user_id), role=claims.get("role") or "user")
