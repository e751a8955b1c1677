"""Bearer token helpers shared by the REST API and the real-time handshake."""
from __future__ import annotations

from datetime import timedelta
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ecoroute.core.errors import AdmissionError
from ecoroute.core.settings import settings
from ecoroute.db.time import utcnow


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Issue a signed access token whose subject is the user id."""
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload: dict[str, Any] = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str | None) -> int:
    """Verify signature and expiry of a token and return the user id.

    Raises:
        AdmissionError: If the token is missing, malformed, expired or has no subject.
    """
    if not token:
        raise AdmissionError("Token not provided")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as err:
        raise AdmissionError("Token expired") from err
    except JWTError as err:
        raise AdmissionError("Invalid token") from err

    subject = payload.get("sub")
    try:
        return int(subject)
    except (TypeError, ValueError) as err:
        raise AdmissionError("Invalid token subject") from err
