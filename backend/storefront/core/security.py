from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import JWTError, jwt

from storefront.core.config import settings

# Tokens are minted by the identity service; this module only needs to read
# them, plus mint access tokens for the CLI and tests.


def create_access_token(subject: str, *, expires_minutes: int | None = None) -> str:
    minutes = settings.access_token_exp_minutes if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode = {"sub": subject, "type": "access", "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
