from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from slotbook.core.config import settings


def create_admin_token(provider_id: str, expires_minutes: int | None = None) -> str:
    """Bearer token for a provider's admin endpoints.

    Admin login lives outside this service; this helper mints tokens for
    scripts and tests with the shared secret.
    """
    minutes = expires_minutes if expires_minutes is not None else settings.admin_token_expire_minutes
    expire = datetime.now(UTC) + timedelta(minutes=minutes)
    to_encode = {"sub": str(provider_id), "exp": expire, "type": "admin"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_admin_token(token: str) -> str | None:
    """Returns the provider id the token was issued for, or None."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        if payload.get("type") != "admin":
            return None
        sub = payload.get("sub")
        return str(sub) if sub else None
    except JWTError:
        return None
