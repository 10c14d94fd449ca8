from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from slotbook.core.db import get_session
from slotbook.core.security import decode_admin_token
from slotbook.services.booking_service import ProviderLocks, provider_locks
from slotbook.services.notifier import Notifier

security = HTTPBearer(auto_error=False)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_provider_locks(request: Request) -> ProviderLocks:
    return getattr(request.app.state, "provider_locks", provider_locks)


async def get_admin_provider_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    provider_id = decode_admin_token(credentials.credentials)
    if not provider_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return provider_id

