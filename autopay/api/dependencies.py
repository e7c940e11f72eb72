"""Request Dependencies — caller identity and per-request services.

Invariants:
    - The owner is taken from the X-Owner-Id header set by the upstream auth layer;
      a missing or malformed header is a 401, never a guess
    - Services are built per request around the request's DB session
"""

from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from autopay.infrastructure.database import get_db
from autopay.infrastructure.key_vault import KeyVault
from autopay.services.account_directory import AccountDirectory
from autopay.services.schedule_service import ScheduleService
from autopay.services.ticker import Ticker


def _unauthenticated(message: str) -> HTTPException:
    return HTTPException(
        status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": {
                "code": "UNAUTHENTICATED",
                "message": message,
                "category": "authorization",
                "severity": "error",
            },
        },
    )


async def current_owner_id(
    x_owner_id: str | None = Header(default=None),
) -> UUID:
    if not x_owner_id:
        raise _unauthenticated("X-Owner-Id header is required")
    try:
        return UUID(x_owner_id)
    except ValueError:
        raise _unauthenticated("X-Owner-Id must be a UUID")


async def schedule_service(db: AsyncSession = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


async def account_directory(db: AsyncSession = Depends(get_db)) -> AccountDirectory:
    return AccountDirectory(db)


def key_vault(request: Request) -> KeyVault:
    return request.app.state.key_vault


def ticker(request: Request) -> Ticker:
    return request.app.state.ticker
