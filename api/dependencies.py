"""
FastAPI dependencies
"""

import secrets
from typing import AsyncGenerator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import async_session_maker
from sync.client import MagentoClient
from sync.runner import SyncRunner
from sync.store import SyncStore


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session for read endpoints"""
    async with async_session_maker() as session:
        yield session


def get_store() -> SyncStore:
    return SyncStore(async_session_maker)


async def get_runner(store: SyncStore = Depends(get_store)) -> AsyncGenerator[SyncRunner, None]:
    """Runner with a client that lives for one request"""
    async with MagentoClient.from_settings() as client:
        yield SyncRunner(client, store, settings)


async def verify_internal_token(x_internal_token: Optional[str] = Header(default=None)):
    """
    Guard for trigger endpoints.

    Disabled when INTERNAL_TOKEN is not configured.
    """
    expected = settings.INTERNAL_TOKEN
    if not expected:
        return
    if not x_internal_token or not secrets.compare_digest(x_internal_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing internal token"
        )
