"""FastAPI dependencies shared by the tenant routers."""
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from feedback_engine.db import get_session
from feedback_engine.drafting import DraftingService, build_drafting_service
from feedback_engine.errors import NotFound
from feedback_engine.repositories import SQLStorage, Storage
from feedback_engine.side_effects import CelerySideEffects, SideEffects


async def get_storage(session: AsyncSession = Depends(get_session)) -> Storage:
    return SQLStorage(session)


def get_side_effects() -> SideEffects:
    return CelerySideEffects()


@lru_cache(maxsize=1)
def get_drafting() -> DraftingService:
    return build_drafting_service()


def get_now() -> datetime:
    return datetime.now(timezone.utc)


async def tenant_scope(tenant_id: str, storage: Storage = Depends(get_storage)) -> str:
    """Path ``tenant_id`` after checking the tenant exists."""
    if await storage.tenants.get(tenant_id) is None:
        raise NotFound(f"tenant {tenant_id} not found", tenant_id=tenant_id)
    return tenant_id
