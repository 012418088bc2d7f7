from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import UnauthorizedError
from app.db.postgres import get_db
from app.services.brand_monitor import BrandMonitorService


async def get_current_user_id(
    x_user_id: str | None = Header(None, description="Id of the calling user"),
) -> str:
    """Caller identity. Authentication itself happens upstream of this service."""
    if not x_user_id or not x_user_id.strip():
        raise UnauthorizedError("Missing X-User-Id header")
    return x_user_id.strip()


async def get_demo_user_id() -> str:
    """Return the demo user id without checking headers. Used as dependency override."""
    return settings.demo_user_id


async def get_brand_monitor_service(db: AsyncSession = Depends(get_db)) -> BrandMonitorService:
    return BrandMonitorService(db)
