"""健康检查 API"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from studymate import __version__
from studymate.db import get_db
from studymate.middleware.authorization import authorize
from studymate.models import APIResponse, HealthStatus

router = APIRouter(prefix="/v1/health", tags=["健康检查"])


@router.get("", response_model=APIResponse[HealthStatus])
async def health_check(request: Request):
    """健康检查"""
    return APIResponse.ok(
        data=HealthStatus(
            status="healthy",
            environment=request.app.state.environment.value,
            version=__version__,
        )
    )


@router.get("/database", response_model=APIResponse[HealthStatus])
@authorize()
async def database_health(request: Request, db: AsyncSession = Depends(get_db)):
    """数据库连通性检查"""
    await db.execute(text("SELECT 1"))
    return APIResponse.ok(
        data=HealthStatus(
            status="healthy",
            environment=request.app.state.environment.value,
            version=__version__,
            database="reachable",
        )
    )
