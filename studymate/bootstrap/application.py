"""应用构建：冻结服务容器并创建 FastAPI 应用"""
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from studymate import __version__
from studymate.core.config import AppSettings
from studymate.core.configuration import HostEnvironment
from studymate.core.container import ServiceCollection, ServiceProvider
from studymate.db import DatabaseContextFactory
from studymate.middleware.authorization import AuthorizationError, authorization_error_handler
from studymate.models import APIResponse

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting StudyMate API", version=__version__, environment=app.state.environment.value)

    yield

    logger.info("Shutting down StudyMate API")
    await app.state.services.get(DatabaseContextFactory).dispose()


def build_application(
    services: ServiceCollection,
    settings: AppSettings,
    environment: HostEnvironment,
) -> FastAPI:
    """构建应用；内置文档端点关闭，由请求管道按环境挂载"""
    app = FastAPI(
        title=settings.api.title,
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    services.add_instance(FastAPI, app)
    services.add_instance(HostEnvironment, environment)
    provider: ServiceProvider = services.build()

    app.state.services = provider
    app.state.environment = environment

    app.add_exception_handler(AuthorizationError, authorization_error_handler)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """全局异常处理"""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=APIResponse.fail(
                "INTERNAL_ERROR",
                str(exc) if environment.is_development else "服务器内部错误",
            ).model_dump(mode="json"),
        )

    return app
