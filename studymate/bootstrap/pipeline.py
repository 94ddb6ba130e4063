"""请求管道装配

挂载顺序（外层在前）：
1. 仅开发环境：OpenAPI 文档端点、Swagger UI
2. HTTP -> HTTPS 重定向
3. 授权（绑定策略；控制器依赖在端点执行前检查）
4. 控制器分发
"""
import structlog
from fastapi import Depends, FastAPI
from starlette.middleware import Middleware

from studymate.api.controllers import ControllerRegistry
from studymate.api.docs import EndpointMetadataProvider, SchemaGenerator
from studymate.core.config import AppSettings
from studymate.core.configuration import HostEnvironment
from studymate.core.errors import ContainerBuildError
from studymate.middleware.authorization import AuthorizationMiddleware, AuthorizationOptions, enforce_authorization
from studymate.middleware.docs import SwaggerMiddleware, SwaggerUIMiddleware
from studymate.middleware.https import HTTPSRedirectionMiddleware

logger = structlog.get_logger()


def assemble_pipeline(app: FastAPI, environment: HostEnvironment) -> FastAPI:
    """按固定顺序挂载中间件并映射控制器"""
    services = getattr(app.state, "services", None)
    if services is None:
        raise ContainerBuildError("Cannot assemble the request pipeline of an application that is not built")
    if getattr(app.state, "pipeline", None) is not None:
        raise ContainerBuildError("The request pipeline has already been assembled")

    settings: AppSettings = services.get(AppSettings)
    api = settings.api

    stages: list[Middleware] = []
    if environment.is_development:
        document_url = f"/{api.docs_route_prefix}/{api.version}/swagger.json"
        stages.append(
            Middleware(
                SwaggerMiddleware,
                generator=services.get(SchemaGenerator),
                route_prefix=api.docs_route_prefix,
                document_name=api.version,
            )
        )
        stages.append(
            Middleware(
                SwaggerUIMiddleware,
                route_prefix=api.docs_route_prefix,
                document_url=document_url,
                title=api.title,
            )
        )
    stages.append(Middleware(HTTPSRedirectionMiddleware, https_port=settings.server.https_port))
    options: AuthorizationOptions = services.get(AuthorizationOptions)
    stages.append(Middleware(AuthorizationMiddleware, options=options))

    # add_middleware 插入到最外层，逆序添加以保持声明顺序
    for stage in reversed(stages):
        app.add_middleware(stage.cls, *stage.args, **stage.kwargs)

    controllers: ControllerRegistry = services.get(ControllerRegistry)
    controllers.map_to(app, prefix=api.route_prefix, dependencies=[Depends(enforce_authorization)])

    unknown = sorted(
        {
            endpoint.policy
            for endpoint in services.get(EndpointMetadataProvider).describe()
            if not options.has_policy(endpoint.policy)
        }
    )
    if unknown:
        raise ContainerBuildError(f"Endpoints reference unregistered authorization policies: {', '.join(unknown)}")

    app.state.pipeline = tuple(stage.cls.__name__ for stage in stages)
    logger.info(
        "Request pipeline assembled",
        environment=environment.value,
        middleware=list(app.state.pipeline),
        controllers=len(controllers),
    )
    return app
