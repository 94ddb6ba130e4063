"""
服务注册
- 控制器与授权
- 端点元数据与 OpenAPI 文档生成
- 数据库上下文工厂

每个容器只调用一次；重复调用会因重复注册而抛出 ContainerBuildError。
"""
from collections.abc import Iterable, Mapping

import structlog
from fastapi import APIRouter, FastAPI

from studymate.api.controllers import ControllerRegistry
from studymate.api.docs import EndpointMetadataProvider, SchemaGenerator
from studymate.core.config import ApiSettings, AppSettings, DatabaseSettings
from studymate.core.configuration import Configuration
from studymate.core.container import ServiceCollection
from studymate.core.errors import ConfigurationError
from studymate.db import ConnectionString, DatabaseContextFactory, ServerVersion
from studymate.middleware.authorization import AuthorizationOptions, Policy

logger = structlog.get_logger()

# 目标数据库引擎版本
DEFAULT_SERVER_VERSION = "8.0.34-mysql"


def add_controllers(
    services: ServiceCollection,
    controllers: Iterable[APIRouter] | None = None,
    policies: Mapping[str, Policy] | None = None,
) -> ServiceCollection:
    """注册控制器路由与授权策略"""
    if controllers is None:
        from studymate.api.v1 import controllers as default_controllers

        controllers = default_controllers

    options = AuthorizationOptions()
    for name, policy in (policies or {}).items():
        options.add_policy(name, policy)

    services.add_instance(ControllerRegistry, ControllerRegistry(controllers))
    services.add_instance(AuthorizationOptions, options)
    return services


def add_endpoints_api_explorer(services: ServiceCollection, settings: ApiSettings) -> ServiceCollection:
    services.add_singleton(
        EndpointMetadataProvider,
        lambda provider: EndpointMetadataProvider(
            provider.get(FastAPI),
            provider.get(ControllerRegistry),
            route_prefix=settings.route_prefix,
        ),
        requires=(FastAPI, ControllerRegistry),
    )
    return services


def add_schema_generator(services: ServiceCollection, settings: ApiSettings) -> ServiceCollection:
    services.add_singleton(
        SchemaGenerator,
        lambda provider: SchemaGenerator(
            provider.get(EndpointMetadataProvider),
            title=settings.title,
            version=settings.version,
        ),
        requires=(EndpointMetadataProvider,),
    )
    return services


def add_db_context(
    services: ServiceCollection,
    configuration: Configuration,
    settings: DatabaseSettings,
    server_version: str,
) -> ServiceCollection:
    """注册数据库上下文工厂

    连接字符串与版本在这里校验，引擎在第一次使用时才创建。
    """
    raw = configuration.get_connection_string(settings.connection_name)
    if raw is None or not raw.strip():
        raise ConfigurationError(
            f"Connection string '{settings.connection_name}' is missing or empty"
        )

    connection = ConnectionString.parse(raw)
    version = ServerVersion.parse(server_version)
    url = connection.to_url(version)

    services.add_singleton(
        DatabaseContextFactory,
        lambda provider: DatabaseContextFactory(url, version, settings),
    )
    logger.info(
        "Database context registered",
        connection=settings.connection_name,
        backend=url.get_backend_name(),
        server_version=str(version),
    )
    return services


def compose_services(
    configuration: Configuration,
    settings: AppSettings,
    *,
    services: ServiceCollection | None = None,
    controllers: Iterable[APIRouter] | None = None,
    policies: Mapping[str, Policy] | None = None,
    server_version: str = DEFAULT_SERVER_VERSION,
) -> ServiceCollection:
    """组合应用服务，返回尚未构建的服务容器"""
    services = ServiceCollection() if services is None else services

    services.add_instance(Configuration, configuration)
    services.add_instance(AppSettings, settings)
    add_controllers(services, controllers, policies)
    add_endpoints_api_explorer(services, settings.api)
    add_schema_generator(services, settings.api)
    add_db_context(services, configuration, settings.database, server_version)

    logger.info("Services registered", count=len(services))
    return services
