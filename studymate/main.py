"""
StudyMate API 入口

加载配置 -> 注册服务 -> 构建应用 -> 装配请求管道 -> 开始服务
"""
import asyncio
import os
import sys
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

import structlog
import uvicorn
from fastapi import APIRouter, FastAPI

from studymate.bootstrap import assemble_pipeline, build_application, compose_services
from studymate.core.config import AppSettings, load_settings
from studymate.core.configuration import load_configuration, resolve_content_root, resolve_environment
from studymate.core.errors import StartupError
from studymate.core.logging import configure_logging
from studymate.middleware.authorization import Policy

logger = structlog.get_logger()


def create_app(
    content_root: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
    controllers: Iterable[APIRouter] | None = None,
    policies: Mapping[str, Policy] | None = None,
) -> FastAPI:
    """按顺序完成启动的各个阶段，任一阶段失败都抛出 StartupError"""
    environ = os.environ if environ is None else environ
    environment = resolve_environment(environ, args)
    if content_root is None:
        content_root = resolve_content_root(environ, args)

    configuration = load_configuration(content_root, environment, environ=environ, args=args)
    settings = load_settings(configuration)
    configure_logging(settings.logging)
    logger.info(
        "Configuration loaded",
        content_root=str(content_root),
        environment=environment.value,
        keys=len(configuration),
    )

    services = compose_services(configuration, settings, controllers=controllers, policies=policies)
    app = build_application(services, settings, environment)
    return assemble_pipeline(app, environment)


def build_servers(app: FastAPI, settings: AppSettings) -> list[uvicorn.Server]:
    """明文监听 Server:Port；配置证书时另在 Server:HttpsPort 上监听 TLS"""
    server = settings.server
    log_level = settings.logging.level.lower()

    configs = [uvicorn.Config(app, host=server.host, port=server.port, log_level=log_level)]
    if server.ssl_certfile:
        configs.append(
            uvicorn.Config(
                app,
                host=server.host,
                port=server.https_port,
                ssl_keyfile=server.ssl_keyfile,
                ssl_certfile=server.ssl_certfile,
                log_level=log_level,
                # 生命周期只由明文监听执行一次
                lifespan="off",
            )
        )
    else:
        logger.warning(
            "No TLS certificate configured; HTTPS must be terminated in front of the service",
            https_port=server.https_port,
        )
    return [uvicorn.Server(config) for config in configs]


async def serve(servers: Sequence[uvicorn.Server]) -> None:
    """同时运行所有监听，任一退出时全部退出"""
    tasks = [asyncio.create_task(server.serve()) for server in servers]
    await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for server in servers:
        server.should_exit = True
    await asyncio.gather(*tasks)


def run(argv: Sequence[str] | None = None) -> int:
    """运行服务器，返回进程退出码"""
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        app = create_app(args=args)
    except StartupError as exc:
        configure_logging()
        logger.error("Startup failed", error=str(exc), error_type=type(exc).__name__)
        return exc.exit_code

    settings: AppSettings = app.state.services.get(AppSettings)
    asyncio.run(serve(build_servers(app, settings)))
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
