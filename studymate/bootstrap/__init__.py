"""启动：服务注册、应用构建、请求管道装配"""
from studymate.bootstrap.application import build_application
from studymate.bootstrap.pipeline import assemble_pipeline
from studymate.bootstrap.services import DEFAULT_SERVER_VERSION, compose_services

__all__ = ["DEFAULT_SERVER_VERSION", "assemble_pipeline", "build_application", "compose_services"]
