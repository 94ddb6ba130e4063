"""日志配置"""
import logging
import sys

import structlog

from studymate.core.config import LoggingSettings


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """配置 structlog 与标准库日志"""
    settings = settings or LoggingSettings()

    logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger().setLevel(settings.level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer() if settings.format == "console" else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # 配置在启动过程中会被重新应用，不缓存已绑定的 logger
        cache_logger_on_first_use=False,
    )
