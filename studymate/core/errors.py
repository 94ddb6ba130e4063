"""启动阶段异常

所有异常都是启动致命的：不重试，不在本地恢复，由入口记录后以非零状态退出。
"""


class StartupError(Exception):
    """启动失败基类"""

    exit_code = 1


class ConfigurationError(StartupError):
    """必需的配置文档缺失，或必需的键缺失/格式错误"""


class VersionParseError(StartupError):
    """数据库引擎版本字符串无法解析"""


class ContainerBuildError(StartupError):
    """服务注册不一致"""
