"""
应用配置管理
使用 Pydantic Settings 把分层配置映射为类型化、只读的设置对象
"""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_pascal
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from studymate.core.configuration import Configuration
from studymate.core.errors import ConfigurationError

# .NET 风格日志级别名称
_LEVEL_ALIASES = {
    "TRACE": "DEBUG",
    "INFORMATION": "INFO",
    "NONE": "CRITICAL",
}
_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class _Section(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, frozen=True)


class ServerSettings(_Section):
    """服务器配置"""

    host: str = "0.0.0.0"
    port: int = 5000
    # 明文请求重定向到的端口；配置证书时 TLS 监听也使用该端口
    https_port: int = 5001
    ssl_keyfile: str | None = None
    ssl_certfile: str | None = None


class LoggingSettings(_Section):
    """日志配置"""

    level: str = "INFO"
    format: Literal["json", "console"] = "console"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.strip().upper()
        level = _LEVEL_ALIASES.get(level, level)
        if level not in _LEVELS:
            raise ValueError(f"Unknown log level '{v}'")
        return level


class DatabaseSettings(_Section):
    """数据库配置"""

    connection_name: str = "DefaultConnection"
    echo: bool = False
    pool_size: int = Field(default=10, ge=1)
    max_overflow: int = Field(default=20, ge=0)
    pool_pre_ping: bool = True


class ApiSettings(_Section):
    """API 与文档配置"""

    title: str = "StudyMate API"
    version: str = "v1"
    route_prefix: str = "/api"
    docs_route_prefix: str = "swagger"

    @field_validator("route_prefix")
    @classmethod
    def validate_route_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("docs_route_prefix")
    @classmethod
    def validate_docs_route_prefix(cls, v: str) -> str:
        v = v.strip().strip("/")
        if not v:
            raise ValueError("DocsRoutePrefix must not be empty")
        return v


def _read_field(annotation: Any, key: str, configuration: Configuration) -> Any:
    """按字段类型从配置中读取：模型字段递归读取对应的节"""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        section = configuration.get_section(key)
        if not section:
            return None
        data = {}
        for name, field in annotation.model_fields.items():
            alias = field.alias or name
            value = _read_field(field.annotation, alias, section)
            if value is not None:
                data[alias] = value
        return data
    return configuration.get(key)


class ConfigurationSettingsSource(PydanticBaseSettingsSource):
    """以合并后的 Configuration 作为唯一来源"""

    def __init__(self, settings_cls: type[BaseSettings], configuration: Configuration) -> None:
        super().__init__(settings_cls)
        self.configuration = configuration

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        alias = field.alias or field_name
        return _read_field(field.annotation, alias, self.configuration), alias, False

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for field_name, field in self.settings_cls.model_fields.items():
            value, key, _ = self.get_field_value(field, field_name)
            if value is not None:
                data[key] = value
        return data


class AppSettings(BaseSettings):
    """应用配置"""

    model_config = SettingsConfigDict(
        alias_generator=to_pascal,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # 环境变量已经合并进 Configuration，这里只接受显式传入的值
        return (init_settings,)


def load_settings(configuration: Configuration) -> AppSettings:
    """从配置视图构建设置对象"""
    values = ConfigurationSettingsSource(AppSettings, configuration)()
    try:
        return AppSettings(**values)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid application settings: {exc}") from exc
