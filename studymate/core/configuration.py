"""
分层配置加载
- JSON 主配置文档（必需）
- 按环境命名的覆盖文档（可选）
- 进程环境变量
- 命令行参数

后加载的来源覆盖先加载的来源，键名不区分大小写，层级以 ":" 分隔。
"""
import json
import os
from collections.abc import Iterable, Iterator, Mapping, Sequence
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable

from studymate.core.errors import ConfigurationError

KEY_DELIMITER = ":"
ENV_DELIMITER = "__"

SETTINGS_DIR = Path("appsettings")
PRIMARY_DOCUMENT = "appsettings.json"

ENVIRONMENT_VARIABLE = "STUDYMATE_ENVIRONMENT"
CONTENT_ROOT_VARIABLE = "STUDYMATE_CONTENTROOT"

# 带前缀的连接字符串环境变量，映射到 ConnectionStrings:<name>
CONNECTION_STRING_PREFIXES = ("MYSQLCONNSTR_", "CUSTOMCONNSTR_")

Entry = tuple[str, str | None]


class HostEnvironment(str, Enum):
    """宿主环境"""

    DEVELOPMENT = "Development"
    STAGING = "Staging"
    PRODUCTION = "Production"

    @classmethod
    def parse(cls, name: str) -> "HostEnvironment":
        for member in cls:
            if member.value.casefold() == name.strip().casefold():
                return member
        allowed = ", ".join(member.value for member in cls)
        raise ConfigurationError(f"Unknown environment '{name}', expected one of: {allowed}")

    @property
    def is_development(self) -> bool:
        return self is HostEnvironment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self is HostEnvironment.PRODUCTION


class Configuration(Mapping[str, str | None]):
    """只读配置视图

    内部以 casefold 后的完整键存储 (原始键, 值)，迭代时返回原始键。
    """

    def __init__(self, entries: Mapping[str, Entry] | None = None, path: str = "") -> None:
        self._entries: Mapping[str, Entry] = MappingProxyType(dict(entries or {}))
        self.path = path

    def __getitem__(self, key: str) -> str | None:
        return self._entries[key.casefold()][1]

    def __iter__(self) -> Iterator[str]:
        for key, _ in self._entries.values():
            yield key

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Configuration(path={self.path!r}, keys={len(self)})"

    def get(self, key: str, default: Any = None) -> Any:
        """读取值；null 与缺失同样返回 default"""
        entry = self._entries.get(key.casefold())
        if entry is None or entry[1] is None:
            return default
        return entry[1]

    def get_section(self, key: str) -> "Configuration":
        """返回以 key 为前缀的子视图，键中去掉该前缀"""
        depth = len(key.split(KEY_DELIMITER))
        prefix = key.casefold() + KEY_DELIMITER
        entries = {}
        for folded, (original, value) in self._entries.items():
            if folded.startswith(prefix):
                rest = KEY_DELIMITER.join(original.split(KEY_DELIMITER)[depth:])
                entries[rest.casefold()] = (rest, value)
        path = f"{self.path}{KEY_DELIMITER}{key}" if self.path else key
        return Configuration(entries, path=path)

    def get_connection_string(self, name: str) -> str | None:
        return self.get_section("ConnectionStrings").get(name)


def _flatten(node: Any, prefix: str = "") -> Iterator[Entry]:
    """把 JSON 文档展开为扁平键"""
    if isinstance(node, dict):
        for key, value in node.items():
            yield from _flatten(value, f"{prefix}{KEY_DELIMITER}{key}" if prefix else str(key))
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from _flatten(value, f"{prefix}{KEY_DELIMITER}{index}")
    elif node is None:
        yield prefix, None
    elif isinstance(node, bool):
        yield prefix, "true" if node else "false"
    else:
        yield prefix, str(node)


def _normalize_env_key(name: str) -> str:
    for env_prefix in CONNECTION_STRING_PREFIXES:
        if name.upper().startswith(env_prefix):
            return f"ConnectionStrings{KEY_DELIMITER}{name[len(env_prefix):]}"
    return name.replace(ENV_DELIMITER, KEY_DELIMITER)


def parse_command_line(args: Sequence[str]) -> list[Entry]:
    """解析 --Key=Value、--Key Value、/Key=Value 与 Key=Value"""
    entries: list[Entry] = []
    iterator = iter(args)
    for arg in iterator:
        if arg.startswith("--"):
            body = arg[2:]
        elif arg.startswith("/"):
            body = arg[1:]
        elif "=" in arg:
            body = arg
        else:
            raise ConfigurationError(f"Unrecognized command-line argument '{arg}'")

        if "=" in body:
            key, value = body.split("=", 1)
        else:
            key = body
            value = next(iterator, None)
            if value is None:
                raise ConfigurationError(f"Command-line argument '{arg}' is missing a value")

        if not key:
            raise ConfigurationError(f"Command-line argument '{arg}' has an empty key")
        entries.append((key.replace(ENV_DELIMITER, KEY_DELIMITER), value))
    return entries


class ConfigurationLoader:
    """按添加顺序合并配置来源，来源在 build() 时才读取"""

    def __init__(self, base_path: str | Path) -> None:
        self.base_path = Path(base_path)
        self._sources: list[Callable[[], Iterable[Entry]]] = []

    def add_json_file(self, path: str | Path, *, optional: bool = False) -> "ConfigurationLoader":
        full_path = self.base_path / path
        self._sources.append(lambda: self._read_json(full_path, optional))
        return self

    def add_environment_variables(self, environ: Mapping[str, str] | None = None) -> "ConfigurationLoader":
        def read() -> Iterator[Entry]:
            source = os.environ if environ is None else environ
            for name, value in source.items():
                yield _normalize_env_key(name), value

        self._sources.append(read)
        return self

    def add_command_line(self, args: Sequence[str]) -> "ConfigurationLoader":
        self._sources.append(lambda: parse_command_line(args))
        return self

    def build(self) -> Configuration:
        entries: dict[str, Entry] = {}
        for read in self._sources:
            for key, value in read():
                entries[key.casefold()] = (key, value)
        return Configuration(entries)

    @staticmethod
    def _read_json(path: Path, optional: bool) -> Iterator[Entry]:
        if not path.is_file():
            if optional:
                return iter(())
            raise ConfigurationError(f"Required configuration file not found: {path}")

        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Malformed JSON in configuration file {path}: {exc}") from exc

        if not isinstance(document, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
        return _flatten(document)


def resolve_environment(
    environ: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
) -> HostEnvironment:
    """命令行 --environment 优先，其次 STUDYMATE_ENVIRONMENT，默认 Production"""
    environ = os.environ if environ is None else environ
    overrides = {key.casefold(): value for key, value in parse_command_line(args)}
    name = overrides.get("environment") or environ.get(ENVIRONMENT_VARIABLE)
    if not name:
        return HostEnvironment.PRODUCTION
    return HostEnvironment.parse(name)


def resolve_content_root(
    environ: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
) -> Path:
    environ = os.environ if environ is None else environ
    overrides = {key.casefold(): value for key, value in parse_command_line(args)}
    root = overrides.get("contentroot") or environ.get(CONTENT_ROOT_VARIABLE)
    return Path(root) if root else Path.cwd()


def load_configuration(
    content_root: str | Path,
    environment: HostEnvironment,
    *,
    environ: Mapping[str, str] | None = None,
    args: Sequence[str] = (),
) -> Configuration:
    """加载配置

    优先级从低到高：主文档、环境覆盖文档、环境变量、命令行参数。
    """
    loader = (
        ConfigurationLoader(content_root)
        .add_json_file(SETTINGS_DIR / PRIMARY_DOCUMENT)
        .add_json_file(SETTINGS_DIR / f"appsettings.{environment.value}.json", optional=True)
        .add_environment_variables(environ)
    )
    if args:
        loader.add_command_line(args)

    return loader.build()
