"""数据库服务器版本描述"""
import re
from dataclasses import dataclass
from enum import Enum

from studymate.core.errors import VersionParseError

_VERSION_PATTERN = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?(?:-(.+?))?\s*$")


class ServerType(str, Enum):
    """数据库引擎家族"""

    MYSQL = "mysql"
    MARIADB = "mariadb"

    @property
    def async_driver(self) -> str:
        """SQLAlchemy 异步驱动名"""
        return f"{self.value}+aiomysql"


@dataclass(frozen=True)
class ServerVersion:
    """引擎家族 + 语义化版本，例如 8.0.34-mysql"""

    server_type: ServerType
    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, value: str) -> "ServerVersion":
        """解析版本字符串

        没有后缀时视为 MySQL；后缀必须包含 mysql 或 mariadb。
        """
        if not isinstance(value, str):
            raise VersionParseError(f"Server version must be a string, got {type(value).__name__}")

        match = _VERSION_PATTERN.match(value)
        if match is None:
            raise VersionParseError(f"Unable to parse server version '{value}'")

        major, minor, patch, suffix = match.groups()
        if suffix is None:
            server_type = ServerType.MYSQL
        elif "mariadb" in suffix.lower():
            server_type = ServerType.MARIADB
        elif "mysql" in suffix.lower():
            server_type = ServerType.MYSQL
        else:
            raise VersionParseError(f"Unknown server type '{suffix}' in server version '{value}'")

        return cls(server_type=server_type, major=int(major), minor=int(minor), patch=int(patch or 0))

    @property
    def version(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}-{self.server_type.value}"
