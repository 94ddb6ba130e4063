"""数据库模块"""
from studymate.db.connection import ConnectionString
from studymate.db.server_version import ServerType, ServerVersion
from studymate.db.session import DatabaseContextFactory, get_db

__all__ = ["ConnectionString", "ServerType", "ServerVersion", "DatabaseContextFactory", "get_db"]
