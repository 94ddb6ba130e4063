"""Core module"""
from studymate.core.config import AppSettings, load_settings
from studymate.core.configuration import Configuration, HostEnvironment, load_configuration
from studymate.core.errors import (
    ConfigurationError,
    ContainerBuildError,
    StartupError,
    VersionParseError,
)

__all__ = [
    "AppSettings",
    "load_settings",
    "Configuration",
    "HostEnvironment",
    "load_configuration",
    "StartupError",
    "ConfigurationError",
    "VersionParseError",
    "ContainerBuildError",
]
