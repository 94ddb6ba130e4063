"""Pydantic 模型"""
from studymate.models.common import APIResponse, ErrorDetail, HealthStatus

__all__ = ["APIResponse", "ErrorDetail", "HealthStatus"]
