"""统一响应模型"""
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorDetail(BaseModel):
    code: str = Field(..., description="错误码，例如 UNAUTHORIZED")
    message: str = Field(..., description="面向调用方的错误信息")


class APIResponse(BaseModel, Generic[T]):
    """响应信封：成功时携带 data，失败时携带 error"""

    success: bool
    data: T | None = None
    error: ErrorDetail | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> "APIResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str) -> "APIResponse[None]":
        return cls(success=False, error=ErrorDetail(code=code, message=message))


class HealthStatus(BaseModel):
    """健康检查结果"""

    status: str = Field(..., description="服务状态")
    environment: str = Field(..., description="宿主环境")
    version: str = Field(..., description="服务版本")
    database: str | None = Field(default=None, description="数据库状态")
