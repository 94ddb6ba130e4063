"""
授权
- @authorize(policy) 标记需要授权的端点
- AuthorizationMiddleware 把授权策略绑定到请求
- enforce_authorization 作为控制器依赖，在路由匹配之后、端点逻辑之前执行授权
"""
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.authentication import BaseUser
from starlette.types import ASGIApp, Receive, Scope, Send

from studymate.models import APIResponse

logger = structlog.get_logger()

AUTHORIZATION_ATTRIBUTE = "__authorization__"
AUTHORIZATION_SCOPE_KEY = "studymate.authorization"

Policy = Callable[[BaseUser], bool]
EndpointT = TypeVar("EndpointT", bound=Callable[..., Any])


def require_authenticated_user(user: BaseUser) -> bool:
    return user.is_authenticated


@dataclass(frozen=True)
class AuthorizationRequirement:
    """端点的授权要求，policy 为 None 时使用默认策略"""

    policy: str | None = None


def authorize(policy: str | None = None) -> Callable[[EndpointT], EndpointT]:
    """标记端点需要授权"""

    def decorator(endpoint: EndpointT) -> EndpointT:
        setattr(endpoint, AUTHORIZATION_ATTRIBUTE, AuthorizationRequirement(policy))
        return endpoint

    return decorator


def get_requirement(endpoint: Any) -> AuthorizationRequirement | None:
    return getattr(endpoint, AUTHORIZATION_ATTRIBUTE, None)


@dataclass
class AuthorizationOptions:
    """授权策略表"""

    policies: dict[str, Policy] = field(default_factory=dict)
    default_policy: Policy = require_authenticated_user

    def add_policy(self, name: str, policy: Policy) -> None:
        self.policies[name] = policy

    def has_policy(self, name: str | None) -> bool:
        return name is None or name in self.policies

    def get_policy(self, name: str | None) -> Policy:
        if name is None:
            return self.default_policy
        return self.policies[name]


class AuthorizationError(Exception):
    """授权失败，以统一响应格式返回"""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse.fail(exc.code, exc.message).model_dump(mode="json"),
    )


class AuthorizationMiddleware:
    """把授权策略放入请求 scope，供路由之后的授权检查使用"""

    def __init__(self, app: ASGIApp, options: AuthorizationOptions) -> None:
        self.app = app
        self.options = options

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            scope[AUTHORIZATION_SCOPE_KEY] = self.options
        await self.app(scope, receive, send)


async def enforce_authorization(request: Request) -> None:
    """执行匹配端点的授权要求

    匿名用户返回 401，已认证但不满足策略返回 403。
    未经过 AuthorizationMiddleware 的请求一律拒绝。
    """
    requirement = get_requirement(request.scope.get("endpoint"))
    if requirement is None:
        return

    path = request.url.path
    options: AuthorizationOptions | None = request.scope.get(AUTHORIZATION_SCOPE_KEY)
    if options is None:
        logger.warning("Authorization failed", path=path, reason="no authorization stage")
        raise AuthorizationError(403, "FORBIDDEN", "没有访问权限")

    user = request.scope.get("user")
    if user is None or not user.is_authenticated:
        logger.info("Authorization failed", path=path, reason="anonymous")
        raise AuthorizationError(401, "UNAUTHORIZED", "需要身份认证")
    if not options.get_policy(requirement.policy)(user):
        logger.info("Authorization failed", path=path, policy=requirement.policy)
        raise AuthorizationError(403, "FORBIDDEN", "没有访问权限")
