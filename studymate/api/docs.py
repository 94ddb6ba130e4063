"""端点元数据与 OpenAPI 文档生成"""
import threading
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from starlette.routing import BaseRoute

from studymate.api.controllers import ControllerRegistry
from studymate.middleware.authorization import get_requirement


@dataclass(frozen=True)
class EndpointDescription:
    """单个端点的元数据"""

    path: str
    methods: tuple[str, ...]
    name: str
    tags: tuple[str, ...]
    requires_authorization: bool
    policy: str | None = None


class EndpointMetadataProvider:
    """从控制器注册表读取端点元数据"""

    def __init__(self, app: FastAPI, controllers: ControllerRegistry, route_prefix: str = "") -> None:
        self.app = app
        self.controllers = controllers
        self.route_prefix = route_prefix

    def routes(self) -> list[BaseRoute]:
        return list(self.app.routes)

    def describe(self) -> list[EndpointDescription]:
        descriptions = []
        for path, route in self.controllers.endpoints(self.route_prefix):
            if not route.include_in_schema:
                continue
            requirement = get_requirement(route.endpoint)
            descriptions.append(
                EndpointDescription(
                    path=path,
                    methods=tuple(sorted(route.methods or ())),
                    name=route.name,
                    tags=tuple(str(tag) for tag in route.tags),
                    requires_authorization=requirement is not None,
                    policy=requirement.policy if requirement else None,
                )
            )
        return descriptions


class SchemaGenerator:
    """根据端点元数据生成 OpenAPI 文档，首次生成后缓存"""

    def __init__(
        self,
        metadata: EndpointMetadataProvider,
        title: str,
        version: str,
        description: str | None = None,
    ) -> None:
        self.metadata = metadata
        self.title = title
        self.version = version
        self.description = description
        self._document: dict[str, Any] | None = None
        self._lock = threading.Lock()

    def generate(self) -> dict[str, Any]:
        with self._lock:
            if self._document is None:
                self._document = self._build()
            return self._document

    def _build(self) -> dict[str, Any]:
        document = get_openapi(
            title=self.title,
            version=self.version,
            description=self.description,
            routes=self.metadata.routes(),
        )

        # 需要授权的操作补充 401 / 403 响应
        paths = document.get("paths", {})
        for endpoint in self.metadata.describe():
            if not endpoint.requires_authorization:
                continue
            for method in endpoint.methods:
                operation = paths.get(endpoint.path, {}).get(method.lower())
                if operation is None:
                    continue
                responses = operation.setdefault("responses", {})
                responses.setdefault("401", {"description": "Unauthorized"})
                if endpoint.policy is not None:
                    responses.setdefault("403", {"description": "Forbidden"})
        return document
