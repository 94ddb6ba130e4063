"""API 文档中间件：OpenAPI 文档端点与 Swagger UI"""
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from studymate.api.docs import SchemaGenerator


def _is_read(scope: Scope) -> bool:
    return scope["type"] == "http" and scope["method"] in ("GET", "HEAD")


class SwaggerMiddleware:
    """在 /<prefix>/<document>/swagger.json 提供 OpenAPI 文档"""

    def __init__(self, app: ASGIApp, generator: SchemaGenerator, route_prefix: str, document_name: str) -> None:
        self.app = app
        self.generator = generator
        self.path = f"/{route_prefix}/{document_name}/swagger.json"

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if _is_read(scope) and scope["path"] == self.path:
            response = JSONResponse(self.generator.generate())
            await response(scope, receive, send)
            return
        await self.app(scope, receive, send)


class SwaggerUIMiddleware:
    """在 /<prefix>/index.html 提供交互式文档，/<prefix> 重定向到该页面"""

    def __init__(self, app: ASGIApp, route_prefix: str, document_url: str, title: str) -> None:
        self.app = app
        self.index_path = f"/{route_prefix}/index.html"
        self.redirect_paths = {f"/{route_prefix}", f"/{route_prefix}/"}
        self.document_url = document_url
        self.title = title

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if _is_read(scope):
            path = scope["path"]
            if path == self.index_path:
                response = get_swagger_ui_html(openapi_url=self.document_url, title=f"{self.title} - Swagger UI")
                await response(scope, receive, send)
                return
            if path in self.redirect_paths:
                response = RedirectResponse(self.index_path, status_code=301)
                await response(scope, receive, send)
                return
        await self.app(scope, receive, send)
