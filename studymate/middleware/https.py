"""HTTP -> HTTPS 重定向，目标端口可配置"""
from starlette.datastructures import URL
from starlette.responses import PlainTextResponse, RedirectResponse
from starlette.types import ASGIApp, Receive, Scope, Send

_SECURE_SCHEMES = {"http": "https", "ws": "wss"}


class HTTPSRedirectionMiddleware:
    """把明文请求重定向到 https://<host>:<https_port>，443 时省略端口"""

    def __init__(self, app: ASGIApp, https_port: int = 443) -> None:
        self.app = app
        self.https_port = https_port

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket") or scope["scheme"] not in _SECURE_SCHEMES:
            await self.app(scope, receive, send)
            return

        url = URL(scope=scope)
        if not url.hostname:
            await PlainTextResponse("Invalid host header", status_code=400)(scope, receive, send)
            return

        host = f"[{url.hostname}]" if ":" in url.hostname else url.hostname
        netloc = host if self.https_port == 443 else f"{host}:{self.https_port}"
        target = url.replace(scheme=_SECURE_SCHEMES[url.scheme], netloc=netloc)
        await RedirectResponse(target, status_code=307)(scope, receive, send)
