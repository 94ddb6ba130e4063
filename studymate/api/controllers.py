"""控制器注册表"""
from collections.abc import Iterable, Iterator, Sequence

from fastapi import APIRouter, FastAPI
from fastapi.params import Depends
from fastapi.routing import APIRoute

from studymate.core.errors import ContainerBuildError


class ControllerRegistry:
    """已注册的控制器路由

    每个控制器是一个只包含端点的 APIRouter；嵌套路由需要单独注册。
    """

    def __init__(self, routers: Iterable[APIRouter] = ()) -> None:
        self._routers = tuple(routers)
        for router in self._routers:
            for route in router.routes:
                if not isinstance(route, APIRoute):
                    raise ContainerBuildError(
                        f"Controller router with prefix '{router.prefix}' contains an unsupported route "
                        f"{type(route).__name__}; register nested routers as separate controllers"
                    )

    def __iter__(self) -> Iterator[APIRouter]:
        return iter(self._routers)

    def __len__(self) -> int:
        return len(self._routers)

    def endpoints(self, prefix: str = "") -> Iterator[tuple[str, APIRoute]]:
        """列出 (完整路径, 路由)，路径包含分发前缀"""
        for router in self._routers:
            for route in router.routes:
                yield prefix + route.path_format, route

    def map_to(self, app: FastAPI, prefix: str = "", dependencies: Sequence[Depends] = ()) -> None:
        """把所有控制器挂载到应用的分发前缀下"""
        for router in self._routers:
            app.include_router(router, prefix=prefix, dependencies=list(dependencies))
