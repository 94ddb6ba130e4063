"""服务容器：注册阶段可变，build() 之后冻结为只读的 ServiceProvider"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from studymate.core.errors import ContainerBuildError

logger = structlog.get_logger()

Factory = Callable[["ServiceProvider"], Any]

_MISSING = object()


def _describe(key: Hashable) -> str:
    return getattr(key, "__qualname__", None) or repr(key)


@dataclass(frozen=True)
class ServiceDescriptor:
    """单个服务注册"""

    key: Hashable
    factory: Factory | None = None
    instance: Any = _MISSING
    requires: tuple[Hashable, ...] = ()


class ServiceCollection:
    """服务注册表"""

    def __init__(self) -> None:
        self._descriptors: dict[Hashable, ServiceDescriptor] = {}
        self._built = False

    def __contains__(self, key: Hashable) -> bool:
        return key in self._descriptors

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def is_built(self) -> bool:
        return self._built

    def add_instance(self, key: Hashable, instance: Any) -> ServiceCollection:
        """注册已构造的对象"""
        self._add(ServiceDescriptor(key=key, instance=instance))
        return self

    def add_singleton(
        self,
        key: Hashable,
        factory: Factory,
        *,
        requires: tuple[Hashable, ...] = (),
    ) -> ServiceCollection:
        """注册单例工厂，首次 get() 时才调用"""
        self._add(ServiceDescriptor(key=key, factory=factory, requires=tuple(requires)))
        return self

    def _add(self, descriptor: ServiceDescriptor) -> None:
        if self._built:
            raise ContainerBuildError(
                f"Cannot register {_describe(descriptor.key)}: the service container is already built"
            )
        if descriptor.key in self._descriptors:
            raise ContainerBuildError(f"Service {_describe(descriptor.key)} is already registered")
        self._descriptors[descriptor.key] = descriptor

    def build(self) -> ServiceProvider:
        """校验依赖并冻结容器"""
        if self._built:
            raise ContainerBuildError("The service container has already been built")

        missing = [
            f"{_describe(descriptor.key)} -> {_describe(dependency)}"
            for descriptor in self._descriptors.values()
            for dependency in descriptor.requires
            if dependency not in self._descriptors
        ]
        if missing:
            raise ContainerBuildError(f"Unregistered service dependencies: {', '.join(missing)}")

        self._built = True
        logger.debug("Service container built", services=len(self._descriptors))
        return ServiceProvider(self._descriptors)


class ServiceProvider:
    """只读服务解析器，单例按需创建且只创建一次"""

    def __init__(self, descriptors: dict[Hashable, ServiceDescriptor]) -> None:
        self._descriptors = dict(descriptors)
        self._instances: dict[Hashable, Any] = {
            key: descriptor.instance
            for key, descriptor in self._descriptors.items()
            if descriptor.instance is not _MISSING
        }
        self._resolving: set[Hashable] = set()
        self._lock = threading.RLock()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._descriptors

    def get(self, key: Hashable) -> Any:
        if key in self._instances:
            return self._instances[key]

        descriptor = self._descriptors.get(key)
        if descriptor is None:
            raise ContainerBuildError(f"Service {_describe(key)} is not registered")

        with self._lock:
            if key in self._instances:
                return self._instances[key]
            if key in self._resolving:
                raise ContainerBuildError(f"Circular dependency while resolving {_describe(key)}")

            self._resolving.add(key)
            try:
                instance = descriptor.factory(self)
            finally:
                self._resolving.discard(key)
            self._instances[key] = instance
            return instance
