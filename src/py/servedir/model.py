from typing import Any, ClassVar, Coroutine, Iterator

from .http.model import HTTPRequest, HTTPResponse
from .routing import Dispatcher, Handler
from .utils.logging import debug

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    """Services group the handlers (methods decorated with `@on`) that
    answer a set of routes, optionally under a prefix."""

    PREFIX: ClassVar[str] = ""

    def __init__(self, *, prefix: str | None = None) -> None:
        self.app: Application | None = None
        self.prefix: str = prefix or self.PREFIX
        self._handlers: list[Handler] | None = None

    async def start(self) -> None:
        """Can be overridden to do asynchronous pre-start work"""

    async def stop(self) -> None:
        """Can be overridden to do asynchronous post-stop work"""

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterator[Handler]:
        """Yields the handlers of the decorated methods, looked up on the
        class so that instance attributes are never evaluated."""
        seen: set[str] = set()
        for cls in type(self).__mro__:
            for name, value in vars(cls).items():
                if name in seen:
                    continue
                seen.add(name)
                if callable(value) and (handler := Handler.Get(getattr(self, name))):
                    yield handler

    def __repr__(self) -> str:
        return f"({self.__class__.__name__}{' :mounted' if self.app else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    """Dispatches requests to the handlers of the mounted services."""

    def __init__(self, services: list[Service] | None = None) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.services: list[Service] = []
        for service in services or ():
            self.mount(service)

    async def start(self) -> "Application":
        for service in self.services:
            await service.start()
        return self

    async def stop(self) -> "Application":
        for service in self.services:
            await service.stop()
        return self

    def process(
        self, request: HTTPRequest
    ) -> HTTPResponse | Coroutine[Any, Any, HTTPResponse]:
        route, params = self.dispatcher.match(request.method, request.path or "/")
        if route is None or route.handler is None:
            return self.onRouteNotFound(request)
        return route.handler(request, params or {})

    def onRouteNotFound(self, request: HTTPRequest) -> HTTPResponse:
        debug("No route found", Method=request.method, Path=request.path)
        return request.notFound()

    def mount(self, service: Service) -> Service:
        if service.app is not None:
            raise RuntimeError(f"Service is already mounted: {service}")
        for handler in service.handlers:
            self.dispatcher.register(handler, service.prefix)
        service.app = self
        self.services.append(service)
        return service

    def unmount(self, service: Service) -> Service:
        if service.app is not self:
            raise RuntimeError(f"Service is not mounted in this application: {service}")
        self.services.remove(service)
        service.app = None
        # Routes can't be unregistered, the dispatcher is rebuilt instead
        self.dispatcher = Dispatcher()
        for srv in self.services:
            for handler in srv.handlers:
                self.dispatcher.register(handler, srv.prefix)
        return service


def mount(*components: Application | Service) -> Application:
    """Mounts the given services on the first given application, or on
    a new one when none is given."""
    apps = [_ for _ in components if isinstance(_, Application)]
    app: Application = apps[0] if apps else Application()
    for component in components:
        if isinstance(component, Service):
            if component.app is not app:
                app.mount(component)
        elif not isinstance(component, Application):
            raise RuntimeError(f"Unsupported component type {type(component)}: {component}")
    return app


# EOF
