import re
from inspect import iscoroutine
from typing import Any, Callable, ClassVar, NamedTuple, Pattern

from .decorators import ANY, Meta
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import LogLevel, debug, logged


async def awaited(value: Any) -> Any:
    return (await value) if iscoroutine(value) else value


# -----------------------------------------------------------------------------
#
# ROUTE
#
# -----------------------------------------------------------------------------
#
# A route is a path template like `/files/{path:any}`, where each
# `{name:type}` placeholder becomes a named group of the route's regular
# expression. A placeholder without a type, like `{name}`, uses its name
# as type.


class Placeholder(NamedTuple):
    """What a placeholder matches, and how the matched text is parsed."""

    expr: str
    parse: Callable[[str], Any] = str


class Route:
    """A path template bound to the handler that answers it."""

    RE_PLACEHOLDER: ClassVar[Pattern[str]] = re.compile(
        r"\{(?P<name>[A-Za-z_]\w*)(:(?P<type>[^}]+))?\}"
    )

    TYPES: ClassVar[dict[str, Placeholder]] = {
        "name": Placeholder(r"\w[\-\w]*"),
        "segment": Placeholder(r"[^/]+"),
        "int": Placeholder(r"\-?\d+", int),
        # Decoded paths may contain any character, newlines included
        "any": Placeholder(r"(?s:.*)"),
        "rest": Placeholder(r"(?s:.+)"),
    }

    @classmethod
    def Compile(cls, template: str) -> tuple[str, dict[str, Placeholder]]:
        """Returns the regular expression for the given template, along
        with its placeholders. Text outside of placeholders is literal."""
        placeholders: dict[str, Placeholder] = {}
        expr: list[str] = []
        offset: int = 0
        for match in cls.RE_PLACEHOLDER.finditer(template):
            name: str = match.group("name")
            kind: str = (match.group("type") or name).lower()
            if kind not in cls.TYPES:
                raise ValueError(
                    f"Route placeholder type '{kind}' is not one of: {', '.join(sorted(cls.TYPES))}"
                )
            placeholders[name] = cls.TYPES[kind]
            expr.append(re.escape(template[offset : match.start()]))
            expr.append(f"(?P<{name}>{cls.TYPES[kind].expr})")
            offset = match.end()
        expr.append(re.escape(template[offset:]))
        return "".join(expr), placeholders

    def __init__(self, template: str, handler: "Handler | None" = None):
        self.template: str = template
        self.pattern, self.placeholders = self.Compile(template)
        self.regexp: Pattern[str] = re.compile(self.pattern)
        self.handler: Handler | None = handler

    @property
    def priority(self) -> int:
        return self.handler.priority if self.handler else 0

    def match(self, path: str) -> dict[str, Any] | None:
        """Returns the parsed placeholders when the whole path matches."""
        matched = self.regexp.fullmatch(path)
        if matched is None:
            return None
        return {k: v.parse(matched.group(k)) for k, v in self.placeholders.items()}

    def __repr__(self) -> str:
        return f"(Route {self.template!r})"


# -----------------------------------------------------------------------------
#
# HANDLER
#
# -----------------------------------------------------------------------------


class Handler:
    """Wraps a function decorated with `@on`, mapping HTTP methods to the
    route templates it answers."""

    @staticmethod
    def Attr(value: Any, key: str) -> Any:
        annotations = Meta.Annotations.get(id(value))
        if annotations and key in annotations:
            return annotations[key]
        return getattr(value, key, None)

    @classmethod
    def Get(cls, value: Any) -> "Handler | None":
        """Returns the handler for the given value, if it was decorated."""
        methods = cls.Attr(value, Meta.ON)
        if not methods:
            return None
        return Handler(value, methods, cls.Attr(value, Meta.ON_PRIORITY) or 0)

    def __init__(
        self,
        functor: Callable[..., Any],
        methods: list[tuple[str, str]],
        priority: int = 0,
    ):
        self.functor = functor
        self.priority: int = priority
        self.methods: dict[str, list[str]] = {}
        for method, template in methods:
            self.methods.setdefault(method, []).append(template)

    async def __call__(
        self, request: HTTPRequest, params: dict[str, Any]
    ) -> HTTPResponse:
        try:
            return await awaited(self.functor(request, **params))
        except HTTPRequestError as e:
            return request.error(e.status or 500, e.message)

    def __repr__(self) -> str:
        return f"(Handler {self.priority} {self.methods} '{self.functor}')"


# -----------------------------------------------------------------------------
#
# DISPATCHER
#
# -----------------------------------------------------------------------------


class Dispatcher:
    """Matches requests to the routes of the registered handlers. Routes
    registered for `ANY` answer every method. The route with the highest
    priority wins, with ties going to method-specific routes."""

    def __init__(self) -> None:
        self.routes: dict[str, list[Route]] = {}

    def register(self, handler: Handler, prefix: str | None = None) -> "Dispatcher":
        for method, templates in handler.methods.items():
            routes = self.routes.setdefault(method, [])
            for template in templates:
                path = f"{prefix or ''}{template}"
                path = path if path.startswith("/") else f"/{path}"
                debug("Registered route", Method=method, Path=path)
                routes.append(Route(path, handler))
            routes.sort(key=lambda _: (-_.priority, _.template))
        return self

    def match(
        self, method: str, path: str
    ) -> tuple[Route | None, dict[str, Any] | None]:
        """Returns the route matching the given `method` and `path`, along
        with its parsed placeholders."""
        candidates = self.routes.get(method, []) + self.routes.get(ANY, [])
        # The sort is stable, method routes stay ahead of `ANY` routes
        for route in sorted(candidates, key=lambda _: -_.priority):
            params = route.match(path)
            if params is not None:
                return route, params
        if logged(LogLevel.Debug):
            debug("No route matched", Method=method, Path=path)
        return None, None


# EOF
