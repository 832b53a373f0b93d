from typing import Any, Callable, ClassVar, TypeVar, cast

T = TypeVar("T")

# The method name that registers a handler for all HTTP methods
ANY: str = "ANY"


class Meta:
    """Defines the attributes used by decorators"""

    ON: ClassVar[str] = "_servedir_on"
    ON_PRIORITY: ClassVar[str] = "_servedir_on_priority"
    # Some values (like bound builtins) can't have attributes, so instead
    # we're collecting annotations by object id.
    Annotations: ClassVar[dict[int, dict[str, Any]]] = {}

    @staticmethod
    def Get(scope: Any, *, strict: bool = False) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value."""
        if hasattr(scope, "__dict__"):
            return cast(dict[str, Any], scope.__dict__)
        elif strict:
            raise RuntimeError(f"Metadata cannot be attached to object: {scope}")
        else:
            return Meta.Annotations.setdefault(id(scope), {})


def on(
    priority: int = 0, **methods: str | list[str] | tuple[str, ...]
) -> Callable[[T], T]:
    """The @on decorator wraps an existing method and indicates that it
    will be used to process an HTTP request.

    The @on decorator takes HTTP methods as keyword arguments (`GET`,
    `POST`, …), each given either a string or a list of strings describing
    an URI pattern (see `Route`). Methods can be combined with an
    underscore, as in `GET_HEAD`, and `ANY` matches all methods.

    For instance:

    >    @on(GET_HEAD="/{path:any}")

    implies that the wrapped method is like

    >    def serve(self, request, path):
    >        ....

    and it must return a response, typically created from the request:

    >        return request.respond(...)
    """

    def decorator(function: T) -> T:
        meta = Meta.Get(function)
        v = meta.setdefault(Meta.ON, [])
        meta.setdefault(Meta.ON_PRIORITY, priority)
        for http_methods, url in list(methods.items()):
            urls = (url,) if isinstance(url, str) else url
            for http_method in http_methods.upper().split("_"):
                for _ in urls:
                    v.append((http_method, _))
        return function

    return decorator


# EOF
