"""Method + path matcher for the Google API surface.

Routes are declared as ``"METHOD /literal/{param}/{tail...}"`` strings:

* ``{name}`` matches exactly one path segment.
* ``{name...}`` is a greedy tail matching every remaining segment, slashes
  included (used for object names).

Matching runs against the *raw* request path so that an object name
containing ``%2F`` is not confused with a segment separator; every extracted
value is percent-decoded afterwards.

Routes are tried most-specific first (more literal segments, then no greedy
tail, then more segments), independent of registration order. When a path
matches but no route accepts the method the matcher raises
``MethodNotAllowed``; when nothing matches it raises ``RouteNotFound``.
"""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, fields
from urllib.parse import unquote

from fastapi import Request, Response

from gcpmock.errors import MethodNotAllowed, RouteNotFound

STORAGE = "storage"
SQL = "sql"

_PARAM_RE = re.compile(r"\{([a-z_]+)(\.\.\.)?\}")


@dataclass(frozen=True)
class PathParams:
    """Named path segments extracted by the matcher.

    Only the fields named in the matched route are set; the rest stay empty.
    """

    bucket: str = ""
    object: str = ""
    project: str = ""
    instance: str = ""
    database: str = ""
    user: str = ""
    operation: str = ""


_PARAM_NAMES = frozenset(f.name for f in fields(PathParams))

Handler = Callable[[Request, PathParams], Awaitable[Response]]


def flavor_for_path(path: str) -> str:
    """Return the error-envelope flavor for a request path."""
    return SQL if path.startswith("/sql/") else STORAGE


@dataclass
class Route:
    """A compiled route.

    Attributes:
        method: HTTP method, upper case.
        pattern: The path template the route was declared with.
        handler: Coroutine called with ``(request, params)``.
        name: Operation id used for metrics, e.g. ``buckets.insert``.
        flavor: ``storage`` or ``sql``; selects the error envelope.
        fallback: Fallback routes never match paths under a reserved API prefix.
    """

    method: str
    pattern: str
    handler: Handler
    name: str
    flavor: str
    fallback: bool = False
    regex: re.Pattern[str] = field(init=False, repr=False)
    literal_count: int = field(init=False)
    segment_count: int = field(init=False)
    greedy: bool = field(init=False)

    def __post_init__(self) -> None:
        self.regex, self.literal_count, self.segment_count, self.greedy = _compile(
            self.pattern
        )

    @property
    def sort_key(self) -> tuple[int, int, int, int]:
        return (
            int(self.fallback),
            -self.literal_count,
            int(self.greedy),
            -self.segment_count,
        )

    def match(self, raw_path: str) -> PathParams | None:
        m = self.regex.match(raw_path)
        if m is None:
            return None
        return PathParams(**{k: unquote(v) for k, v in m.groupdict().items()})


def _compile(pattern: str) -> tuple[re.Pattern[str], int, int, bool]:
    """Compile a path template into an anchored regex.

    Returns:
        ``(regex, literal_segments, total_segments, has_greedy_tail)``.

    Raises:
        ValueError: On unknown parameter names or a greedy tail that is not last.
    """
    segments = [s for s in pattern.strip("/").split("/") if s]
    parts: list[str] = []
    literals = 0
    greedy = False
    for i, seg in enumerate(segments):
        m = _PARAM_RE.fullmatch(seg)
        if m is None:
            parts.append(re.escape(seg))
            literals += 1
            continue
        name, tail = m.group(1), m.group(2)
        if name not in _PARAM_NAMES:
            raise ValueError(f"Unknown path parameter {name!r} in {pattern!r}")
        if tail:
            if i != len(segments) - 1:
                raise ValueError(f"Greedy parameter must be last in {pattern!r}")
            greedy = True
            parts.append(f"(?P<{name}>.+)")
        else:
            parts.append(f"(?P<{name}>[^/]+)")
    regex = re.compile("^/" + "/".join(parts) + "/?$")
    return regex, literals, len(segments), greedy


class Router:
    """Ordered collection of routes with 404/405 detection.

    Attributes:
        reserved_prefixes: Path prefixes owned by the API families. Fallback
            routes never match inside them.
    """

    def __init__(self, reserved_prefixes: tuple[str, ...] = ()) -> None:
        self.reserved_prefixes = reserved_prefixes
        self._routes: list[Route] = []

    @property
    def routes(self) -> list[Route]:
        return list(self._routes)

    def add(self, rule: str, handler: Handler, name: str, fallback: bool = False) -> Route:
        """Register a route from a ``"METHOD /path"`` rule.

        Args:
            rule: Method and path template separated by whitespace.
            handler: Coroutine called as ``handler(request, params)``.
            name: Operation id for metrics and logs.
            fallback: Only consider this route outside the reserved prefixes.

        Returns:
            The compiled route.
        """
        method, _, pattern = rule.strip().partition(" ")
        pattern = pattern.strip()
        route = Route(
            method=method.upper(),
            pattern=pattern,
            handler=handler,
            name=name,
            flavor=flavor_for_path(pattern),
            fallback=fallback,
        )
        self._routes.append(route)
        self._routes.sort(key=lambda r: r.sort_key)
        return route

    def resolve(self, method: str, raw_path: str) -> tuple[Route, PathParams]:
        """Find the route for *method* and *raw_path*.

        Args:
            method: HTTP method.
            raw_path: The undecoded request path.

        Returns:
            The matched route and its extracted parameters.

        Raises:
            MethodNotAllowed: If the path matches only routes for other methods.
            RouteNotFound: If no route matches the path.
        """
        method = method.upper()
        reserved = raw_path.startswith(self.reserved_prefixes) if self.reserved_prefixes else False
        allowed: list[str] = []
        for route in self._routes:
            if route.fallback and reserved:
                continue
            params = route.match(raw_path)
            if params is None:
                continue
            if route.method == method:
                return route, params
            allowed.append(route.method)
        if allowed:
            raise MethodNotAllowed(method, unquote(raw_path))
        raise RouteNotFound(unquote(raw_path))

    async def dispatch(self, request: Request) -> Response:
        """Resolve the request and await its handler.

        The matched route's flavor and name are stored on ``request.state``
        so exception handlers and the access log can use them.
        """
        raw_path = _raw_path(request)
        request.state.api_flavor = flavor_for_path(raw_path)
        route, params = self.resolve(request.method, raw_path)
        request.state.api_flavor = route.flavor
        request.state.route_name = route.name
        return await route.handler(request, params)


def _raw_path(request: Request) -> str:
    raw = request.scope.get("raw_path")
    if raw:
        return raw.decode("latin-1").split("?", 1)[0]
    return request.url.path
