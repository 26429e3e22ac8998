"""Path-to-view routing with a navigation history."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

PORTFOLIO_PREFIX = "/portfolio/"


@dataclass(frozen=True)
class Route:
    view: str
    protected: bool = False
    require_role: Optional[str] = None


@dataclass(frozen=True)
class Match:
    path: str
    route: Route
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def view(self) -> str:
        return self.route.view


ROUTES: Dict[str, Route] = {
    "/": Route("home"),
    "/login": Route("login"),
    "/register": Route("register"),
    "/dashboard": Route("dashboard", protected=True),
    "/portfolio/create": Route("portfolio_create", protected=True, require_role="student"),
    "/portfolio/edit": Route("portfolio_edit", protected=True, require_role="student"),
    "/gallery": Route("gallery"),
}
PORTFOLIO_VIEW = Route("portfolio_view")
NOT_FOUND = Route("not_found")


def resolve(path: str) -> Match:
    """Exact routes first, then the ``/portfolio/<username>`` prefix."""
    route = ROUTES.get(path)
    if route is not None:
        return Match(path, route)
    if path.startswith(PORTFOLIO_PREFIX):
        username = path.split(PORTFOLIO_PREFIX, 1)[1]
        if username:
            return Match(path, PORTFOLIO_VIEW, {"username": username})
    return Match(path, NOT_FOUND)


def chrome_hidden(path: str) -> bool:
    """Public portfolio pages render without navbar and footer."""
    return path.startswith(PORTFOLIO_PREFIX) and "/create" not in path and "/edit" not in path


Listener = Callable[[Match], None]


class Router:
    """Current path plus back/forward history. Every change re-resolves the
    active match synchronously and notifies listeners."""

    def __init__(self, path: str = "/"):
        self._history: List[str] = [path]
        self._index = 0
        self._listeners: List[Listener] = []
        self._match = resolve(path)

    @property
    def path(self) -> str:
        return self._history[self._index]

    @property
    def match(self) -> Match:
        return self._match

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _activate(self) -> Match:
        self._match = resolve(self.path)
        logger.debug("Route %s -> %s", self.path, self._match.view)
        for listener in list(self._listeners):
            listener(self._match)
        return self._match

    def navigate(self, path: str) -> Match:
        del self._history[self._index + 1:]
        self._history.append(path)
        self._index += 1
        return self._activate()

    def back(self) -> Match:
        if self._index > 0:
            self._index -= 1
        return self._activate()

    def forward(self) -> Match:
        if self._index < len(self._history) - 1:
            self._index += 1
        return self._activate()
