"""
Swiftly: Router
================

What:  Maps (method, URL path) to a registered route and its parameters.
How:   Exact "METHOD:/path" keys are looked up first. On a miss the
       parametric routes are scanned in registration order; the first
       candidate that matches wins.
Who:   Populated by `Swiftly.route()` / `Swiftly.mount()`; queried by the
       dispatcher once per request.

Pattern Syntax:
    /users/list          literal segments
    /users/:id           named parameter, binds params["id"]
    /files/*             trailing wildcard, binds params["*"] to the rest

Method "*" registers a route for every method.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import unquote

from swiftly.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ANY_METHOD = "*"
WILDCARD = "*"


@dataclass(frozen=True)
class RouteEntry:
    method: str
    pattern: str
    handler: Callable[..., Any]
    schema: Any = None
    auth: bool = False
    name: str = ""
    segments: tuple = field(default=(), repr=False, compare=False)

    @property
    def key(self) -> str:
        return f"{self.method}:{self.pattern}"

    @property
    def is_parametric(self) -> bool:
        return any(s.startswith(":") or s == WILDCARD for s in self.segments)

    def describe(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "path": self.pattern,
            "name": self.name,
            "auth": self.auth,
            "validated": self.schema is not None,
        }


@dataclass
class RouteMatch:
    route: RouteEntry
    params: Dict[str, str]


def _split(path: str) -> List[str]:
    return path.strip("/").split("/") if path.strip("/") else []


class Router:
    """
    Registration-ordered route table.

    Invariants:
        - first registered route wins among candidates
        - re-registering an identical (method, pattern) replaces it in place
        - a literal mismatch aborts a candidate immediately
    """

    def __init__(self) -> None:
        self._entries: List[RouteEntry] = []
        self._exact: Dict[str, RouteEntry] = {}

    def register(
        self,
        method: str,
        pattern: str,
        handler: Callable[..., Any],
        *,
        schema: Any = None,
        auth: bool = False,
        name: Optional[str] = None,
    ) -> RouteEntry:
        if not callable(handler):
            raise ConfigurationError(f"Route {method} {pattern} has no callable handler")
        if not isinstance(pattern, str) or not pattern.startswith("/"):
            raise ConfigurationError(f"Route pattern must start with '/', got {pattern!r}")
        method = (method or "").upper()
        if not method:
            raise ConfigurationError(f"Route {pattern} has no method")

        segments = tuple(_split(pattern))
        for index, segment in enumerate(segments):
            if segment == WILDCARD and index != len(segments) - 1:
                raise ConfigurationError(f"Wildcard must be the last segment in {pattern}")
            if segment == ":":
                raise ConfigurationError(f"Unnamed parameter in {pattern}")

        entry = RouteEntry(
            method=method,
            pattern=pattern,
            handler=handler,
            schema=schema,
            auth=auth,
            name=name or getattr(handler, "__name__", pattern),
            segments=segments,
        )

        for index, existing in enumerate(self._entries):
            if existing.key == entry.key:
                logger.warning("Route %s %s registered twice; replacing the earlier handler", method, pattern)
                self._entries[index] = entry
                break
        else:
            self._entries.append(entry)

        if not entry.is_parametric:
            self._exact[entry.key] = entry
        logger.debug("Registered route %s %s", method, pattern)
        return entry

    @property
    def routes(self) -> List[RouteEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    # ── Matching ──────────────────────────────────────────────────────────

    def match(self, method: str, url: str) -> Optional[RouteMatch]:
        method = method.upper()
        path = url.split("?", 1)[0] or "/"
        lookup = unquote(path)

        for key in (f"{method}:{lookup}", f"{ANY_METHOD}:{lookup}"):
            entry = self._exact.get(key)
            if entry is not None:
                return RouteMatch(entry, {})

        parts = _split(path)
        for entry in self._entries:
            if entry.method not in (method, ANY_METHOD) or not entry.is_parametric:
                continue
            params = self._bind(entry.segments, parts)
            if params is not None:
                return RouteMatch(entry, params)
        return None

    def allowed_methods(self, url: str) -> Set[str]:
        """Methods for which some route matches `url`; empty when none does."""
        path = url.split("?", 1)[0] or "/"
        lookup = unquote(path)
        parts = _split(path)
        allowed: Set[str] = set()
        for entry in self._entries:
            # Same rules as match(): literals only by exact path
            if entry.is_parametric:
                matched = self._bind(entry.segments, parts) is not None
            else:
                matched = entry.pattern == lookup
            if matched:
                allowed.add(entry.method)
        return allowed

    @staticmethod
    def _bind(segments: tuple, parts: List[str]) -> Optional[Dict[str, str]]:
        has_tail = bool(segments) and segments[-1] == WILDCARD
        fixed = segments[:-1] if has_tail else segments
        if has_tail:
            if len(parts) < len(fixed):
                return None
        elif len(parts) != len(fixed):
            return None

        params: Dict[str, str] = {}
        for expected, actual in zip(fixed, parts):
            if expected.startswith(":"):
                if actual:
                    params[expected[1:]] = unquote(actual)
            elif unquote(actual) != expected:
                return None
        if has_tail:
            params[WILDCARD] = unquote("/".join(parts[len(fixed):]))
        return params
