from __future__ import annotations

import dataclasses
import errno
import json
import re
from pathlib import Path
from typing import Any
from typing import Callable
from typing import Literal
from typing import Optional
from typing import Sequence
from typing import TYPE_CHECKING
from typing import TypedDict

import marshmallow
from marshmallow_dataclass import class_schema

from siteship.exception import ConfigurationError
from siteship.reporter import reporter

if TYPE_CHECKING:
    from _typeshed import StrPath

RuleKind = Literal["rewrite", "redirect"]

# Page-data requests for dynamic pages are answered by the reserved
# page-data function.  This rule is always the first route.
PAGE_DATA_REWRITE = {
    "source": r"^/page-data(?:/(.*))/page-data\.json$",
    "destination": "/_page-data",
}


class RouteConfig(TypedDict, total=False):
    rewrites: Any
    redirects: Any


def load_route_config(filename: StrPath) -> RouteConfig:
    """Load the user's JSON route configuration.

    A missing file is an empty configuration.
    """
    path = Path(filename)
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        if e.errno != errno.ENOENT:
            raise
        return {}
    except ValueError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return {
        key: data[key]  # type: ignore[misc]
        for key in ("rewrites", "redirects")
        if data.get(key) is not None
    }


@dataclasses.dataclass
class RewriteInput:
    source: str
    destination: str


@dataclasses.dataclass
class RedirectInput:
    source: str
    destination: str
    permanent: Optional[bool] = None
    status_code: Optional[int] = dataclasses.field(
        default=None, metadata={"data_key": "statusCode"}
    )

    @property
    def status(self) -> int:
        if self.status_code is not None:
            return self.status_code
        return 307 if self.permanent is False else 308


RewriteInputSchema = class_schema(RewriteInput)
RedirectInputSchema = class_schema(RedirectInput)


@dataclasses.dataclass(frozen=True)
class RouteRule:
    kind: RuleKind
    source: str
    destination: str
    src: str
    status: int | None = None

    def to_json(self) -> dict[str, Any]:
        if self.kind == "redirect":
            return {
                "src": self.src,
                "headers": {"Location": self.destination},
                "status": self.status,
            }
        return {"src": self.src, "dest": self.destination, "check": True}

    def __str__(self) -> str:
        return f"{self.kind} {self.source} -> {self.destination}"


_PARAM_RE = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)(\*)?")


def compile_source(source: str, trailing_slash: bool = False) -> str:
    """Compile a path pattern into a route regex.

    Sources starting with ``^`` are already regular expressions and are
    returned unchanged.  In path patterns ``:name`` matches one segment
    and ``:name*`` matches the remainder of the path.
    """
    if source.startswith("^"):
        return source

    path = source
    if trailing_slash:
        if not path.endswith("/"):
            path += "/"
    elif len(path) > 1:
        path = path.rstrip("/") or "/"

    parts = []
    pos = 0
    for m in _PARAM_RE.finditer(path):
        parts.append(re.escape(path[pos : m.start()]))
        name, star = m.groups()
        parts.append(f"(?<{name}>.*)" if star else f"(?<{name}>[^/]+?)")
        pos = m.end()
    parts.append(re.escape(path[pos:]))
    return "^" + "".join(parts) + "$"


def compile_destination(destination: str) -> str:
    return _PARAM_RE.sub(lambda m: f"${m.group(1)}", destination)


def compile_rules(
    kind: RuleKind, rules: Any, trailing_slash: bool = False
) -> list[RouteRule]:
    """Validate raw rule objects and compile them, preserving order.

    Keys other than the rule fields (``has``, ``missing``, ``locale``) are
    ignored.
    """
    schema = RewriteInputSchema() if kind == "rewrite" else RedirectInputSchema()
    try:
        inputs = schema.load(rules, many=True, unknown=marshmallow.EXCLUDE)
    except marshmallow.ValidationError as e:
        raise ConfigurationError(f"invalid {kind} rules: {e.messages}") from e

    return [
        RouteRule(
            kind=kind,
            source=rule.source,
            destination=compile_destination(rule.destination),
            src=compile_source(rule.source, trailing_slash),
            status=rule.status if kind == "redirect" else None,
        )
        for rule in inputs
    ]


RouteTransform = Callable[[RuleKind, Any, bool], Sequence[RouteRule]]


def build_routes(
    route_config: RouteConfig | None = None,
    trailing_slash: bool = False,
    transform: RouteTransform = compile_rules,
) -> list[RouteRule]:
    """Build the ordered route table.

    The page-data rewrite comes first, then the user's rewrites, then
    the user's redirects.
    """
    route_config = route_config or {}
    rewrites = route_config.get("rewrites")
    redirects = route_config.get("redirects")

    routes = [
        *transform("rewrite", [PAGE_DATA_REWRITE], trailing_slash),
        *transform("rewrite", rewrites if rewrites is not None else [], trailing_slash),
        *transform(
            "redirect", redirects if redirects is not None else [], trailing_slash
        ),
    ]
    for rule in routes:
        reporter.report_route(rule)
    return routes
