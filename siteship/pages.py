from __future__ import annotations

import enum
import errno
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Iterable
from typing import NamedTuple
from typing import TYPE_CHECKING

from siteship.exception import ConfigurationError

if TYPE_CHECKING:
    from _typeshed import StrPath


class RenderMode(enum.Enum):
    """How a page is rendered.

    The site generator only tags ``SSR`` and ``DSG`` pages; anything else
    is pre-rendered at build time and served from the static output.
    """

    SSR = "SSR"
    DSG = "DSG"
    STATIC = "STATIC"

    @classmethod
    def from_registry(cls, value: object) -> RenderMode:
        if value == "SSR":
            return cls.SSR
        if value == "DSG":
            return cls.DSG
        return cls.STATIC


@dataclass(frozen=True)
class Page:
    path: str
    mode: RenderMode = RenderMode.STATIC

    @classmethod
    def from_json(cls, data: Any) -> Page:
        if not isinstance(data, dict) or not isinstance(data.get("path"), str):
            raise ConfigurationError(f"invalid page record: {data!r}")
        return cls(data["path"], RenderMode.from_registry(data.get("mode")))


class ClassifiedRoutes(NamedTuple):
    ssr_routes: list[str]
    dsg_routes: list[str]


def classify_pages(pages: Iterable[Page]) -> ClassifiedRoutes:
    """Partition pages into SSR and DSG routes.

    Registry order is preserved within each bucket.  Static pages are in
    neither.
    """
    ssr_routes: list[str] = []
    dsg_routes: list[str] = []
    for page in pages:
        if page.mode is RenderMode.SSR:
            ssr_routes.append(page.path)
        elif page.mode is RenderMode.DSG:
            dsg_routes.append(page.path)
    return ClassifiedRoutes(ssr_routes, dsg_routes)


class JsonPageRegistry:
    """A page registry snapshot written to disk after the site build.

    The file holds either a list of ``{"path": ..., "mode": ...}`` records
    or an object with such a list under ``"pages"``.  A missing file is
    an empty registry.  Each path appears once, with its last record.
    """

    def __init__(self, filename: StrPath):
        self.path = Path(filename)

    def get_pages(self) -> list[Page]:
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            if e.errno != errno.ENOENT:
                raise
            return []
        except ValueError as e:
            raise ConfigurationError(
                f"page registry {self.path} is not valid JSON: {e}"
            ) from e

        if isinstance(data, dict):
            data = data.get("pages", [])
        if not isinstance(data, list):
            raise ConfigurationError(f"page registry {self.path} holds no page list")
        pages: dict[str, Page] = {}
        for record in data:
            page = Page.from_json(record)
            pages[page.path] = page
        return list(pages.values())


class StaticPageRegistry:
    """An in-memory registry snapshot."""

    def __init__(self, pages: Iterable[Page] = ()):
        self._pages = tuple(pages)

    def get_pages(self) -> tuple[Page, ...]:
        return self._pages
