from __future__ import annotations

from types import TracebackType
from typing import Iterable
from typing import Protocol
from typing import Tuple
from typing import Type
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from siteship.pages import Page

ExcInfo = Tuple[Type[BaseException], BaseException, TracebackType]


class PageRegistry(Protocol):
    """A finalized, read-only snapshot of the site generator's pages.

    The snapshot is only valid once the site build has completed.
    """

    def get_pages(self) -> Iterable[Page]:
        ...
