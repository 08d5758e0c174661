from __future__ import annotations

import dataclasses
import errno
import hashlib
import json
import os
import sys
from pathlib import Path
from traceback import TracebackException
from typing import TYPE_CHECKING

from marshmallow_dataclass import class_schema

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

if TYPE_CHECKING:
    from _typeshed import StrPath
    from siteship.typing import ExcInfo


@dataclasses.dataclass
class BuildFailure:
    stage: str
    exception: str  # formatted exception name
    traceback: str  # formatted traceback

    @classmethod
    def from_exc_info(cls: type[Self], stage: str, exc_info: ExcInfo) -> Self:
        te = TracebackException(*exc_info)
        return cls(
            stage,
            exception="".join(te.format_exception_only()).strip(),
            traceback="".join(te.format()).strip(),
        )

    def to_json(self) -> dict[str, str]:
        return dataclasses.asdict(self)

    @property
    def data(self) -> dict[str, str]:
        return self.to_json()


BuildFailureSchema = class_schema(BuildFailure)


class FailureController:
    """Persists the failure of a build stage between runs."""

    def __init__(self, meta_path: StrPath):
        self.path = Path(meta_path).resolve() / "failures"

    def get_path(self, stage: str) -> Path:
        namehash = hashlib.md5(stage.encode("utf-8")).hexdigest()
        return self.path / f"{namehash}.json"

    def lookup_failure(self, stage: str) -> BuildFailure | None:
        """Looks up a failure for the given stage."""
        try:
            with self.get_path(stage).open(encoding="utf-8") as f:
                schema = BuildFailureSchema()
                return schema.load(json.load(f))  # type: ignore[no-any-return]
        except OSError as ex:
            if ex.errno == errno.ENOENT:
                return None
            raise

    def iter_failures(self) -> list[BuildFailure]:
        schema = BuildFailureSchema()
        failures = []
        if self.path.is_dir():
            for path in sorted(self.path.glob("*.json")):
                with path.open(encoding="utf-8") as f:
                    failures.append(schema.load(json.load(f)))
        return failures

    def clear_failure(self, stage: str) -> None:
        """Clears a stored failure."""
        try:
            os.unlink(self.get_path(stage))
        except OSError as e:
            if e.errno != errno.ENOENT:
                raise

    def clear_all(self) -> None:
        """Removes every stored failure record.

        Records are not parsed, so stale or damaged ones go as well.
        """
        if not self.path.is_dir():
            return
        for path in self.path.glob("*.json"):
            try:
                path.unlink()
            except OSError as e:
                if e.errno != errno.ENOENT:
                    raise

    def store_failure(self, stage: str, exc_info: ExcInfo) -> None:
        """Stores a failure from an exception info tuple."""
        path = self.get_path(stage)
        failure = BuildFailure.from_exc_info(stage, exc_info)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open(mode="w", encoding="utf-8") as fp:
            print(json.dumps(failure.to_json()), file=fp)
