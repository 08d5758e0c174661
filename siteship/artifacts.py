from __future__ import annotations

import base64
import mimetypes
import os
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Literal
from typing import Mapping
from typing import TYPE_CHECKING
from typing import Union

from siteship.pages import RenderMode

if TYPE_CHECKING:
    from siteship.toolchain import RuntimeVersion

FunctionKind = Literal["render", "api", "page-data"]


class FileFsRef:
    """A file on disk, deployed verbatim."""

    def __init__(self, fs_path: str | os.PathLike[str], mode: int | None = None):
        self.fs_path = os.fspath(fs_path)
        if mode is None:
            mode = os.stat(self.fs_path).st_mode
        self.mode = mode

    @property
    def content_type(self) -> str:
        return mimetypes.guess_type(self.fs_path)[0] or "application/octet-stream"

    def to_json(self) -> dict[str, Any]:
        return {
            "type": "FileFsRef",
            "fsPath": self.fs_path,
            "mode": self.mode,
            "contentType": self.content_type,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileFsRef):
            return NotImplemented
        return (self.fs_path, self.mode) == (other.fs_path, other.mode)

    def __hash__(self) -> int:
        return hash((self.fs_path, self.mode))

    def __repr__(self) -> str:
        return f"<FileFsRef {self.fs_path!r}>"


@dataclass(frozen=True)
class FileBlob:
    """In-memory file contents, e.g. a rendered handler template."""

    data: bytes
    mode: int = 0o100644

    def to_json(self) -> dict[str, Any]:
        return {
            "type": "FileBlob",
            "mode": self.mode,
            "data": base64.b64encode(self.data).decode("ascii"),
        }


FunctionFile = Union[FileFsRef, FileBlob]


@dataclass(frozen=True)
class ComputeFunction:
    """A deployable function.

    ``served_paths`` maps each page path the function renders to its
    render mode; the hosting platform derives caching from the mode.
    """

    kind: FunctionKind
    handler: str
    runtime: RuntimeVersion
    files: Mapping[str, FunctionFile] = field(default_factory=dict)
    served_paths: Mapping[str, RenderMode] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        rv: dict[str, Any] = {
            "type": "Lambda",
            "kind": self.kind,
            "handler": self.handler,
            "runtime": self.runtime.runtime,
            "files": {name: f.to_json() for name, f in self.files.items()},
        }
        if self.served_paths:
            rv["paths"] = [
                {"path": path, "mode": mode.value}
                for path, mode in self.served_paths.items()
            ]
        return rv


Artifact = Union[FileFsRef, ComputeFunction]
