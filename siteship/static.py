from __future__ import annotations

import os
from typing import TYPE_CHECKING

from siteship.artifacts import FileFsRef
from siteship.exception import StaticOutputError

if TYPE_CHECKING:
    from _typeshed import StrPath


def _raise(error: OSError) -> None:
    raise error


def create_static_output(static_dir: StrPath) -> dict[str, FileFsRef]:
    """Collect every file below ``static_dir``.

    Files are keyed by their slash-separated path relative to
    ``static_dir``.
    """
    root = os.path.abspath(static_dir)
    if not os.path.isdir(root):
        raise StaticOutputError(f"Static output directory {root} does not exist")

    output: dict[str, FileFsRef] = {}
    try:
        for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
            dirnames.sort()
            for filename in sorted(filenames):
                full_path = os.path.join(dirpath, filename)
                key = os.path.relpath(full_path, root).replace(os.path.sep, "/")
                output[key] = FileFsRef(full_path)
    except OSError as e:
        raise StaticOutputError(
            f"Static output directory {root} could not be read: {e}"
        ) from e
    return output
