from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable
from typing import TYPE_CHECKING

import jinja2

from siteship.artifacts import ComputeFunction
from siteship.artifacts import FileBlob
from siteship.artifacts import FileFsRef
from siteship.artifacts import FunctionFile
from siteship.pages import RenderMode

if TYPE_CHECKING:
    from _typeshed import StrPath

    from siteship.toolchain import RuntimeVersion


RENDER_FUNCTION_KEY = "_render"
PAGE_DATA_FUNCTION_KEY = "page-data"
HANDLER_FILENAME = "index.js"

# Generated by the site build; the render and page-data handlers load
# the site generator's engines from here.
ENGINE_DIRS = (
    ".cache/query-engine",
    ".cache/page-ssr",
    ".cache/data/datastore",
)

_template_env = jinja2.Environment(
    loader=jinja2.PackageLoader("siteship", "templates"),
    keep_trailing_newline=True,
    undefined=jinja2.StrictUndefined,
)


def render_handler(template_name: str, **values: object) -> FileBlob:
    source = _template_env.get_template(template_name).render(**values)
    return FileBlob(source.encode("utf-8"))


def iter_files(root: StrPath) -> list[Path]:
    """All files below ``root``, recursively, in sorted order."""
    return sorted(p for p in Path(root).rglob("*") if p.is_file())


def collect_engine_files(project_root: StrPath | None) -> dict[str, FunctionFile]:
    files: dict[str, FunctionFile] = {}
    if project_root is None:
        return files
    for engine_dir in ENGINE_DIRS:
        engine_path = Path(project_root, engine_dir)
        if not engine_path.is_dir():
            continue
        for path in iter_files(engine_path):
            key = path.relative_to(project_root).as_posix()
            files[key] = FileFsRef(path)
    return files


def create_render_function(
    ssr_routes: Iterable[str],
    dsg_routes: Iterable[str],
    runtime: RuntimeVersion,
    project_root: StrPath | None = None,
) -> dict[str, ComputeFunction]:
    """Create the one function that renders every SSR and DSG page.

    The function is created even when there are no such pages.
    """
    served_paths = {path: RenderMode.SSR for path in ssr_routes}
    served_paths.update((path, RenderMode.DSG) for path in dsg_routes)

    handler = render_handler(
        "render.js.j2",
        ssr_routes=[p for p, m in served_paths.items() if m is RenderMode.SSR],
        dsg_routes=[p for p, m in served_paths.items() if m is RenderMode.DSG],
    )
    function = ComputeFunction(
        kind="render",
        handler=HANDLER_FILENAME,
        runtime=runtime,
        files={HANDLER_FILENAME: handler, **collect_engine_files(project_root)},
        served_paths=served_paths,
    )
    return {RENDER_FUNCTION_KEY: function}


def create_api_functions(
    api_dir: StrPath, runtime: RuntimeVersion
) -> dict[str, ComputeFunction]:
    """Create one function per file below ``api_dir``.

    Functions are keyed by the file's path relative to ``api_dir``.  A
    missing directory means the site has no API routes.
    """
    if not os.path.isdir(api_dir):
        return {}

    functions = {}
    for path in iter_files(api_dir):
        key = path.relative_to(api_dir).as_posix()
        functions[key] = ComputeFunction(
            kind="api",
            handler=key,
            runtime=runtime,
            files={key: FileFsRef(path)},
        )
    return functions


def create_page_data_function(
    runtime: RuntimeVersion, project_root: StrPath | None = None
) -> dict[str, ComputeFunction]:
    """Create the function answering page-data requests for dynamic pages."""
    function = ComputeFunction(
        kind="page-data",
        handler=HANDLER_FILENAME,
        runtime=runtime,
        files={
            HANDLER_FILENAME: render_handler("page-data.js.j2"),
            **collect_engine_files(project_root),
        },
    )
    return {PAGE_DATA_FUNCTION_KEY: function}
