from __future__ import annotations

import pytest

from siteship.artifacts import FileFsRef
from siteship.functions import create_api_functions
from siteship.functions import create_page_data_function
from siteship.functions import create_render_function
from siteship.functions import PAGE_DATA_FUNCTION_KEY
from siteship.manifest import assemble_manifest
from siteship.manifest import merge_outputs
from siteship.routing import build_routes
from siteship.static import create_static_output


@pytest.fixture
def static_output(project_path):
    (project_path / "public" / "page-data").write_text("stray", encoding="utf-8")
    return create_static_output(project_path / "public")


@pytest.fixture
def api_output(tmp_path, runtime):
    api_dir = tmp_path / "api"
    api_dir.mkdir()
    (api_dir / "page-data").write_text("module.exports = () => {}")
    (api_dir / "index.html").write_text("not really html")
    return create_api_functions(api_dir, runtime)


def test_merge_outputs_later_wins():
    assert merge_outputs({"a": 1, "b": 1}, {"b": 2, "c": 2}, {"c": 3}) == {
        "a": 1,
        "b": 2,
        "c": 3,
    }


def test_merge_outputs_reports_overrides(reporter):
    merge_outputs({"a": "old"}, {"a": "new", "b": "x"})
    assert reporter.get_events("override") == [
        {"key": "a", "old": "old", "new": "new"}
    ]


def test_page_data_wins_over_static_file(static_output, runtime):
    assert isinstance(static_output[PAGE_DATA_FUNCTION_KEY], FileFsRef)
    page_data = create_page_data_function(runtime)

    manifest = assemble_manifest(
        static_output,
        create_render_function([], [], runtime),
        {},
        page_data,
        build_routes(),
    )
    assert manifest.output[PAGE_DATA_FUNCTION_KEY] is page_data[PAGE_DATA_FUNCTION_KEY]


def test_page_data_wins_over_api_route(static_output, api_output, runtime):
    page_data = create_page_data_function(runtime)
    manifest = assemble_manifest(
        static_output,
        create_render_function([], [], runtime),
        api_output,
        page_data,
        build_routes(),
    )
    assert manifest.output[PAGE_DATA_FUNCTION_KEY] is page_data[PAGE_DATA_FUNCTION_KEY]
    # API routes override static files of the same name.
    assert manifest.output["index.html"] is api_output["index.html"]


def test_manifest_is_read_only(static_output, runtime):
    manifest = assemble_manifest(
        static_output, {}, {}, create_page_data_function(runtime), build_routes()
    )
    with pytest.raises(TypeError):
        manifest.output["x"] = manifest.output["index.html"]  # type: ignore[index]
    assert isinstance(manifest.routes, tuple)


def test_manifest_to_json(project_path, runtime):
    manifest = assemble_manifest(
        create_static_output(project_path / "public"),
        create_render_function(["/a"], [], runtime),
        {},
        create_page_data_function(runtime),
        build_routes({"redirects": [{"source": "/x", "destination": "/y"}]}),
    )
    data = manifest.to_json()
    assert list(data["output"]) == [
        "index.html",
        "c/index.html",
        "static/style.css",
        "_render",
        "page-data",
    ]
    assert data["output"]["page-data"]["kind"] == "page-data"
    assert [route["src"] for route in data["routes"]] == [
        r"^/page-data(?:/(.*))/page-data\.json$",
        "^/x$",
    ]
