from __future__ import annotations

import pytest

from siteship.artifacts import ComputeFunction
from siteship.artifacts import FileBlob
from siteship.artifacts import FileFsRef
from siteship.functions import create_api_functions
from siteship.functions import create_page_data_function
from siteship.functions import create_render_function
from siteship.functions import HANDLER_FILENAME
from siteship.functions import PAGE_DATA_FUNCTION_KEY
from siteship.functions import RENDER_FUNCTION_KEY
from siteship.pages import RenderMode


class TestCreateRenderFunction:
    # pylint: disable=no-self-use

    def test_single_function(self, runtime):
        output = create_render_function(["/a", "/c"], ["/b"], runtime)
        assert list(output) == [RENDER_FUNCTION_KEY]
        function = output[RENDER_FUNCTION_KEY]
        assert function.kind == "render"
        assert function.runtime == runtime
        assert function.handler == HANDLER_FILENAME
        assert dict(function.served_paths) == {
            "/a": RenderMode.SSR,
            "/c": RenderMode.SSR,
            "/b": RenderMode.DSG,
        }

    def test_empty(self, runtime):
        function = create_render_function([], [], runtime)[RENDER_FUNCTION_KEY]
        assert isinstance(function, ComputeFunction)
        assert dict(function.served_paths) == {}
        assert HANDLER_FILENAME in function.files

    def test_handler_lists_routes(self, runtime):
        function = create_render_function(["/a"], ["/b"], runtime)[
            RENDER_FUNCTION_KEY
        ]
        handler = function.files[HANDLER_FILENAME]
        assert isinstance(handler, FileBlob)
        source = handler.data.decode("utf-8")
        assert 'new Set(["/a"])' in source
        assert 'new Set(["/b"])' in source

    def test_engine_files(self, runtime, project_path):
        engine = project_path / ".cache" / "page-ssr" / "index.js"
        engine.parent.mkdir(parents=True)
        engine.write_text("module.exports = {};", encoding="utf-8")

        function = create_render_function([], [], runtime, project_path)[
            RENDER_FUNCTION_KEY
        ]
        assert function.files[".cache/page-ssr/index.js"] == FileFsRef(engine)

    def test_to_json(self, runtime):
        function = create_render_function(["/a"], ["/b"], runtime)[
            RENDER_FUNCTION_KEY
        ]
        data = function.to_json()
        assert data["runtime"] == runtime.runtime
        assert data["paths"] == [
            {"path": "/a", "mode": "SSR"},
            {"path": "/b", "mode": "DSG"},
        ]


class TestCreateApiFunctions:
    # pylint: disable=no-self-use

    @pytest.fixture
    def api_dir(self, tmp_path):
        api_dir = tmp_path / "src" / "api"
        (api_dir / "users").mkdir(parents=True)
        (api_dir / "hello.js").write_text("export default () => {}")
        (api_dir / "users" / "[id].js").write_text("syntax error (")
        return api_dir

    def test_missing_dir(self, tmp_path, runtime):
        assert create_api_functions(tmp_path / "src" / "api", runtime) == {}

    def test_one_function_per_file(self, api_dir, runtime):
        output = create_api_functions(api_dir, runtime)
        assert list(output) == ["hello.js", "users/[id].js"]
        function = output["users/[id].js"]
        assert function.kind == "api"
        assert function.handler == "users/[id].js"
        assert function.runtime == runtime
        assert function.files == {"users/[id].js": FileFsRef(api_dir / "users/[id].js")}

    def test_empty_dir(self, tmp_path, runtime):
        api_dir = tmp_path / "api"
        api_dir.mkdir()
        assert create_api_functions(api_dir, runtime) == {}


def test_create_page_data_function(runtime):
    output = create_page_data_function(runtime)
    assert list(output) == [PAGE_DATA_FUNCTION_KEY]
    function = output[PAGE_DATA_FUNCTION_KEY]
    assert function.kind == "page-data"
    source = function.files[HANDLER_FILENAME].data.decode("utf-8")
    assert "page-data.json" in source


def test_create_page_data_function_is_deterministic(runtime):
    assert create_page_data_function(runtime) == create_page_data_function(runtime)
