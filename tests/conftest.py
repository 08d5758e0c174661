from __future__ import annotations

import json

import pytest

from siteship.builder import Builder
from siteship.pages import Page
from siteship.pages import RenderMode
from siteship.pages import StaticPageRegistry
from siteship.reporter import BufferReporter
from siteship.toolchain import SUPPORTED_RUNTIMES


@pytest.fixture
def runtime():
    return SUPPORTED_RUNTIMES[0]


@pytest.fixture
def project_path(tmp_path):
    """A minimal built site."""
    project = tmp_path / "site"
    public = project / "public"
    (public / "static").mkdir(parents=True)
    (public / "index.html").write_text("<h1>Home</h1>", encoding="utf-8")
    (public / "c" / "index.html").parent.mkdir()
    (public / "c" / "index.html").write_text("<h1>C</h1>", encoding="utf-8")
    (public / "static" / "style.css").write_text("body {}", encoding="utf-8")
    return project


@pytest.fixture
def write_json():
    def write_json(path, data):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return write_json


@pytest.fixture
def pages():
    return [
        Page("/a", RenderMode.SSR),
        Page("/b", RenderMode.DSG),
        Page("/c"),
    ]


@pytest.fixture
def registry(pages):
    return StaticPageRegistry(pages)


@pytest.fixture
def builder(project_path, registry):
    return Builder(project_path, registry=registry)


@pytest.fixture
def reporter():
    with BufferReporter() as reporter:
        yield reporter
