from __future__ import annotations

import pytest

from siteship.config import Config
from siteship.config import DEFAULT_CONFIG
from siteship.config import PROJECT_FILENAME


@pytest.fixture
def write_config(tmp_path):
    def write_config(text):
        path = tmp_path / PROJECT_FILENAME
        path.write_text(text, encoding="utf-8")
        return path

    return write_config


def test_defaults(tmp_path):
    config = Config.for_project(tmp_path)
    assert config.values == DEFAULT_CONFIG
    assert config.install_command is None
    assert config.build_command is None
    assert config.static_dir == "public"
    assert config.api_dir == "src/api"
    assert config.route_config_file == "vercel.json"
    assert config.trailing_slash is False
    assert config.node_version is None
    assert config.registry_path == ".cache/siteship-pages.json"


def test_defaults_not_shared(tmp_path):
    config = Config()
    config["OUTPUT"]["static_dir"] = "dist"
    assert Config().static_dir == "public"


def test_load_from_ini(write_config):
    config = Config(
        write_config(
            "[build]\n"
            "install_command = npm ci\n"
            "build_command = npm run export\n"
            "\n"
            "[output]\n"
            "static_dir = dist\n"
            "\n"
            "[routes]\n"
            "config_file = routes.json\n"
            "trailing_slash = yes\n"
            "\n"
            "[runtime]\n"
            "node_version = 18.x\n"
        )
    )
    assert config.install_command == "npm ci"
    assert config.build_command == "npm run export"
    assert config.static_dir == "dist"
    assert config.api_dir == "src/api"
    assert config.route_config_file == "routes.json"
    assert config.trailing_slash is True
    assert config.node_version == "18.x"


def test_empty_install_command(write_config):
    config = Config(write_config("[build]\ninstall_command =\n"))
    assert config.install_command == ""


def test_empty_build_command(write_config):
    config = Config(write_config("[build]\nbuild_command =\n"))
    assert config.build_command is None


def test_override(tmp_path):
    config = Config.for_project(tmp_path)
    config.override(install_command="", build_command=None)
    assert config.install_command == ""
    assert config.build_command is None


def test_override_unknown_setting():
    with pytest.raises(TypeError):
        Config().override(static_dir="dist")
