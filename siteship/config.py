from __future__ import annotations

import copy
import os
from typing import Any
from typing import Literal
from typing import overload
from typing import TYPE_CHECKING
from typing import TypedDict

from inifile import IniFile

if TYPE_CHECKING:
    from _typeshed import StrPath


PROJECT_FILENAME = "siteship.ini"


class BuildConfig(TypedDict):
    install_command: str | None
    build_command: str | None


class OutputConfig(TypedDict):
    static_dir: str
    api_dir: str


class RoutesConfig(TypedDict):
    config_file: str
    trailing_slash: bool


class RuntimeConfig(TypedDict):
    node_version: str | None


class RegistryConfig(TypedDict):
    path: str


class ConfigValues(TypedDict):
    BUILD: BuildConfig
    OUTPUT: OutputConfig
    ROUTES: RoutesConfig
    RUNTIME: RuntimeConfig
    REGISTRY: RegistryConfig


DEFAULT_CONFIG = {
    "BUILD": {
        # None means "not configured"; an empty install command skips
        # the install step.
        "install_command": None,
        "build_command": None,
    },
    "OUTPUT": {
        "static_dir": "public",
        "api_dir": "src/api",
    },
    "ROUTES": {
        "config_file": "vercel.json",
        "trailing_slash": False,
    },
    "RUNTIME": {
        "node_version": None,
    },
    "REGISTRY": {
        "path": ".cache/siteship-pages.json",
    },
}


def update_config_from_ini(config: dict[str, Any], inifile: IniFile) -> None:
    build = config["BUILD"]
    for key in ("install_command", "build_command"):
        value = inifile.get(f"build.{key}")
        if value is not None:
            build[key] = value.strip()

    for section_name in ("OUTPUT", "RUNTIME", "REGISTRY"):
        config[section_name].update(inifile.section_as_dict(section_name.lower()))

    routes = config["ROUTES"]
    routes["config_file"] = inifile.get("routes.config_file", routes["config_file"])
    routes["trailing_slash"] = inifile.get_bool(
        "routes.trailing_slash", routes["trailing_slash"]
    )


class Config:
    def __init__(self, filename: StrPath | None = None):
        self.filename = filename
        self.values = copy.deepcopy(DEFAULT_CONFIG)

        if filename is not None and os.path.isfile(filename):
            inifile = IniFile(os.fspath(filename))
            update_config_from_ini(self.values, inifile)

    @classmethod
    def for_project(cls, project_root: StrPath) -> Config:
        """Loads the config from the project file in ``project_root``."""
        return cls(os.path.join(project_root, PROJECT_FILENAME))

    @overload
    def __getitem__(self, name: Literal["BUILD"]) -> BuildConfig:
        ...

    @overload
    def __getitem__(self, name: Literal["OUTPUT"]) -> OutputConfig:
        ...

    @overload
    def __getitem__(self, name: Literal["ROUTES"]) -> RoutesConfig:
        ...

    @overload
    def __getitem__(self, name: Literal["RUNTIME"]) -> RuntimeConfig:
        ...

    @overload
    def __getitem__(self, name: Literal["REGISTRY"]) -> RegistryConfig:
        ...

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def override(self, **values: str | None) -> None:
        """Override build settings, e.g. from the command line.

        Values of ``None`` are ignored.
        """
        for key, value in values.items():
            if key not in self.values["BUILD"]:
                raise TypeError(f"unknown build setting {key!r}")
            if value is not None:
                self.values["BUILD"][key] = value

    @property
    def install_command(self) -> str | None:
        return self["BUILD"]["install_command"]

    @property
    def build_command(self) -> str | None:
        return self["BUILD"]["build_command"] or None

    @property
    def static_dir(self) -> str:
        return self["OUTPUT"]["static_dir"]

    @property
    def api_dir(self) -> str:
        return self["OUTPUT"]["api_dir"]

    @property
    def route_config_file(self) -> str:
        return self["ROUTES"]["config_file"]

    @property
    def trailing_slash(self) -> bool:
        return self["ROUTES"]["trailing_slash"]

    @property
    def node_version(self) -> str | None:
        return self["RUNTIME"]["node_version"] or None

    @property
    def registry_path(self) -> str:
        return self["REGISTRY"]["path"]
