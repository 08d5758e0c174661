"""Install and build command execution.

Commands run through the shell in the project directory.  Any failure
is fatal to the build.
"""
from __future__ import annotations

import os
import subprocess
from typing import Any
from typing import Mapping
from typing import TYPE_CHECKING

from siteship.exception import CommandError
from siteship.reporter import reporter
from siteship.toolchain import read_package_json

if TYPE_CHECKING:
    from _typeshed import StrPath

    from siteship.toolchain import Toolchain

# Tried in order when no build command is configured.
BUILD_SCRIPT_NAMES = ("vercel-build", "build")
DEFAULT_BUILD_COMMAND = "gatsby build"

INSTALL_COMMANDS = {
    "npm": "npm install",
    "pnpm": "pnpm install",
    "yarn": "yarn install",
}


def exec_command(command: str, cwd: StrPath, env: Mapping[str, str]) -> None:
    reporter.report_command(command, os.fspath(cwd))
    result = subprocess.run(command, shell=True, cwd=cwd, env=dict(env), check=False)
    if result.returncode != 0:
        raise CommandError(
            f"Command {command!r} exited with {result.returncode}",
            command=command,
            returncode=result.returncode,
        )


def has_script(script_name: str, package_json: Mapping[str, Any] | None) -> bool:
    scripts = (package_json or {}).get("scripts") or {}
    return isinstance(scripts, dict) and isinstance(scripts.get(script_name), str)


def run_script_command(toolchain: Toolchain, script_name: str) -> str:
    cli_type = toolchain.package_manager.cli_type
    if cli_type == "yarn":
        return f"yarn {script_name}"
    return f"{cli_type} run {script_name}"


def run_install(
    project_root: StrPath,
    toolchain: Toolchain,
    env: Mapping[str, str],
    install_command: str | None = None,
) -> None:
    """Install dependencies.

    A configured command runs as given, an empty one skips the step and
    ``None`` runs the package manager's default install.
    """
    if install_command is None:
        cli_type = toolchain.package_manager.cli_type
        exec_command(INSTALL_COMMANDS[cli_type], project_root, env)
    elif install_command.strip():
        exec_command(
            install_command,
            project_root,
            {"YARN_NODE_LINKER": "node-modules", **env},
        )
    else:
        reporter.report_generic('Skipping "install" command...')


def get_build_command(
    project_root: StrPath, toolchain: Toolchain, build_command: str | None = None
) -> str:
    if build_command:
        return build_command
    package_json = read_package_json(project_root)
    for script_name in BUILD_SCRIPT_NAMES:
        if has_script(script_name, package_json):
            return run_script_command(toolchain, script_name)
    return DEFAULT_BUILD_COMMAND


def run_build(
    project_root: StrPath,
    toolchain: Toolchain,
    env: Mapping[str, str],
    build_command: str | None = None,
) -> None:
    command = get_build_command(project_root, toolchain, build_command)
    exec_command(command, project_root, env)
