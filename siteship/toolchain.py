from __future__ import annotations

import errno
import json
import os
import re
from pathlib import Path
from typing import Any
from typing import Callable
from typing import Iterator
from typing import Mapping
from typing import NamedTuple
from typing import TYPE_CHECKING

from siteship.exception import ConfigurationError
from siteship.reporter import reporter

if TYPE_CHECKING:
    from _typeshed import StrPath


class RuntimeVersion(NamedTuple):
    major: int
    range: str
    runtime: str


# Newest first.
SUPPORTED_RUNTIMES = [
    RuntimeVersion(20, "20.x", "nodejs20.x"),
    RuntimeVersion(18, "18.x", "nodejs18.x"),
    RuntimeVersion(16, "16.x", "nodejs16.x"),
    RuntimeVersion(14, "14.x", "nodejs14.x"),
]


class PackageManager(NamedTuple):
    cli_type: str
    lockfile_version: float | None = None


class Toolchain(NamedTuple):
    runtime: RuntimeVersion
    package_manager: PackageManager


_COMPARATOR_RE = re.compile(
    r"^(>=|<=|>|<|=|\^|~)?v?(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?$"
)
_OPERATOR_SPACE_RE = re.compile(r"(>=|<=|>|<|=|\^|~)\s+")
_PNPM_LOCKFILE_VERSION_RE = re.compile(
    r"^lockfileVersion:\s*['\"]?([0-9.]+)", re.MULTILINE
)

# Tells whether a runtime major version has releases matching a comparator.
MajorPredicate = Callable[[int], bool]


def _is_zero(part: str | None) -> bool:
    return part is None or not part.isdigit() or int(part) == 0


def _parse_comparator(comparator: str) -> MajorPredicate:
    m = _COMPARATOR_RE.match(comparator)
    if m is None:
        raise ValueError(comparator)
    op, major, minor, patch = m.groups()
    if not major.isdigit():
        return lambda _major: True
    bound = int(major)

    if op == ">=":
        return lambda v: v >= bound
    if op == ">":
        # ">18" and ">18.x" exclude all of 18.x, ">18.2" does not.
        if minor is None or not minor.isdigit():
            return lambda v: v > bound
        return lambda v: v >= bound
    if op == "<":
        # "<18" and "<18.0.0" exclude all of 18.x, "<18.2" does not.
        if _is_zero(minor) and _is_zero(patch):
            return lambda v: v < bound
        return lambda v: v <= bound
    if op == "<=":
        return lambda v: v <= bound
    return lambda v: v == bound


def _parse_range(requested: str) -> list[list[MajorPredicate]]:
    """Parse a node version range into alternatives of comparator sets."""
    alternatives = []
    for part in requested.split("||"):
        tokens = _OPERATOR_SPACE_RE.sub(r"\1", part.strip()).split()
        if len(tokens) == 3 and tokens[1] == "-":
            tokens = [f">={tokens[0]}", f"<={tokens[2]}"]
        alternatives.append([_parse_comparator(token) for token in tokens or ["*"]])
    return alternatives


def read_package_json(project_root: StrPath) -> dict[str, Any] | None:
    path = Path(project_root, "package.json")
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        if e.errno != errno.ENOENT:
            raise
        return None
    except ValueError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e
    return data if isinstance(data, dict) else None


def select_runtime(requested: str) -> RuntimeVersion:
    """Pick the newest supported runtime matching a node version range.

    The range may combine comparators (``>=14 <17``), hyphen ranges
    (``14 - 18``) and alternatives (``16.x || 18.x``).
    """
    try:
        alternatives = _parse_range(requested)
    except ValueError as e:
        raise ConfigurationError(f"Invalid Node.js version {requested!r}") from e

    for rv in SUPPORTED_RUNTIMES:
        if any(all(pred(rv.major) for pred in preds) for preds in alternatives):
            return rv
    supported = ", ".join(rv.range for rv in SUPPORTED_RUNTIMES)
    raise ConfigurationError(
        f"Found unsupported Node.js version {requested!r}. "
        f"Supported versions: {supported}"
    )


def get_runtime_version(
    project_root: StrPath, configured: str | None = None
) -> RuntimeVersion:
    requested = configured
    if not requested:
        engines = (read_package_json(project_root) or {}).get("engines")
        if isinstance(engines, dict) and isinstance(engines.get("node"), str):
            requested = engines["node"]
    if not requested:
        return SUPPORTED_RUNTIMES[0]
    return select_runtime(requested)


def _iter_parents(path: Path) -> Iterator[Path]:
    yield path
    yield from path.parents


def _read_lockfile_version(path: Path) -> float | None:
    if path.name == "package-lock.json":
        try:
            version = json.loads(path.read_text(encoding="utf-8")).get(
                "lockfileVersion"
            )
        except ValueError:
            return None
        return float(version) if isinstance(version, (int, float)) else None
    m = _PNPM_LOCKFILE_VERSION_RE.search(path.read_text(encoding="utf-8"))
    return float(m.group(1)) if m else None


def scan_parent_dirs(project_root: StrPath) -> PackageManager:
    """Detect the package manager from the nearest lockfile."""
    root = Path(project_root).resolve()
    for directory in _iter_parents(root):
        if directory.joinpath("yarn.lock").is_file():
            return PackageManager("yarn")
        pnpm_lock = directory / "pnpm-lock.yaml"
        if pnpm_lock.is_file():
            return PackageManager("pnpm", _read_lockfile_version(pnpm_lock))
        npm_lock = directory / "package-lock.json"
        if npm_lock.is_file():
            return PackageManager("npm", _read_lockfile_version(npm_lock))
        # Lockfiles above the enclosing package belong to another project.
        if directory != root and directory.joinpath("package.json").is_file():
            break
    return PackageManager("npm")


def resolve_toolchain(
    project_root: StrPath, node_version: str | None = None
) -> Toolchain:
    toolchain = Toolchain(
        runtime=get_runtime_version(project_root, node_version),
        package_manager=scan_parent_dirs(project_root),
    )
    reporter.report_toolchain(toolchain)
    return toolchain


def get_spawn_env(
    toolchain: Toolchain, base_env: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Environment for install and build commands."""
    env = dict(os.environ if base_env is None else base_env)
    path = env.get("PATH", "")
    cli_type, lockfile_version = toolchain.package_manager

    if cli_type == "npm":
        if (
            lockfile_version is not None
            and lockfile_version >= 2
            and toolchain.runtime.major < 16
        ):
            env["PATH"] = f"/node16/bin-npm7:{path}"
            reporter.report_generic("Detected `package-lock.json` generated by npm 7")
    elif cli_type == "pnpm":
        if lockfile_version == 5.4:
            env["PATH"] = f"/pnpm7/node_modules/.bin:{path}"
            reporter.report_generic("Detected `pnpm-lock.yaml` generated by pnpm 7")
    return env
