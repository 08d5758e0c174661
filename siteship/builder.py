from __future__ import annotations

import asyncio
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Any
from typing import Callable
from typing import ContextManager
from typing import Mapping
from typing import TYPE_CHECKING
from typing import TypeVar

from siteship.buildfailures import FailureController
from siteship.commands import run_build
from siteship.commands import run_install
from siteship.config import Config
from siteship.exception import BuildFailed
from siteship.functions import create_api_functions
from siteship.functions import create_page_data_function
from siteship.functions import create_render_function
from siteship.manifest import assemble_manifest
from siteship.manifest import OutputManifest
from siteship.pages import classify_pages
from siteship.pages import JsonPageRegistry
from siteship.reporter import reporter
from siteship.routing import build_routes
from siteship.routing import load_route_config
from siteship.routing import RouteRule
from siteship.static import create_static_output
from siteship.toolchain import get_spawn_env
from siteship.toolchain import resolve_toolchain
from siteship.toolchain import RuntimeVersion
from siteship.toolchain import Toolchain

if TYPE_CHECKING:
    from _typeshed import StrPath

    from siteship.artifacts import Artifact
    from siteship.typing import PageRegistry

_T = TypeVar("_T")

ArtifactJob = Callable[[], Mapping[str, "Artifact"]]


class BuildStrategy(ContextManager["BuildStrategy"]):
    """Runs the artifact jobs of a build one after the other."""

    def __init__(self, builder: Builder):
        self.builder = builder

    def close(self) -> None:
        pass

    def __exit__(self, _typ: Any, _ex: Any, _tb: Any) -> None:
        self.close()

    def run_jobs(
        self, jobs: Mapping[str, ArtifactJob]
    ) -> dict[str, Mapping[str, Artifact]]:
        return {name: job() for name, job in jobs.items()}


class ConcurrencyConfig:
    # Maximum number of workers in the thread pool
    max_workers: int

    def __init__(self, *, max_workers: int | None = None):
        if max_workers is None:
            cpu_count = os.cpu_count()
            if cpu_count is not None:
                max_workers = min(32, cpu_count + 4)
            else:
                max_workers = 1
        self.max_workers = max(1, max_workers)


class ConcurrentBuildStrategy(BuildStrategy):
    """Runs the artifact jobs of a build in a thread pool.

    The jobs share no state, so only the results need joining.
    """

    def __init__(self, builder: Builder, concurrency_config: ConcurrencyConfig):
        super().__init__(builder=builder)

        self._event_loop = asyncio.new_event_loop()
        self._executor = ThreadPoolExecutor(max_workers=concurrency_config.max_workers)

    def close(self) -> None:
        loop = self._event_loop
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        self._executor.shutdown()
        super().close()

    def run_jobs(
        self, jobs: Mapping[str, ArtifactJob]
    ) -> dict[str, Mapping[str, Artifact]]:
        return self._event_loop.run_until_complete(self._arun_jobs(jobs))

    async def _arun_jobs(
        self, jobs: Mapping[str, ArtifactJob]
    ) -> dict[str, Mapping[str, Artifact]]:
        results = await asyncio.gather(*map(self.run_in_thread, jobs.values()))
        return dict(zip(jobs, results))

    def run_in_thread(
        self, job: ArtifactJob
    ) -> asyncio.Future[Mapping[str, Artifact]]:
        loop = asyncio.get_running_loop()

        # The reporter stack is thread-local.
        reporter_copy = reporter.copy()

        def target() -> Mapping[str, Artifact]:
            with reporter_copy:
                return job()

        return loop.run_in_executor(self._executor, target)


class Builder:
    """Turns a built site into an :class:`OutputManifest`.

    ``build`` runs the whole pipeline: toolchain detection, install,
    build, then ``assemble``.  ``assemble`` alone can be used when the
    site has already been built.
    """

    def __init__(
        self,
        project_root: StrPath,
        config: Config | None = None,
        buildstate_path: StrPath | None = None,
        registry: PageRegistry | None = None,
        concurrency_config: ConcurrencyConfig | None = None,
        env: Mapping[str, str] | None = None,
    ):
        self.project_root = os.path.abspath(project_root)
        if config is None:
            config = Config.for_project(self.project_root)
        self.config = config
        if buildstate_path:
            self.meta_path = os.fspath(buildstate_path)
        else:
            self.meta_path = os.path.join(self.project_root, ".siteship")
        self.failure_controller = FailureController(self.meta_path)
        self.registry = registry
        self.concurrency_config = concurrency_config
        self.env = env

    def _get_build_strategy(self) -> BuildStrategy:
        concurrency_config = self.concurrency_config
        if concurrency_config is None:
            return BuildStrategy(builder=self)
        return ConcurrentBuildStrategy(
            builder=self, concurrency_config=concurrency_config
        )

    def _path(self, relpath: str) -> str:
        return os.path.join(self.project_root, relpath)

    def run_stage(self, stage: str, func: Callable[..., _T], *args: Any) -> _T:
        """Run one stage of the build.

        Any exception is recorded and re-raised as :class:`BuildFailed`.
        """
        with reporter.process_stage(stage):
            try:
                return func(*args)
            except Exception as exc:
                exc_info = sys.exc_info()
                assert exc_info[1] is not None
                self.failure_controller.store_failure(stage, exc_info)
                reporter.report_failure(stage, exc_info)
                raise BuildFailed(f"{stage} failed: {exc}", stage=stage) from exc

    def get_page_registry(self) -> PageRegistry:
        if self.registry is not None:
            return self.registry
        return JsonPageRegistry(self._path(self.config.registry_path))

    def resolve_toolchain(self) -> Toolchain:
        return resolve_toolchain(self.project_root, self.config.node_version)

    def get_routes(self) -> list[RouteRule]:
        route_config = load_route_config(self._path(self.config.route_config_file))
        return build_routes(route_config, trailing_slash=self.config.trailing_slash)

    def build(self) -> OutputManifest:
        """Install, build and assemble the site."""
        config = self.config
        with reporter.build("build", self):
            toolchain = self.run_stage("toolchain", self.resolve_toolchain)
            env = get_spawn_env(toolchain, self.env)
            reporter.report_debug_info("PATH", env.get("PATH", ""))
            self.run_stage(
                "install",
                run_install,
                self.project_root,
                toolchain,
                env,
                config.install_command,
            )
            self.run_stage(
                "build",
                run_build,
                self.project_root,
                toolchain,
                env,
                config.build_command,
            )
            return self._assemble(toolchain.runtime)

    def assemble(self, runtime: RuntimeVersion) -> OutputManifest:
        """Assemble the manifest from an already built site."""
        with reporter.build("assemble", self):
            return self._assemble(runtime)

    def _assemble(self, runtime: RuntimeVersion) -> OutputManifest:
        # The registry is only read here, after the site build returned.
        registry = self.get_page_registry()
        pages = self.run_stage("registry", registry.get_pages)
        ssr_routes, dsg_routes = classify_pages(pages)
        reporter.report_pages(ssr_routes, dsg_routes)

        routes = self.run_stage("routes", self.get_routes)

        config = self.config
        project_root = self.project_root
        jobs: dict[str, ArtifactJob] = {
            "static": lambda: create_static_output(self._path(config.static_dir)),
            "render": lambda: create_render_function(
                ssr_routes, dsg_routes, runtime, project_root
            ),
            "api": lambda: create_api_functions(self._path(config.api_dir), runtime),
            "page-data": lambda: create_page_data_function(runtime, project_root),
        }
        with self._get_build_strategy() as strategy:
            results = self.run_stage("artifacts", strategy.run_jobs, jobs)

        manifest = self.run_stage(
            "merge",
            assemble_manifest,
            results["static"],
            results["render"],
            results["api"],
            results["page-data"],
            routes,
        )
        self.run_stage("cleanup", self.failure_controller.clear_all)
        return manifest
