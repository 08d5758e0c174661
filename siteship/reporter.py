from __future__ import annotations

import copy
import sys
import threading
import time
import traceback
from contextlib import contextmanager
from typing import Iterator
from typing import NamedTuple
from typing import TYPE_CHECKING
from typing import TypedDict

import click
from click import style
from werkzeug.local import LocalProxy
from werkzeug.local import LocalStack

if sys.version_info >= (3, 11):
    from typing import Self
else:
    from typing_extensions import Self

if sys.version_info >= (3, 12):
    from typing import Unpack
else:
    from typing_extensions import Unpack

if TYPE_CHECKING:
    from _typeshed import Unused

    from siteship.artifacts import Artifact
    from siteship.builder import Builder
    from siteship.routing import RouteRule
    from siteship.toolchain import Toolchain
    from siteship.typing import ExcInfo


_reporter_stack: LocalStack[Reporter] = LocalStack()


class Reporter:
    def __init__(self, verbosity: int = 0):
        self.verbosity = verbosity

        self.builder_stack: list[Builder] = []
        self.stage_stack: list[str] = []

    def copy(self) -> Self:
        clone = copy.copy(self)
        clone.builder_stack = list(self.builder_stack)
        clone.stage_stack = list(self.stage_stack)
        return clone

    def push(self) -> None:
        _reporter_stack.push(self)

    @staticmethod
    def pop() -> None:
        _reporter_stack.pop()

    def __enter__(self) -> Self:
        self.push()
        return self

    def __exit__(self, exc_type: Unused, exc_value: Unused, tb: Unused) -> None:
        self.pop()

    @property
    def builder(self) -> Builder | None:
        if self.builder_stack:
            return self.builder_stack[-1]
        return None

    @property
    def current_stage(self) -> str | None:
        if self.stage_stack:
            return self.stage_stack[-1]
        return None

    @property
    def show_build_info(self) -> bool:
        return self.verbosity >= 1

    @property
    def show_tracebacks(self) -> bool:
        return self.verbosity >= 1

    @property
    def show_artifacts(self) -> bool:
        return self.verbosity >= 2

    @property
    def show_stage_internals(self) -> bool:
        return self.verbosity >= 3

    @property
    def show_debug_info(self) -> bool:
        return self.verbosity >= 4

    @contextmanager
    def build(self, activity: str, builder: Builder) -> Iterator[None]:
        now = time.time()
        self.builder_stack.append(builder)
        self.start_build(activity)
        try:
            yield
        finally:
            self.builder_stack.pop()
            self.finish_build(activity, now)

    def start_build(self, activity: str) -> None:
        pass

    def finish_build(self, activity: str, start_time: float) -> None:
        pass

    @contextmanager
    def process_stage(self, stage: str) -> Iterator[None]:
        now = time.time()
        self.stage_stack.append(stage)
        self.enter_stage()
        try:
            yield
        finally:
            self.leave_stage(now)
            self.stage_stack.pop()

    def enter_stage(self) -> None:
        pass

    def leave_stage(self, start_time: float) -> None:
        pass

    def report_failure(self, stage: str, exc_info: ExcInfo) -> None:
        pass

    def report_command(self, command: str, cwd: str) -> None:
        pass

    def report_toolchain(self, toolchain: Toolchain) -> None:
        pass

    def report_pages(self, ssr_routes: list[str], dsg_routes: list[str]) -> None:
        pass

    def report_route(self, rule: RouteRule) -> None:
        pass

    def report_artifact(self, key: str, artifact: Artifact) -> None:
        pass

    def report_override(self, key: str, old: Artifact, new: Artifact) -> None:
        pass

    def report_debug_info(self, key: str, value: object) -> None:
        pass

    def report_generic(self, message: str) -> None:
        pass


class NullReporter(Reporter):
    pass


class _ReportData(TypedDict, total=False):
    activity: str
    artifact: Artifact
    command: str
    cwd: str
    dsg_routes: list[str]
    exc_info: ExcInfo
    key: str
    message: str
    new: Artifact
    old: Artifact
    rule: RouteRule
    ssr_routes: list[str]
    stage: str | None
    toolchain: Toolchain
    value: object


class _Report(NamedTuple):
    event: str
    data: _ReportData


class BufferReporter(Reporter):
    def __init__(self, verbosity: int = 0):
        super().__init__(verbosity)
        self.buffer: list[_Report] = []

    def clear(self) -> None:
        self.buffer.clear()

    def get_events(self, event: str) -> list[_ReportData]:
        return [data for ev, data in self.buffer if ev == event]

    def get_major_events(self) -> list[_Report]:
        return [
            report
            for report in self.buffer
            if report.event not in ("debug-info", "artifact", "route")
        ]

    def get_failures(self) -> list[_ReportData]:
        return self.get_events("failure")

    def _emit(self, _event: str, **extra: Unpack[_ReportData]) -> None:
        self.buffer.append(_Report(_event, extra))

    def start_build(self, activity: str) -> None:
        self._emit("start-build", activity=activity)

    def finish_build(self, activity: str, start_time: float) -> None:
        self._emit("finish-build", activity=activity)

    def enter_stage(self) -> None:
        self._emit("enter-stage", stage=self.current_stage)

    def leave_stage(self, start_time: float) -> None:
        self._emit("leave-stage", stage=self.current_stage)

    def report_failure(self, stage: str, exc_info: ExcInfo) -> None:
        self._emit("failure", stage=stage, exc_info=exc_info)

    def report_command(self, command: str, cwd: str) -> None:
        self._emit("command", command=command, cwd=cwd)

    def report_toolchain(self, toolchain: Toolchain) -> None:
        self._emit("toolchain", toolchain=toolchain)

    def report_pages(self, ssr_routes: list[str], dsg_routes: list[str]) -> None:
        self._emit("pages", ssr_routes=ssr_routes, dsg_routes=dsg_routes)

    def report_route(self, rule: RouteRule) -> None:
        self._emit("route", rule=rule)

    def report_artifact(self, key: str, artifact: Artifact) -> None:
        self._emit("artifact", key=key, artifact=artifact)

    def report_override(self, key: str, old: Artifact, new: Artifact) -> None:
        self._emit("override", key=key, old=old, new=new)

    def report_debug_info(self, key: str, value: object) -> None:
        self._emit("debug-info", key=key, value=value)

    def report_generic(self, message: str) -> None:
        self._emit("generic", message=message)


class CliReporter(Reporter):
    def __init__(self, verbosity: int = 0):
        super().__init__(verbosity=verbosity)
        self.indentation = 0

    def indent(self) -> None:
        self.indentation += 1

    def outdent(self) -> None:
        self.indentation -= 1

    def _write_line(self, text: str) -> None:
        line = f"{'  ' * self.indentation} {text}"
        current_thread = threading.current_thread()
        if current_thread is not threading.main_thread():
            line += style(f" [{current_thread.name}]", fg="cyan")

        click.echo(line)

    def _write_kv_info(self, key: str, value: object) -> None:
        self._write_line(f"{key}: {style(str(value), fg='yellow')}")

    def start_build(self, activity: str) -> None:
        self._write_line(style("Started %s" % activity, fg="cyan"))
        if not self.show_build_info:
            return
        builder = self.builder
        if builder is None:
            return
        self._write_line(style(f"  Project: {builder.project_root}", fg="cyan"))

    def finish_build(self, activity: str, start_time: float) -> None:
        self._write_line(
            style(
                f"Finished {activity} in {time.time() - start_time:.2f} sec",
                fg="cyan",
            )
        )

    def enter_stage(self) -> None:
        if not self.show_build_info:
            return
        self._write_line(f"Stage {style(str(self.current_stage), fg='magenta')}")
        self.indent()

    def leave_stage(self, start_time: float) -> None:
        if self.show_build_info:
            self.outdent()

    def report_failure(self, stage: str, exc_info: ExcInfo) -> None:
        sign = click.style("E", fg="red")
        err = " ".join(
            "".join(traceback.format_exception_only(*exc_info[:2])).splitlines()
        ).strip()
        self._write_line(f"{sign} {stage} ({err})")

        if not self.show_tracebacks:
            return

        tb = traceback.format_exception(*exc_info)
        for line in "".join(tb).splitlines():
            if line.startswith("Traceback "):
                line = click.style(line, fg="red")
            elif line.startswith("  File "):
                line = click.style(line, fg="yellow")
            elif not line.startswith("    "):
                line = click.style(line, fg="red")
            self._write_line("  " + line)

    def report_command(self, command: str, cwd: str) -> None:
        self._write_line(f"Running {style(command, fg='green')}")
        if self.show_stage_internals:
            self._write_kv_info("cwd", cwd)

    def report_toolchain(self, toolchain: Toolchain) -> None:
        if self.show_build_info:
            self._write_kv_info("runtime", toolchain.runtime.runtime)
            self._write_kv_info("package manager", toolchain.package_manager.cli_type)

    def report_pages(self, ssr_routes: list[str], dsg_routes: list[str]) -> None:
        if self.show_build_info:
            self._write_kv_info("SSR pages", len(ssr_routes))
            self._write_kv_info("DSG pages", len(dsg_routes))

    def report_route(self, rule: RouteRule) -> None:
        if self.show_artifacts:
            self._write_line(f"{style('R', fg='cyan')} {rule}")

    def report_artifact(self, key: str, artifact: Artifact) -> None:
        if self.show_artifacts:
            self._write_line(f"{style('A', fg='green')} {key}")

    def report_override(self, key: str, old: Artifact, new: Artifact) -> None:
        sign = style("O", fg="yellow")
        self._write_line(f"{sign} {key} ({type(old).__name__} replaced)")

    def report_debug_info(self, key: str, value: object) -> None:
        if self.show_debug_info:
            self._write_kv_info(key, value)

    def report_generic(self, message: str) -> None:
        self._write_line(style(str(message), fg="cyan"))


null_reporter = NullReporter()


reporter: Reporter  # lie about the type


@LocalProxy  # type: ignore[no-redef]
def reporter() -> Reporter:
    rv = _reporter_stack.top
    if rv is None:
        rv = null_reporter
    return rv
