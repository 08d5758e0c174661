from __future__ import annotations

import json
import os

import click

from siteship.builder import Builder
from siteship.builder import ConcurrencyConfig
from siteship.config import Config
from siteship.exception import BuildFailed
from siteship.reporter import CliReporter
from siteship.reporter import reporter


@click.group()
@click.version_option(package_name="siteship", prog_name="siteship")
def cli() -> None:
    """Assemble a deployment manifest from a static site build."""


@cli.command("build")
@click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="The project directory.",
)
@click.option(
    "-O",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Where to write the manifest.  Defaults to .siteship/manifest.json "
    "in the project.",
)
@click.option("--install-command", default=None, help="Override the install command.")
@click.option("--build-command", default=None, help="Override the build command.")
@click.option(
    "--skip-build",
    is_flag=True,
    help="Only assemble the manifest from an existing build.",
)
@click.option(
    "-j",
    "--jobs",
    type=click.IntRange(min=1),
    default=1,
    help="Assemble artifacts with this many worker threads.",
)
@click.option("-v", "--verbose", "verbosity", count=True, help="Increase verbosity.")
@click.pass_context
def build_cmd(
    ctx: click.Context,
    project: str,
    output_path: str | None,
    install_command: str | None,
    build_command: str | None,
    skip_build: bool,
    jobs: int,
    verbosity: int,
) -> None:
    """Build the site and write its deployment manifest."""
    config = Config.for_project(project)
    config.override(install_command=install_command, build_command=build_command)
    concurrency_config = ConcurrencyConfig(max_workers=jobs) if jobs > 1 else None
    builder = Builder(project, config=config, concurrency_config=concurrency_config)

    with CliReporter(verbosity=verbosity):
        try:
            if skip_build:
                toolchain = builder.run_stage("toolchain", builder.resolve_toolchain)
                manifest = builder.assemble(toolchain.runtime)
            else:
                manifest = builder.build()
        except BuildFailed as e:
            click.secho(f"Error: {e.message}", fg="red", err=True)
            ctx.exit(1)

        if output_path is None:
            output_path = os.path.join(builder.meta_path, "manifest.json")
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(manifest.to_json(), f, indent=2)
            f.write("\n")
        reporter.report_generic(f"Wrote manifest to {output_path}")


main = cli
