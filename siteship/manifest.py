from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any
from typing import Iterable
from typing import Mapping
from typing import TYPE_CHECKING

from siteship.reporter import reporter

if TYPE_CHECKING:
    from siteship.artifacts import Artifact
    from siteship.routing import RouteRule


def merge_outputs(*artifact_sets: Mapping[str, Artifact]) -> dict[str, Artifact]:
    """Merge artifact sets in the given order.

    On a key collision the artifact from the later set wins.
    """
    output: dict[str, Artifact] = {}
    for artifacts in artifact_sets:
        for key, artifact in artifacts.items():
            old = output.get(key)
            if old is not None and old is not artifact:
                reporter.report_override(key, old, artifact)
            output[key] = artifact
    return output


@dataclass(frozen=True)
class OutputManifest:
    output: Mapping[str, Artifact]
    routes: tuple[RouteRule, ...]

    def to_json(self) -> dict[str, Any]:
        return {
            "output": {
                key: artifact.to_json() for key, artifact in self.output.items()
            },
            "routes": [rule.to_json() for rule in self.routes],
        }


def assemble_manifest(
    static: Mapping[str, Artifact],
    render: Mapping[str, Artifact],
    api: Mapping[str, Artifact],
    page_data: Mapping[str, Artifact],
    routes: Iterable[RouteRule],
) -> OutputManifest:
    # The page-data function is merged last so that no static file or
    # API route can shadow it.
    output = merge_outputs(static, render, api, page_data)
    for key, artifact in output.items():
        reporter.report_artifact(key, artifact)
    return OutputManifest(output=MappingProxyType(output), routes=tuple(routes))
