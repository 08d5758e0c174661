from siteship.builder import Builder
from siteship.exception import BuildFailed
from siteship.manifest import OutputManifest

__all__ = ["Builder", "BuildFailed", "OutputManifest"]
