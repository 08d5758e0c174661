from __future__ import annotations

from typing import cast


class SiteshipException(Exception):
    def __init__(self, message: str | None = None):
        super().__init__(message)

    @property
    def message(self) -> str:
        return cast(str, self.args[0])

    def to_json(self) -> dict[str, str]:
        return {
            "type": self.__class__.__name__,
            "message": self.message,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class ConfigurationError(SiteshipException):
    """Project or route configuration is unusable."""


class StaticOutputError(ConfigurationError):
    """The static output directory of the build is missing or unreadable."""


class CommandError(SiteshipException):
    def __init__(self, message: str, command: str, returncode: int):
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class BuildFailed(SiteshipException):
    """Raised by the builder for any fatal condition.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage

    def to_json(self) -> dict[str, str]:
        return {**super().to_json(), "stage": self.stage}
