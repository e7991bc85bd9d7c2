"""Error taxonomy shared by the catalog, renderer, registry and HTTP layers."""

from pathlib import Path
from typing import Optional, Union


class FlightsUIError(Exception):
    """Base class for errors raised by the flights UI server."""


class ClientError(FlightsUIError):
    """The caller sent something malformed. Surfaced as a 4xx, never retried."""


class NotFoundError(FlightsUIError):
    """A session, component or asset the caller named does not exist."""


class AssetLoadError(FlightsUIError):
    """A template or component bundle could not be read."""

    def __init__(self, path: Union[str, Path], reason: Optional[str] = None):
        self.path = str(path)
        self.reason = reason
        message = f"Unable to load asset '{self.path}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ToolExecutionError(FlightsUIError):
    """A tool handler failed while producing its response."""


class OutputValidationError(FlightsUIError):
    """A tool produced structured content that does not match its output schema."""
