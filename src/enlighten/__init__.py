"""Enlighten: a small WSGI framework with injected route handlers and filters."""

from .app import Enlighten
from .config import AppConfig
from .context import Context
from .core import (
    BufferTransport,
    CgiTransport,
    FileUpload,
    Headers,
    OutputBuffer,
    Request,
    RequestMethod,
    Response,
    Transport,
)
from .errors import (
    EnlightenError,
    ResponseAlreadySent,
    RoutePatternError,
    TargetResolutionError,
    UnresolvedDependency,
)
from .filters import Filters
from .routing import ClassMethodTarget, ImportTarget, Route, Router

__all__ = [
    "AppConfig",
    "BufferTransport",
    "CgiTransport",
    "ClassMethodTarget",
    "Context",
    "Enlighten",
    "EnlightenError",
    "FileUpload",
    "Filters",
    "Headers",
    "ImportTarget",
    "OutputBuffer",
    "Request",
    "RequestMethod",
    "Response",
    "ResponseAlreadySent",
    "Route",
    "RoutePatternError",
    "Router",
    "TargetResolutionError",
    "Transport",
    "UnresolvedDependency",
]
