"""Enlighten exception hierarchy.

Shared by the router, context and application so every module raises
and catches the same types.
"""

from dataclasses import dataclass


class EnlightenError(Exception):
    """Base for all enlighten-specific errors."""


class RoutePatternError(EnlightenError, ValueError):
    """A route pattern could not be compiled."""


class TargetResolutionError(EnlightenError, LookupError):
    """A route target string does not name anything callable."""


class ResponseAlreadySent(EnlightenError, RuntimeError):  # noqa: N818
    """Response.send() was called a second time."""


@dataclass(eq=False)
class UnresolvedDependency(EnlightenError, LookupError):  # noqa: N818
    """No registered instance, named value or default fits a parameter.

    Raised while building arguments for a route target, filter or
    controller constructor.
    """
    callable_name: str
    parameter: str
    annotation: object = None

    def __str__(self) -> str:
        wanted = f": {getattr(self.annotation, '__name__', self.annotation)}" \
            if self.annotation is not None else ""
        return f"cannot resolve parameter '{self.parameter}{wanted}' of {self.callable_name}"
