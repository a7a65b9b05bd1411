import copy
import functools
import importlib
import logging
import re
import typing as t
from dataclasses import dataclass, field

from . import util
from .context import Context
from .core import Request
from .errors import TargetResolutionError

logger = logging.getLogger("enlighten.routing")


@dataclass(frozen=True)
class ClassMethodTarget:
    """`"Controller@method"`: build the controller per dispatch, call `method`."""
    class_ref: type | str
    method_name: str

    @classmethod
    def parse(cls, val: str) -> t.Self:
        class_ref, _, method_name = val.rpartition("@")
        if not class_ref or not method_name:
            raise TargetResolutionError(f"expected 'Class@method', got {val!r}")
        return cls(class_ref, method_name)


@dataclass(frozen=True)
class ImportTarget:
    """A callable named by its dotted import path."""
    dotted_name: str


AnyTarget: t.TypeAlias = t.Callable[..., t.Any] | ClassMethodTarget | ImportTarget


def as_target(target: t.Any) -> AnyTarget:
    """Normalize what was passed to route() into one of the target kinds."""
    if isinstance(target, (ClassMethodTarget, ImportTarget)):
        return target
    if isinstance(target, str):
        return ClassMethodTarget.parse(target) if "@" in target else ImportTarget(target)
    if callable(target):
        return target
    raise TypeError(f"route target must be callable or str, not {type(target).__name__}")


def import_name(dotted: str) -> t.Any:
    """Import "pkg.mod.attr" (or "pkg.mod:attr") and return the attribute."""
    module_name, sep, attr = dotted.partition(":")
    if not sep:
        module_name, _, attr = dotted.rpartition(".")
    if not module_name or not attr:
        raise TargetResolutionError(f"{dotted!r} is not a dotted import path")
    try:
        obj = importlib.import_module(module_name)
        for part in attr.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as ex:
        raise TargetResolutionError(f"cannot import {dotted!r}") from ex
    return obj


@dataclass
class Route:
    """A pattern bound to a target, optionally limited to one HTTP method."""
    pattern: str
    target: AnyTarget
    method: str | None = None

    def __post_init__(self):
        self.target = as_target(self.target)

    @functools.cached_property
    def regex(self) -> re.Pattern[str]:
        return util.path_to_pattern(self.pattern)

    def require_method(self, method: str) -> t.Self:
        self.method = method
        return self

    def matches_method(self, method: str) -> bool:
        return self.method is None or self.method == method

    def match(self, path: str) -> dict[str, str] | None:
        """Named captures when `path` matches the whole pattern, else None."""
        if m := self.regex.fullmatch(path):
            return m.groupdict()
        return None


@dataclass
class Router:
    """Ordered routes; the first whose method and pattern both match wins."""
    context: Context | None = None
    subdirectory: str = ""
    routes: list[Route] = field(default_factory=list)
    controllers: dict[str, type] = field(default_factory=dict)

    def register(self, route: Route) -> Route:
        self.routes.append(route)
        return route

    def register_controller(self, cls: type, name: str | None = None) -> type:
        self.controllers[name or cls.__name__] = cls
        return cls

    def set_subdirectory(self, subdirectory: str) -> None:
        self.subdirectory = subdirectory

    def set_context(self, context: Context) -> None:
        self.context = context

    def bind(self, context: Context) -> t.Self:
        """Copy sharing routes and controllers, but using `context`."""
        router = copy.copy(self)
        router.context = context
        return router

    def _context(self) -> Context:
        if self.context is None:
            self.context = Context()
        return self.context

    # Resolution -----------------------------------------------------------

    def effective_path(self, request: Request) -> str | None:
        """Request path minus the subdirectory; None if outside it."""
        path = request.path
        if not self.subdirectory:
            return path
        if not path.startswith(self.subdirectory):
            return None
        return path[len(self.subdirectory):]

    def route(self, request: Request) -> Route | None:
        context = self._context()
        context.set_route_values({})
        if (path := self.effective_path(request)) is None:
            logger.debug("%s is outside subdirectory %r", request.path, self.subdirectory)
            return None
        for route in self.routes:
            if not route.matches_method(request.method):
                continue
            if (values := route.match(path)) is not None:
                logger.debug("%s %s matched %r", request.method, path, route.pattern)
                context.set_route_values(values)
                context.register_instance(route)
                return route
        logger.debug("%s %s matched no route", request.method, path)
        return None

    # Dispatch -------------------------------------------------------------

    def resolve_target(self, route: Route) -> t.Callable[..., t.Any]:
        target = route.target
        if isinstance(target, ClassMethodTarget):
            controller = self._context().construct(self._controller_class(target.class_ref))
            try:
                return getattr(controller, target.method_name)
            except AttributeError as ex:
                raise TargetResolutionError(
                    f"{type(controller).__name__} has no method {target.method_name!r}") from ex
        if isinstance(target, ImportTarget):
            func = import_name(target.dotted_name)
            if not callable(func):
                raise TargetResolutionError(f"{target.dotted_name!r} is not callable")
            return func
        return target

    def _controller_class(self, class_ref: type | str) -> type:
        if isinstance(class_ref, type):
            return class_ref
        if cls := self.controllers.get(class_ref):
            return cls
        if "." in class_ref or ":" in class_ref:
            cls = import_name(class_ref)
            if isinstance(cls, type):
                return cls
        raise TargetResolutionError(f"unknown controller {class_ref!r}")

    def dispatch(self, route: Route, request: Request) -> t.Any:
        """Call the route's target with context-resolved arguments."""
        context = self._context()
        context.register_instance(request)
        func = self.resolve_target(route)
        return context.invoke(func)
