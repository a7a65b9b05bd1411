"""Instance and value registry used to call route targets and filters.

A callable's parameters are filled, in order of preference, by:

1. a registered instance of the annotated type,
2. a named value with the parameter's name (route captures first, then
   values registered with `register_value`),
3. the parameter's default.

Anything else raises `UnresolvedDependency`.
"""

import inspect
import types
import typing as t

from .errors import UnresolvedDependency

_T = t.TypeVar("_T")
_EMPTY = inspect.Parameter.empty
_MISSING = object()


class Context:
    def __init__(self):
        self._instances: dict[type, t.Any] = {}
        self._values: dict[str, t.Any] = {}
        self._route_values: dict[str, str] = {}

    # Registration ---------------------------------------------------------

    def register_instance(self, value: t.Any) -> None:
        """Store `value` under its runtime type, replacing any earlier one."""
        self._instances.pop(type(value), None)  # keep dict order == recency
        self._instances[type(value)] = value

    def register_value(self, name: str, value: t.Any) -> None:
        self._values[name] = value

    def set_route_values(self, values: t.Mapping[str, str]) -> None:
        """Replace the values captured by the last routing decision."""
        self._route_values = dict(values)

    @property
    def route_values(self) -> dict[str, str]:
        return dict(self._route_values)

    # Lookup ---------------------------------------------------------------

    def instance(self, cls: type[_T]) -> _T | None:
        """Exact-type instance, else the latest registered instance of a subclass."""
        if cls in self._instances:
            return self._instances[cls]
        for value in reversed(self._instances.values()):
            if isinstance(value, cls):
                return value
        return None

    def value(self, name: str, default: t.Any = None) -> t.Any:
        if name in self._route_values:
            return self._route_values[name]
        return self._values.get(name, default)

    def resolve(self, param: inspect.Parameter, owner: str = "<callable>") -> t.Any:
        if _is_class(param.annotation):
            if (found := self.instance(param.annotation)) is not None:
                return found
        if (found := self.value(param.name, _MISSING)) is not _MISSING:
            return found
        if param.default is not _EMPTY:
            return param.default
        annotation = None if param.annotation is _EMPTY else param.annotation
        raise UnresolvedDependency(owner, param.name, annotation)

    # Invocation -----------------------------------------------------------

    def arguments_for(self, func: t.Callable[..., t.Any]) -> tuple[list[t.Any], dict[str, t.Any]]:
        """Positional and keyword arguments that satisfy `func`'s signature."""
        owner = getattr(func, "__qualname__", repr(func))
        args, kwargs = [], {}
        for param in _parameters(func):
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            val = self.resolve(param, owner)
            if param.kind == param.KEYWORD_ONLY:
                kwargs[param.name] = val
            else:
                args.append(val)
        return args, kwargs

    def invoke(self, func: t.Callable[..., _T]) -> _T:
        args, kwargs = self.arguments_for(func)
        return func(*args, **kwargs)

    def construct(self, cls: type[_T]) -> _T:
        """Instantiate `cls` with constructor arguments resolved like invoke()."""
        return self.invoke(cls)


def _is_class(annotation) -> bool:
    return (isinstance(annotation, type) and annotation is not _EMPTY
            and not isinstance(annotation, types.GenericAlias))


def _parameters(func) -> list[inspect.Parameter]:
    try:
        sig = inspect.signature(func, eval_str=True)
    except NameError:  # annotation names only imported for type checking
        sig = inspect.signature(func)
    except (TypeError, ValueError):  # builtins and classes without a signature
        return []
    return list(sig.parameters.values())
