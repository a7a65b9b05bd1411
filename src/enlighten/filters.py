import logging
import typing as t

from .context import Context

logger = logging.getLogger("enlighten.filters")

FilterFn = t.Callable[..., t.Any]


class Filters:
    """Callbacks run at fixed points of the request lifecycle."""
    BEFORE_ROUTE = "before_route"
    AFTER_ROUTE = "after_route"
    ON_EXCEPTION = "on_exception"
    HOOKS = (BEFORE_ROUTE, AFTER_ROUTE, ON_EXCEPTION)

    def __init__(self):
        self._registered: dict[str, list[FilterFn]] = {h: [] for h in self.HOOKS}

    def _hook(self, hook: str) -> list[FilterFn]:
        try:
            return self._registered[hook]
        except KeyError:
            raise ValueError(f"unknown filter hook {hook!r}; expected one of {self.HOOKS}") from None

    def register(self, hook: str, func: FilterFn) -> None:
        self._hook(hook).append(func)

    def count(self, hook: str) -> int:
        return len(self._hook(hook))

    def trigger(self, hook: str, context: Context) -> bool:
        """Call every filter for `hook` in order; True if there was at least one.

        Return values of the filters are ignored.
        """
        funcs = self._hook(hook)
        logger.debug("triggering %s (%d filters)", hook, len(funcs))
        for func in funcs:
            context.invoke(func)
        return bool(funcs)
