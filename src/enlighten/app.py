import http
import logging
import socketserver
import sys
import typing as t
import wsgiref.simple_server
import wsgiref.types

from .config import AppConfig
from .context import Context
from .core import BufferTransport, CgiTransport, OutputBuffer, Request, RequestMethod, Response, Transport
from .filters import FilterFn, Filters
from .routing import Route, Router

logger = logging.getLogger("enlighten.app")

_O = t.Optional
_F = t.TypeVar("_F", bound=t.Callable[..., t.Any])
_Wrapper = t.Callable[[_F], _F]


class Enlighten:
    """One application instance: routes, filters and a single request lifecycle.

    Call start() once per request. As a WSGI application every request gets
    its own instance sharing this one's routes, filters and config.
    """

    def __init__(self, config: _O[AppConfig] = None):
        self.config = config or AppConfig()
        self.request: Request | None = None
        self.response: Response | None = None
        self.router: Router | None = None
        self.transport: Transport = CgiTransport()
        self.filters = Filters()
        self.context = Context()
        self._output: OutputBuffer | None = None
        self.context.register_instance(self)
        self.context.register_instance(self.config)

    # Setup ---------------------------------------------------------------

    def set_request(self, request: Request) -> None:
        self.request = request
        self.context.register_instance(request)

    def set_router(self, router: Router) -> None:
        self.router = router
        self.router.set_context(self.context)
        self.context.register_instance(router)

    def set_transport(self, transport: Transport) -> None:
        self.transport = transport

    def _bootstrap_router(self) -> Router:
        if self.router is None:
            self.set_router(Router(subdirectory=self.config.subdirectory))
        return t.cast(Router, self.router)

    def _before_start(self) -> None:
        if self.request is None:
            self.set_request(Request.from_environ())
        self._bootstrap_router()

    # Routes ---------------------------------------------------------------

    def _register_route(self, pattern: str, target: t.Any, method: _O[str]) -> Route:
        route = Route(pattern, target)
        if method is not None:
            route.require_method(method)
        return self._bootstrap_router().register(route)

    @t.overload
    def route(self, pattern: str, target: None = None, method: _O[str] = None) -> _Wrapper: ...
    @t.overload
    def route(self, pattern: str, target: t.Any, method: _O[str] = None) -> Route: ...

    def route(self, pattern, target=None, method=None):
        """Register `target` for `pattern`; without a target, return a decorator."""
        if target is not None:
            return self._register_route(pattern, target, method)

        def decorator(func):
            self._register_route(pattern, func, method)
            return func
        return decorator

    def get(self, pattern, target=None): return self.route(pattern, target, RequestMethod.GET)
    def post(self, pattern, target=None): return self.route(pattern, target, RequestMethod.POST)
    def put(self, pattern, target=None): return self.route(pattern, target, RequestMethod.PUT)
    def patch(self, pattern, target=None): return self.route(pattern, target, RequestMethod.PATCH)
    def head(self, pattern, target=None): return self.route(pattern, target, RequestMethod.HEAD)
    def options(self, pattern, target=None): return self.route(pattern, target, RequestMethod.OPTIONS)
    def delete(self, pattern, target=None): return self.route(pattern, target, RequestMethod.DELETE)

    def set_subdirectory(self, subdirectory: str) -> t.Self:
        """Treat every route as living under `subdirectory` (no trailing slash)."""
        self._bootstrap_router().set_subdirectory(subdirectory)
        return self

    def register_controller(self, cls: type, name: _O[str] = None) -> type:
        """Make `cls` available to "Name@method" targets."""
        return self._bootstrap_router().register_controller(cls, name)

    # Filters --------------------------------------------------------------

    def before(self, func: FilterFn) -> FilterFn:
        self.filters.register(Filters.BEFORE_ROUTE, func)
        return func

    def after(self, func: FilterFn) -> FilterFn:
        self.filters.register(Filters.AFTER_ROUTE, func)
        return func

    def on_exception(self, func: FilterFn) -> FilterFn:
        self.filters.register(Filters.ON_EXCEPTION, func)
        return func

    # Request Handling ----------------------------------------------------

    def _new_response(self, code: int) -> Response:
        self.response = Response(code=code, content_type=self.config.content_type,
                                 charset=self.config.charset)
        self.context.register_instance(self.response)
        return self.response

    def start(self) -> Response:
        """Handle the request and send the response; returns what was sent.

        Exceptions go to the on_exception filters. With none registered the
        exception is re-raised, after the (500) response has been sent.
        Capturing of stdout ends before the response is sent.
        """
        self._before_start()
        request = t.cast(Request, self.request)
        output = self._output = OutputBuffer(self.config.charset)
        self.context.register_instance(output)
        response = self._new_response(http.HTTPStatus.OK)
        try:
            with output.capture(stdout=self.config.capture_stdout):
                try:
                    self.filters.trigger(Filters.BEFORE_ROUTE, self.context)
                    if (route := t.cast(Router, self.router).route(request)) is not None:
                        self.context.register_instance(route)
                        response.set_response_code(http.HTTPStatus.OK)
                        self.dispatch(route)
                    else:
                        response.set_response_code(http.HTTPStatus.NOT_FOUND)
                    self.filters.trigger(Filters.AFTER_ROUTE, self.context)
                except Exception as ex:
                    output.clear()
                    response = self._new_response(http.HTTPStatus.INTERNAL_SERVER_ERROR)
                    self.context.register_instance(ex)
                    if not self.filters.trigger(Filters.ON_EXCEPTION, self.context):
                        logger.debug("no exception filters; re-raising %r", ex)
                        raise
                    logger.debug("exception %r handled by filters", ex)
                finally:
                    response = t.cast(Response, self.response)
                    response.append_body(output.getvalue())
                    if request.is_head():
                        response.set_body("")
        finally:
            self._output = None
            response.send(self.transport)
        return response

    def dispatch(self, route: Route) -> t.Any:
        """Run `route`'s target. Inside start(), its result joins the body."""
        self._before_start()
        result = t.cast(Router, self.router).dispatch(route, t.cast(Request, self.request))
        if self._output is not None:
            self._output.write_result(result)
        return result

    # Server Running ----------------------------------------------------

    def _for_request(self, request: Request, transport: Transport) -> "Enlighten":
        """A fresh instance for one request, sharing routes, filters and config."""
        app = type(self)(self.config)
        app.filters = self.filters
        app.set_router(self._bootstrap_router().bind(app.context))
        app.set_request(request)
        app.set_transport(transport)
        return app

    def __call__(self, environ: wsgiref.types.WSGIEnvironment,
                 start_response: wsgiref.types.StartResponse) -> t.Iterable[bytes]:
        """WSGI entrypoint."""
        transport = BufferTransport()
        app = self._for_request(Request.from_wsgi(environ), transport)
        exc_info = None
        try:
            app.start()
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("unhandled exception for %s %s",
                             environ.get("REQUEST_METHOD"), environ.get("PATH_INFO"))
            exc_info = sys.exc_info()
        if transport.status is None:  # failed before anything was sent
            transport.status = Response(code=http.HTTPStatus.INTERNAL_SERVER_ERROR).status_line()
        start_response(transport.status, transport.headers, exc_info)
        return [transport.body]

    def make_server(self, port: _O[int] = None, host: _O[str] = None, threaded: _O[bool] = None):
        cfg = self.config
        svr = wsgiref.simple_server.WSGIServer
        if cfg.threaded if threaded is None else threaded:  # Add threading mix-in
            svr = type('ThreadedServer', (socketserver.ThreadingMixIn, svr),
                       {'daemon_threads': True})
        return wsgiref.simple_server.make_server(
            cfg.host if host is None else host, cfg.port if port is None else port,
            self, server_class=svr)

    def serve_forever(self, port: _O[int] = None, host: _O[str] = None, threaded: _O[bool] = None):
        logging.basicConfig(level=self.config.log_level.upper())
        server = self.make_server(port, host, threaded)
        logger.info("serving on %s:%s -- ctrl+c to quit", *server.server_address[:2])
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
