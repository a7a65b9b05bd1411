import typing as t
from urllib import parse
import io
import json
import wsgiref.types
import types

from enlighten import util

WSGIApplication = wsgiref.types.WSGIApplication

BASE_ENV = {
    'CONTENT_LENGTH': '',
    'GATEWAY_INTERFACE': 'CGI/1.1',
    'REMOTE_ADDR': '127.0.0.1',
    'REMOTE_HOST': 'localhost',
    'SCRIPT_NAME': '',
    'SERVER_NAME': 'TestServer/0',
    'SERVER_PORT': '8080',
    'SERVER_PROTOCOL': 'HTTP/1.1',
    'SERVER_SOFTWARE': 'FakeHTTP/0',
    'wsgi.errors': None,  # out
    'wsgi.input': None,  # in
    'wsgi.multiprocess': False,
    'wsgi.multithread': False,
    'wsgi.run_once': False,
    'wsgi.url_scheme': 'http',
    'wsgi.version': (1, 0),
}

ExcInfo: t.TypeAlias = tuple[type[BaseException],
                             BaseException, types.TracebackType]
OptExcInfo: t.TypeAlias = ExcInfo | tuple[None, None, None]


class RequestFailure(AssertionError):
    """Something went wrong with the WSGI protocol interaction."""


class Request:
    """A fake client request; postdata is sent url-encoded."""

    def __init__(self, url: str,
                 postdata: str | dict | None = None,
                 method: str | None = None,
                 cookies: dict[str, str] | None = None,
                 env: dict | None = None):
        if isinstance(postdata, dict):
            postdata = parse.urlencode(postdata, doseq=True)
        self.postdata = postdata.encode() if postdata else b''
        self.method = method or ('POST' if self.postdata else 'GET')
        path, _, self.query = url.partition('?')
        self.path = parse.unquote(path)
        self.env = BASE_ENV | {
            'REQUEST_METHOD': self.method,
            'PATH_INFO': self.path,
            'QUERY_STRING': self.query,
        }
        if self.postdata:
            self.env['CONTENT_LENGTH'] = str(len(self.postdata))
            self.env['CONTENT_TYPE'] = 'application/x-www-form-urlencoded'
        if cookies:
            self.env['HTTP_COOKIE'] = "; ".join(f"{k}={v}" for k, v in cookies.items())
        self.env.update(env or {})

    def _environ(self):
        env = self.env.copy()
        env['wsgi.input'] = io.BytesIO(self.postdata)
        env['wsgi.errors'] = io.StringIO()
        return env

    def get_response(self, app: WSGIApplication) -> "Response":
        expecting_response = True
        resp_info = {}

        def start_response(s: str, h: list[tuple[str, str]], exc=None):
            if not expecting_response:
                raise RequestFailure("start_response called at an unexpected moment")
            resp_info.update(dict(status=s, headers=h, exc_info=exc))
            return lambda b: None

        out = app(self._environ(), start_response)  # Invoke app handler
        expecting_response = False
        if not resp_info:
            raise RequestFailure("start_response not called before handler returned")
        outlist = list(iter(out))
        # WSGI expects byte type only; no objects, unicode, iterators, etc.
        if not all(type(x) == bytes for x in outlist):  # pylint: disable=unidiomatic-typecheck
            kinds = sorted(set(type(x).__name__ for x in outlist))
            raise RequestFailure(f"Expected only type bytes in response. Got types {kinds}")
        return Response(self, outlist, **resp_info)

    def __repr__(self):
        return _repr_helper(self, ['path', 'query', 'method'])


class Response:
    encoding = 'utf-8'

    def __init__(self, request: Request, output: list[bytes],
                 status: str, headers: list[tuple[str, str]],
                 exc_info: OptExcInfo | None = None):
        self.request = request
        self.output_list = output
        self.headers = headers
        self.exc_info = exc_info
        self.status_line = status
        try:
            code, self.status = status.split(" ", 1)
            self.code = int(code)
        except ValueError as exc:
            raise RequestFailure(f"Invalid status line '{status}'") from exc
        self.headers_normalized = {}
        for k, v in headers:
            k = k.lower()
            if existing := self.headers_normalized.get(k):
                v = ", ".join((existing, v))
            self.headers_normalized[k] = v

    def dump(self):
        head = "\n".join(
            [f"HTTP/1.1 {self.status_line}"] +
            [f"{k}: {v}" for k, v in self.headers] +
            ["", ""]
        )
        return head + self.output_str()

    def output_bytes(self):
        return b''.join(self.output_list)

    def output_str(self, encoding=None):
        return self.output_bytes().decode(encoding or self.encoding)

    def output_json(self):
        _, params = util.parse_header_options(self.headers_normalized.get("content-type", ""))
        return json.loads(self.output_str(params.get('charset', self.encoding)))

    def __repr__(self):
        return _repr_helper(self, ['code', 'request'])


def _repr_helper(inst, attrs):
    kv = {k: getattr(inst, k) for k in attrs}
    vals = [f"{k}={v!r}" for k, v in kv.items() if v]
    return f"{inst.__class__.__qualname__}({', '.join(vals)})"
