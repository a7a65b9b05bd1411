import contextlib
import http
import http.cookies
import io
import os
import sys
import typing as t
import urllib.parse
import wsgiref.headers
from dataclasses import InitVar, dataclass, field

from . import util
from .errors import ResponseAlreadySent

Headers = wsgiref.headers.Headers
_AnyHeaders: t.TypeAlias = dict[str, str] | list[tuple[str, str]] | Headers


class RequestMethod:
    """HTTP method names. Comparisons against these are case-sensitive."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"
    DELETE = "DELETE"
    ALL = (GET, POST, PUT, PATCH, HEAD, OPTIONS, DELETE)


@dataclass(frozen=True)
class FileUpload:
    """One uploaded file as described by the server's upload map."""
    original_name: str
    type: str
    temporary_path: str
    error: int
    size: int = 0

    REQUIRED: t.ClassVar[tuple[str, ...]] = ("name", "type", "tmp_name", "error")

    @classmethod
    def from_entry(cls, entry: t.Mapping[str, t.Any]) -> t.Self | None:
        """Build from a {name, type, tmp_name, error, size} entry; None if malformed."""
        if not isinstance(entry, t.Mapping) or any(k not in entry for k in cls.REQUIRED):
            return None
        try:
            error = int(entry["error"])
        except (TypeError, ValueError):
            return None
        return cls(str(entry["name"]), str(entry["type"]), str(entry["tmp_name"]),
                   error, _size_or_zero(entry.get("size")))

    @classmethod
    def collect(cls, files: t.Mapping[str, t.Any]) -> dict[str, t.Self]:
        uploads = {}
        for key, entry in files.items():
            if isinstance(entry, cls) or (entry := cls.from_entry(entry)):
                uploads[key] = entry
        return uploads

    def stored_size(self) -> int:
        """Size of the file at temporary_path, 0 if it isn't there."""
        try:
            return os.path.getsize(self.temporary_path)
        except OSError:
            return 0


def _size_or_zero(val: t.Any) -> int:
    try:
        size = int(val)
    except (TypeError, ValueError):
        return 0
    return size if size >= 0 else 0


@dataclass
class Request:
    """Everything the client sent. Defaults to `GET /` with no data."""
    method: str = RequestMethod.GET
    uri: str = "/"
    query: dict[str, t.Any] = field(default_factory=dict)
    post: dict[str, t.Any] = field(default_factory=dict)
    environ: dict[str, t.Any] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    files: dict[str, FileUpload] = field(default_factory=dict)
    headers: Headers = field(default_factory=lambda: Headers([]))

    def __post_init__(self):
        self.files = FileUpload.collect(self.files)

    @classmethod
    def from_environ(cls, environ: t.Mapping[str, t.Any] | None = None) -> t.Self:
        """Extract a request from a CGI or WSGI environment (default: os.environ)."""
        from_process = environ is None
        if environ is None:
            environ = os.environ
        environ = dict(environ)
        if raw_uri := environ.get("REQUEST_URI"):
            path, sep, qs = raw_uri.partition("?")
            path = urllib.parse.unquote(path)
            if not sep:
                qs = environ.get("QUERY_STRING", "")
        else:
            path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
            qs = environ.get("QUERY_STRING", "")
        uri = (path or "/") + (f"?{qs}" if qs else "")

        hlist = [(k[5:].replace("_", "-").title(), v)
                 for k, v in environ.items() if k.startswith("HTTP_")]
        for k in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            if environ.get(k):
                hlist.append((k.replace("_", "-").title(), str(environ[k])))

        return cls(
            method=environ.get("REQUEST_METHOD", RequestMethod.GET),
            uri=uri,
            query=util.parse_query(qs),
            post=cls._read_post(environ, environ.get("wsgi.input"), from_process),
            environ=environ,
            cookies=_parse_cookies(environ.get("HTTP_COOKIE", "")),
            headers=Headers(hlist),
        )

    from_wsgi = from_environ

    @staticmethod
    def _read_post(environ: dict[str, t.Any], stream: t.BinaryIO | None,
                   from_process: bool = False) -> dict[str, t.Any]:
        ct, opts = util.parse_header_options(environ.get("CONTENT_TYPE", ""))
        length = _size_or_zero(environ.get("CONTENT_LENGTH"))
        if not length or ct.lower() != "application/x-www-form-urlencoded":
            return {}
        if stream is None:
            if not from_process:
                return {}
            stream = sys.stdin.buffer  # CGI body
        body = stream.read(length).decode(opts.get("charset", "utf-8"), "replace")
        return util.parse_query(body)

    # URI ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self.uri.partition("?")[0]

    def request_uri(self, with_query: bool = False) -> str:
        return self.uri if with_query else self.path

    # Data accessors -------------------------------------------------------

    def query_param(self, key: str, default: t.Any = None) -> t.Any:
        return self.query.get(key, default)

    def query_params(self) -> dict[str, t.Any]:
        return self.query

    def post_value(self, key: str, default: t.Any = None) -> t.Any:
        """Posted scalar field; array-valued fields give `default`."""
        val = self.post.get(key, default)
        return default if isinstance(val, (list, dict)) else val

    def post_array(self, key: str, default: t.Any = None) -> t.Any:
        """Posted array field ("key[]=..." in the form); scalars give `default`."""
        val = self.post.get(key)
        return val if isinstance(val, (list, dict)) else default

    def post_data(self) -> dict[str, t.Any]:
        return self.post

    def environment(self, key: str, default: t.Any = None) -> t.Any:
        return self.environ.get(key, default)

    def environment_data(self) -> dict[str, t.Any]:
        return self.environ

    def cookie(self, key: str, default: str | None = None) -> str | None:
        return self.cookies.get(key, default)

    def cookie_data(self) -> dict[str, str]:
        return self.cookies

    def file_uploads(self) -> dict[str, FileUpload]:
        return self.files

    def set_file_data(self, files: t.Mapping[str, t.Any]) -> None:
        self.files = FileUpload.collect(files)

    # Method predicates ----------------------------------------------------

    def is_get(self): return self.method == RequestMethod.GET
    def is_post(self): return self.method == RequestMethod.POST
    def is_put(self): return self.method == RequestMethod.PUT
    def is_patch(self): return self.method == RequestMethod.PATCH
    def is_head(self): return self.method == RequestMethod.HEAD
    def is_options(self): return self.method == RequestMethod.OPTIONS
    def is_delete(self): return self.method == RequestMethod.DELETE


def _parse_cookies(val: str) -> dict[str, str]:
    jar = http.cookies.SimpleCookie()
    try:
        jar.load(val)
    except http.cookies.CookieError:
        return {}
    return {k: morsel.value for k, morsel in jar.items()}


@t.runtime_checkable
class Transport(t.Protocol):
    """Whatever carries a finished response back to the client."""
    def send(self, status: str, headers: list[tuple[str, str]], body: bytes) -> None: ...


@dataclass
class BufferTransport:
    """Keeps what was sent; WSGI hands it to start_response afterwards."""
    status: str | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    sends: int = 0

    def send(self, status: str, headers: list[tuple[str, str]], body: bytes) -> None:
        self.status, self.headers, self.body = status, list(headers), body
        self.sends += 1


@dataclass
class CgiTransport:
    """Writes a CGI response ("Status:" line, headers, body) to a stream."""
    stream: t.BinaryIO | None = None

    def send(self, status: str, headers: list[tuple[str, str]], body: bytes) -> None:
        out = self.stream or sys.stdout.buffer
        head = "".join(f"{k}: {v}\r\n" for k, v in [("Status", status), *headers])
        out.write(head.encode("latin-1") + b"\r\n" + body)
        out.flush()


@dataclass(kw_only=True)
class Response:
    """Status, headers and body; sent exactly once through a Transport."""
    code: int = http.HTTPStatus.OK
    content_type: str | None = "text/html"
    charset: str = "utf-8"
    body: str = ""
    h: InitVar[_AnyHeaders | None] = None
    headers: Headers = field(init=False, default=None)  # type:ignore
    sent: bool = field(init=False, default=False)

    def __post_init__(self, h: _AnyHeaders | None):
        self.headers = Headers(
            list(h.items()) if isinstance(h, dict) or isinstance(h, Headers)
            else h or []
        )

    def set_response_code(self, code: int) -> None:
        self.code = int(code)

    def append_body(self, text: str) -> None:
        self.body += text

    def set_body(self, text: str) -> None:
        self.body = text

    def add_header(self, name: str, value: str, **params: str | None) -> None:
        self.headers.add_header(name, value, **params)

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def _http_status(self) -> str:
        """Get the HTTP status text for the current response code."""
        try:
            return http.HTTPStatus(self.code).phrase
        except ValueError:
            return "StatusPhraseUnknown"

    def status_line(self) -> str:
        return f"{int(self.code)} {self._http_status()}"

    def _apply_default_headers(self):
        if self.content_type:
            cs = f";charset={self.charset}" if self.charset else ""
            self.headers.setdefault('Content-Type', f"{self.content_type}{cs}")

    def send(self, transport: Transport) -> None:
        if self.sent:
            raise ResponseAlreadySent(f"response {self.status_line()!r} was already sent")
        self._apply_default_headers()
        self.sent = True
        transport.send(self.status_line(), self.headers.items(), self.body.encode(self.charset))


class OutputBuffer(io.StringIO):
    """Collects body text written while a request is being handled."""

    def __init__(self, charset: str = "utf-8"):
        super().__init__()
        self.charset = charset

    def write_result(self, value: t.Any) -> None:
        """Append a handler's return value; None adds nothing, bytes use `charset`."""
        if value is None:
            return
        if isinstance(value, bytes):
            value = value.decode(self.charset)
        self.write(value if isinstance(value, str) else str(value))

    def clear(self) -> None:
        self.seek(0)
        self.truncate()

    @contextlib.contextmanager
    def capture(self, stdout: bool = False) -> t.Iterator[t.Self]:
        """Scope during which output lands here; optionally grabs sys.stdout too."""
        with contextlib.ExitStack() as stack:
            if stdout:
                stack.enter_context(contextlib.redirect_stdout(self))
            yield self
