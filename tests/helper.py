from tests.util import wsgi
from tests import _config

import typing as t
import enlighten
from dataclasses import dataclass
from _pytest.assertion import util as _pytest_util


@dataclass(slots=True)
class _Fault:
    key: str
    want: t.Any
    got: t.Any

    def __str__(self):
        return f"{self.key}: expected={self.want!r}, got={self.got!r}"


def text_handler(content: str):
    """Route target that just returns `content`."""
    def handler():
        return content
    return handler


def make_app(*routes: tuple[str, t.Any], **config) -> enlighten.Enlighten:
    app = enlighten.Enlighten(enlighten.AppConfig(**config))
    for pattern, target in routes:
        app.route(pattern, target)
    return app


def run(app: enlighten.Enlighten, method: str = "GET", uri: str = "/",
        **request_fields) -> tuple[enlighten.Response, enlighten.BufferTransport]:
    """Drive one start() call without WSGI; returns (response, transport)."""
    transport = enlighten.BufferTransport()
    app.set_request(enlighten.Request(method=method, uri=uri, **request_fields))
    app.set_transport(transport)
    return app.start(), transport


def assert_response(resp: wsgi.Response,
                    code: int,
                    content: None | str | bytes | dict | list = None,
                    headers: None | dict[str, str] = None,
                    ):
    __tracebackhide__ = True
    faults = []

    if code != resp.code:
        faults.append(_Fault("Response.code", code, resp.code))

    if content is not None:
        match content:
            case bytes():
                resp_content = resp.output_bytes()
            case str():
                resp_content = resp.output_str()
            case dict() | list():
                resp_content = resp.output_json()
            case _:
                raise ValueError(f"content is unknown type: ({type(content)})")
        if content != resp_content:
            faults.append(_Fault("Response.content", content, resp_content))

    got_headers = resp.headers_normalized
    for k, want in (headers or {}).items():
        if want != (got := got_headers.get(k.lower())):
            faults.append(_Fault(f"Response.header[{k}]", want, got))

    if faults:
        if len(faults) == 1 and not _config.verbose:
            msg = str(faults[0])
        else:
            details = [repr(resp), *[f">> {f}" for f in faults]]
            if _config.verbose:
                details.append(">-----RESPONSE DUMP-----")
                details.extend(f">|{line}" for line in resp.dump().splitlines())
            msg = "\n".join(details)
        raise AssertionError(_pytest_util.format_explanation(msg))


def assert_produces_response(
        app: wsgi.WSGIApplication,
        url: str,
        code: int,
        content: str | bytes | dict | list | None = None,
        headers: None | dict[str, str] = None,
        **argv) -> wsgi.Response:
    __tracebackhide__ = True
    got = wsgi.Request(url, **argv).get_response(app)
    assert_response(got, code, content, headers)
    return got
