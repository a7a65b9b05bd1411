import re
import typing as t
import urllib.parse

from .errors import RoutePatternError

# pylint: disable=missing-function-docstring

DEFAULT_FRAGMENT = r"[^/]+"
_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def _pattern_tokens(val: str) -> t.Iterator[tuple[str, str | None, str | None]]:
    """Yield (literal, name, fragment) triples from a route pattern.

    Braces inside a fragment must balance ("{tel:\\d{3}-\\d{4}}") and a
    backslash escapes the next character, so "\\}" never closes a token.
    """
    i, start = 0, 0
    while (i := val.find("{", i)) >= 0:
        depth, j = 1, i + 1
        while j < len(val) and depth:
            if val[j] == "\\":
                j += 2
                continue
            depth += {"{": 1, "}": -1}.get(val[j], 0)
            j += 1
        if depth:
            raise RoutePatternError(f"unterminated '{{' at {i} in {val!r}")
        name, _, fragment = val[i + 1:j - 1].partition(":")
        if not _NAME_RE.fullmatch(name):
            raise RoutePatternError(f"bad variable name {name!r} in {val!r}")
        yield val[start:i], name, fragment or None
        i = start = j
    yield val[start:], None, None


def path_to_pattern(val: str) -> re.Pattern[str]:
    """Compile a route pattern; literal text is escaped, variables captured."""
    def parts():
        for literal, name, fragment in _pattern_tokens(val):
            if literal:
                yield re.escape(literal)
            if name:
                yield "(?P<%s>%s)" % (name, fragment or DEFAULT_FRAGMENT)
    try:
        return re.compile("".join(parts()))
    except re.error as ex:
        raise RoutePatternError(f"cannot compile {val!r}: {ex}") from ex


# TODO: maybe do better header manipulation
_KVP_RE = re.compile(
    r"""\s*;\s*(?:                        # prefix by delim
        ([^"=\s;]+) =                     # key (group 1)
        ([^"=\s;]+ | "(?:\\\\|\\"|.)*?" ) # val (group 2)
    )?""", re.VERBOSE)


def _unquote(val: str):
    if len(val) >= 2 and '"' == val[0] == val[-1]:
        return val[1:-1].replace("\\\\", "\\").replace('\\"', '"').replace("%22", '"')
    return val


def parse_header_options(val: str) -> tuple[str, dict[str, str]]:
    """Split "text/html; charset=utf8" into ("text/html", {"charset": "utf8"})."""
    first, _, rest = val.partition(';')
    opts = {}
    for k, v in _KVP_RE.findall(f";{rest}"):
        if k := k.strip():
            opts[k] = _unquote(v.strip())
    return first.strip(), opts


_KEY_RE = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")


def parse_form_fields(pairs: t.Iterable[tuple[str, str]]) -> dict[str, t.Any]:
    """Build nested fields from form pairs, expanding "a[]" and "a[b]" keys.

    "c[]=1&c[]=2" gives {"c": ["1", "2"]}; "u[name]=x" gives
    {"u": {"name": "x"}}. Plain keys keep the last value.
    """
    fields: dict[str, t.Any] = {}
    for key, value in pairs:
        m = _KEY_RE.match(key)
        if not m or not m.group(2):
            fields[key] = value
            continue
        path = [m.group(1)] + re.findall(r"\[([^\[\]]*)\]", m.group(2))
        node: t.Any = fields
        for part, nxt in zip(path, path[1:]):
            child = node.get(part) if isinstance(node, dict) else None
            if not isinstance(child, (dict, list)):
                child = [] if nxt == "" else {}
                _assign(node, part, child)
            node = child
        _assign(node, path[-1], value)
    return fields


def _assign(node, key, value):
    if isinstance(node, list):
        node.append(value)
    else:
        node[key] = value


def parse_query(qs: str) -> dict[str, t.Any]:
    return parse_form_fields(urllib.parse.parse_qsl(qs, keep_blank_values=True))
