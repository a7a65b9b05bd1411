import enlighten.util
import pytest


@pytest.mark.parametrize(
    ("src", "expect_val", "expect_params"), [
        ("application/x-www-form-urlencoded", "application/x-www-form-urlencoded", {}),
        ("text/html;charset=utf8", "text/html", {'charset': 'utf8'}),
        ('text/html; charset="utf8"', "text/html", {'charset': 'utf8'}),
        ("v;  ; a=b ; ", "v", {"a": "b"}),
        ("v;a", "v", {}),
        ("v;=b", "v", {}),
        ('v;a="b\\"c";d=e', "v", {"a": 'b"c', "d": "e"}),
        ('v;a="b%22c"', "v", {"a": 'b"c'}),
    ]
)
def test_parse_header_options(src, expect_val, expect_params):
    assert enlighten.util.parse_header_options(src) == (expect_val, expect_params)


@pytest.mark.parametrize(("pattern", "regex"), [
    ("/", "/"),
    ("/a.b", r"/a\.b"),
    ("/{id}", r"/(?P<id>[^/]+)"),
    (r"/{id:\d+}.json", r"/(?P<id>\d+)\.json"),
    (r"/{n:a\}b}", r"/(?P<n>a\}b)"),
])
def test_path_to_pattern(pattern, regex):
    assert enlighten.util.path_to_pattern(pattern).pattern == regex


@pytest.mark.parametrize(("pairs", "fields"), [
    ([("a", "1"), ("a", "2")], {"a": "2"}),
    ([("c[]", "1"), ("c[]", "2")], {"c": ["1", "2"]}),
    ([("u[name]", "x"), ("u[age]", "3")], {"u": {"name": "x", "age": "3"}}),
    ([("m[a][]", "1"), ("m[a][]", "2")], {"m": {"a": ["1", "2"]}}),
    ([("weird]", "1"), ("[x]", "2")], {"weird]": "1", "[x]": "2"}),
])
def test_parse_form_fields(pairs, fields):
    assert enlighten.util.parse_form_fields(pairs) == fields


def test_parse_query_keeps_blanks():
    assert enlighten.util.parse_query("a=&b=2") == {"a": "", "b": "2"}
