"""Tests for URL assembly, shell quoting and curl command rendering."""

import pytest

from curlcraft.core import (
    build_args,
    build_command,
    build_url,
    format_command,
    needs_quoting,
    shell_quote,
)
from curlcraft.models import (
    BinaryBody,
    CurlCommand,
    CurlOption,
    Environment,
    FormBody,
    FormField,
    Header,
    HttpMethod,
    NoBody,
    QueryParam,
    RawBody,
    Variable,
)

URL = "https://example.com"


@pytest.fixture
def empty_env():
    return Environment(name="test")


# ── build_command ────────────────────────────────────────────────────────


class TestBuildCommand:
    def test_simple(self, empty_env):
        assert build_command(CurlCommand(url=URL), empty_env) == "curl https://example.com"

    def test_simple_with_no_body_variant(self):
        command = CurlCommand(url=URL, body=NoBody())
        assert build_command(command, {}) == "curl https://example.com"

    def test_option_flag(self, empty_env):
        command = CurlCommand(url=URL, options=(CurlOption(flag="-v"),))
        assert build_command(command, empty_env) == "curl -v https://example.com"

    def test_option_value_is_substituted(self):
        command = CurlCommand(
            url=URL,
            options=(CurlOption(flag="--max-time", value="{{timeout:30}}"),),
        )
        assert build_command(command, {}) == "curl --max-time 30 https://example.com"

    def test_option_empty_value_is_quoted(self):
        command = CurlCommand(url=URL, options=(CurlOption(flag="-u", value=""),))
        assert build_command(command, {}) == "curl -u '' https://example.com"

    def test_header(self, empty_env):
        command = CurlCommand(
            url=URL,
            headers=(Header(key="Content-Type", value="application/json"),),
        )
        assert (
            build_command(command, empty_env)
            == "curl -H 'Content-Type: application/json' https://example.com"
        )

    def test_header_value_is_substituted(self):
        command = CurlCommand(
            url=URL,
            headers=(Header(key="Authorization", value="Bearer {{token}}"),),
        )
        assert (
            build_command(command, {"token": "abc"})
            == "curl -H 'Authorization: Bearer abc' https://example.com"
        )

    def test_method(self, empty_env):
        command = CurlCommand(url=URL, method=HttpMethod.POST)
        assert build_command(command, empty_env) == "curl -X POST https://example.com"

    def test_get_is_implicit(self, empty_env):
        command = CurlCommand(url=URL, method=HttpMethod.GET)
        assert build_command(command, empty_env) == "curl https://example.com"

    @pytest.mark.parametrize("method", [m for m in HttpMethod if m is not HttpMethod.GET])
    def test_every_other_method_emitted(self, method):
        args = build_args(CurlCommand(url=URL, method=method), {})
        assert args[1:3] == ["-X", method.value]

    def test_query_params(self, empty_env):
        command = CurlCommand(
            url=URL,
            query_params=(QueryParam(key="q", value="test query"),),
        )
        assert build_command(command, empty_env) == "curl https://example.com?q=test%20query"

    def test_json_body(self, empty_env):
        command = CurlCommand(
            url=URL,
            method=HttpMethod.POST,
            headers=(Header(key="Content-Type", value="application/json"),),
            body=RawBody(content='{"key": "value", "number": 42}'),
        )
        result = build_command(command, empty_env)
        assert "'{\"key\": \"value\", \"number\": 42}'" in result
        assert result == (
            "curl -X POST -H 'Content-Type: application/json' "
            "-d '{\"key\": \"value\", \"number\": 42}' https://example.com"
        )

    def test_body_with_single_quote(self):
        command = CurlCommand(url=URL, body=RawBody(content="it's"))
        assert build_command(command, {}) == "curl -d 'it'\"'\"'s' https://example.com"

    @pytest.mark.parametrize("content", ["", "   ", "\n\t  \r\n"])
    def test_whitespace_body_omitted(self, content):
        command = CurlCommand(url=URL, method=HttpMethod.POST, body=RawBody(content=content))
        assert build_command(command, {}) == "curl -X POST https://example.com"

    def test_body_empty_after_substitution_omitted(self):
        command = CurlCommand(url=URL, body=RawBody(content="{{payload:}}"))
        assert build_command(command, {}) == "curl https://example.com"

    def test_body_is_substituted(self):
        command = CurlCommand(url=URL, body=RawBody(content="name={{name}}"))
        assert build_command(command, {"name": "bob"}) == "curl -d name=bob https://example.com"

    def test_form_body(self):
        command = CurlCommand(
            url=URL,
            method=HttpMethod.POST,
            body=FormBody(
                fields=(
                    FormField(key="name", value="{{user}}"),
                    FormField(key="skip", value="x", enabled=False),
                    FormField(key="file", value="@a.txt"),
                ),
            ),
        )
        assert build_command(command, {"user": "John Doe"}) == (
            "curl -X POST -F 'name=John Doe' -F file=@a.txt https://example.com"
        )

    def test_binary_body(self):
        command = CurlCommand(
            url=URL,
            method=HttpMethod.PUT,
            body=BinaryBody(path="/tmp/data.bin"),
        )
        assert (
            build_command(command, {})
            == "curl -X PUT --data-binary @/tmp/data.bin https://example.com"
        )

    def test_binary_path_not_substituted(self):
        command = CurlCommand(url=URL, body=BinaryBody(path="{{dir}}/f.bin"))
        assert "'@{{dir}}/f.bin'" in build_command(command, {"dir": "/tmp"})

    def test_disabled_items_never_appear(self):
        command = CurlCommand(
            url=URL,
            options=(
                CurlOption(flag="--insecure", enabled=False),
                CurlOption(flag="-s"),
            ),
            headers=(
                Header(key="X-Off", value="1", enabled=False),
                Header(key="X-On", value="1"),
            ),
            query_params=(
                QueryParam(key="off", value="1", enabled=False),
                QueryParam(key="on", value="1"),
            ),
        )
        result = build_command(command, {})
        assert result == "curl -s -H 'X-On: 1' https://example.com?on=1"
        assert "--insecure" not in result
        assert "X-Off" not in result
        assert "off=" not in result

    def test_only_disabled_query_params_leave_url_alone(self):
        command = CurlCommand(
            url=URL,
            query_params=(QueryParam(key="a", value="1", enabled=False),),
        )
        assert build_command(command, {}) == "curl https://example.com"

    def test_order_preserved(self):
        command = CurlCommand(
            url=URL,
            options=(CurlOption(flag="-s"), CurlOption(flag="-L"), CurlOption(flag="-k")),
            headers=(
                Header(key="C", value="3"),
                Header(key="A", value="1"),
                Header(key="B", value="2"),
            ),
            query_params=(
                QueryParam(key="z", value="1"),
                QueryParam(key="a", value="2"),
            ),
        )
        assert build_args(command, {}) == [
            "curl",
            "-s",
            "-L",
            "-k",
            "-H",
            "C: 3",
            "-H",
            "A: 1",
            "-H",
            "B: 2",
            "https://example.com?z=1&a=2",
        ]

    def test_full_order(self):
        command = CurlCommand(
            url="{{base}}/items",
            method=HttpMethod.PATCH,
            options=(CurlOption(flag="-v"),),
            headers=(Header(key="Accept", value="*/*"),),
            query_params=(QueryParam(key="id", value="7"),),
            body=RawBody(content="x=1"),
        )
        env = Environment(name="dev", variables=(Variable(key="base", value="http://dev"),))
        assert build_command(command, env) == (
            "curl -v -X PATCH -H 'Accept: */*' -d x=1 http://dev/items?id=7"
        )

    def test_url_with_braces_not_quoted(self):
        command = CurlCommand(url='https://example.com?filter={"active":true}')
        assert build_command(command, {}) == 'curl https://example.com?filter={"active":true}'

    def test_unresolved_url_placeholder_quoted(self):
        command = CurlCommand(url="{{host}}/users")
        assert build_command(command, {}) == "curl '{{host}}/users'"


# ── build_url ────────────────────────────────────────────────────────────


class TestBuildUrl:
    def test_no_params(self):
        assert build_url(CurlCommand(url="{{u}}/a"), {"u": URL}) == "https://example.com/a"

    def test_additive_to_existing_query(self):
        command = CurlCommand(
            url="https://example.com/search?a=1",
            query_params=(QueryParam(key="b", value="2"),),
        )
        assert build_url(command, {}) == "https://example.com/search?a=1&b=2"

    def test_multiple_params_joined(self):
        command = CurlCommand(
            url=URL,
            query_params=(QueryParam(key="a", value="1"), QueryParam(key="b", value="2")),
        )
        assert build_url(command, {}) == "https://example.com?a=1&b=2"

    def test_value_substituted_then_encoded(self):
        command = CurlCommand(
            url=URL,
            query_params=(QueryParam(key="q", value="{{term}}"),),
        )
        assert build_url(command, {"term": "a&b=c"}) == "https://example.com?q=a%26b%3Dc"

    def test_key_neither_substituted_nor_encoded(self):
        command = CurlCommand(
            url=URL,
            query_params=(QueryParam(key="{{k}} x", value="v"),),
        )
        assert build_url(command, {"k": "key"}) == "https://example.com?{{k}} x=v"

    @pytest.mark.parametrize(
        ("value", "encoded"),
        [
            ("test query", "test%20query"),
            ("a/b", "a%2Fb"),
            ("a+b", "a%2Bb"),
            ("50%", "50%25"),
            ("ü", "%C3%BC"),
            ("safe-_.~", "safe-_.~"),
            ("", ""),
        ],
    )
    def test_value_encoding(self, value, encoded):
        command = CurlCommand(url=URL, query_params=(QueryParam(key="v", value=value),))
        assert build_url(command, {}) == f"https://example.com?v={encoded}"


# ── Quoting ──────────────────────────────────────────────────────────────


class TestNeedsQuoting:
    @pytest.mark.parametrize(
        "arg",
        [
            '{"key": "value"}',
            "hello world",
            "tab\there",
            "line\nbreak",
            "cr\rhere",
            'say "hi"',
            "it's",
            "back\\slash",
            "test&more",
            "test|more",
            "a;b",
            "(x)",
            "a<b",
            "a>b",
            "test$var",
            "`cmd`",
            "glob*",
            "what?",
            "[abc]",
            "{a,b}",
            "wow!",
            "#comment",
            "~user",
            "",
        ],
    )
    def test_unsafe(self, arg):
        assert needs_quoting(arg)

    @pytest.mark.parametrize(
        "arg",
        [
            "simple",
            "test123",
            "test-value",
            "test_value",
            "test.value",
            "key=value",
            "@file.txt",
            "user:pass",
            "a/b/c",
            "--max-time",
        ],
    )
    def test_safe(self, arg):
        assert not needs_quoting(arg)

    @pytest.mark.parametrize(
        "url",
        [
            'https://example.com?param={"key":"value"}',
            "http://example.com/path?q=test&other=value",
            'https://api.example.com/users?filter={"active":true}',
            "ftp://files.example.com/my file.txt",
        ],
    )
    def test_urls_never_quoted(self, url):
        assert not needs_quoting(url)

    def test_url_scheme_must_be_prefix(self):
        assert needs_quoting("see https://example.com")


class TestFormatCommand:
    def test_shell_quote(self):
        assert shell_quote("it's") == "'it'\"'\"'s'"
        assert shell_quote("") == "''"

    def test_joins_with_single_spaces(self):
        assert format_command(["curl", "-v", "https://x.io"]) == "curl -v https://x.io"

    def test_already_quoted_tokens_left_alone(self):
        assert format_command(["curl", '"already quoted"']) == 'curl "already quoted"'
        assert format_command(["curl", "'single it'"]) == "curl 'single it'"

    def test_multiple_single_quotes(self):
        assert format_command(["a'b'c"]) == "'a'\"'\"'b'\"'\"'c'"

    def test_no_trailing_newline(self):
        assert not format_command(["curl", "https://x.io"]).endswith("\n")
