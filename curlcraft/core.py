"""curlcraft core - placeholder substitution, query assembly, shell quoting."""

import logging
import re
from collections.abc import Mapping
from urllib.parse import quote

from curlcraft.models import (
    BinaryBody,
    CurlCommand,
    Environment,
    FormBody,
    HttpMethod,
    RawBody,
)

logger = logging.getLogger(__name__)

PROGRAM = "curl"

# {{name}} or {{name:default}}; the default may be empty.
PLACEHOLDER_RE = re.compile(r"\{\{([^:}]+)(?::([^}]*))?\}\}")

URL_PREFIXES = ("http://", "https://", "ftp://")

# Characters that make a token unsafe to pass to a POSIX shell unquoted.
SHELL_UNSAFE = frozenset(
    " \t\n\r"  # whitespace
    "\"'\\"  # quoting / escape
    "|&;()<>"  # operators, redirection
    "$`"  # expansion, command substitution
    "*?[]"  # globbing
    "{}"  # brace expansion
    "!#"  # history, comments
    "~",  # tilde expansion
)

VariableSet = Mapping[str, str] | Environment


def _as_mapping(variables: VariableSet | None) -> Mapping[str, str]:
    if variables is None:
        return {}
    if isinstance(variables, Environment):
        return variables.as_mapping()
    return variables


# ── Variable substitution ───────────────────────────────────────────────


def substitute(text: str, variables: VariableSet | None = None) -> str:
    """Resolve {{name}} and {{name:default}} placeholders in text.

    Resolution order for each placeholder:
      1. name found in variables -> its value
      2. a default was given (even an empty one) -> the default
      3. otherwise the placeholder is left as-is

    Placeholders are consumed left to right, one at a time; text produced
    by a replacement is never expanded again.
    """
    if not text:
        return text
    mapping = _as_mapping(variables)

    def _replace(m: re.Match) -> str:
        name, default = m.group(1), m.group(2)
        if name in mapping:
            return mapping[name]
        if default is not None:
            return default
        logger.debug("unresolved placeholder %s", m.group(0))
        return m.group(0)

    return PLACEHOLDER_RE.sub(_replace, text)


def unresolved_placeholders(command: CurlCommand, variables: VariableSet | None) -> list[str]:
    """Names that would be rendered literally: no variable and no default."""
    mapping = _as_mapping(variables)
    texts = [command.url]
    texts += [o.value for o in command.options if o.enabled and o.value is not None]
    texts += [h.value for h in command.headers if h.enabled]
    texts += [p.value for p in command.query_params if p.enabled]
    if isinstance(command.body, RawBody):
        texts.append(command.body.content)
    elif isinstance(command.body, FormBody):
        texts += [f.value for f in command.body.fields if f.enabled]

    missing: list[str] = []
    for text in texts:
        for m in PLACEHOLDER_RE.finditer(text or ""):
            name = m.group(1)
            if name in mapping or m.group(2) is not None or name in missing:
                continue
            missing.append(name)
    return missing


# ── URL / query string ──────────────────────────────────────────────────


def build_url(command: CurlCommand, variables: VariableSet | None = None) -> str:
    """Substitute the URL template and append enabled query params.

    Values are percent-encoded as a query component (space -> %20); keys
    are used verbatim. An existing '?' in the base URL is extended with
    '&' rather than replaced.
    """
    base_url = substitute(command.url, variables)

    enabled = [p for p in command.query_params if p.enabled]
    if not enabled:
        return base_url

    query = "&".join(
        f"{p.key}={quote(substitute(p.value, variables), safe='')}" for p in enabled
    )
    sep = "&" if "?" in base_url else "?"
    return f"{base_url}{sep}{query}"


# ── Shell quoting ───────────────────────────────────────────────────────


def needs_quoting(arg: str) -> bool:
    """Check whether arg must be single-quoted for a POSIX shell.

    URLs are passed through untouched even when they contain characters
    the shell would otherwise interpret.
    """
    if arg.startswith(URL_PREFIXES):
        return False
    if not arg:
        return True
    return any(c in SHELL_UNSAFE for c in arg)


def shell_quote(arg: str) -> str:
    """Wrap arg in single quotes; embedded quotes become '"'"'."""
    return "'" + arg.replace("'", "'\"'\"'") + "'"


def format_command(args: list[str]) -> str:
    """Join args into one line, quoting the ones that need it."""
    formatted = []
    for arg in args:
        if needs_quoting(arg) and not arg.startswith(("'", '"')):
            formatted.append(shell_quote(arg))
        else:
            formatted.append(arg)
    return " ".join(formatted)


# ── Command building ────────────────────────────────────────────────────


def build_args(command: CurlCommand, variables: VariableSet | None = None) -> list[str]:
    """Return the unquoted argument vector for command.

    Order: program, options, method, headers, body, URL.
    """
    mapping = _as_mapping(variables)
    args = [PROGRAM]

    for option in command.options:
        if not option.enabled:
            continue
        args.append(option.flag)
        if option.value is not None:
            args.append(substitute(option.value, mapping))

    if command.method is not None and HttpMethod(command.method) is not HttpMethod.GET:
        args += ["-X", str(HttpMethod(command.method))]

    for header in command.headers:
        if header.enabled:
            args += ["-H", f"{header.key}: {substitute(header.value, mapping)}"]

    body = command.body
    if isinstance(body, RawBody):
        content = substitute(body.content, mapping)
        # whitespace-only bodies are dropped entirely
        if content.strip():
            args += ["-d", content]
    elif isinstance(body, FormBody):
        for item in body.fields:
            if item.enabled:
                args += ["-F", f"{item.key}={substitute(item.value, mapping)}"]
    elif isinstance(body, BinaryBody):
        args += ["--data-binary", f"@{body.path}"]

    args.append(build_url(command, mapping))
    return args


def build_command(command: CurlCommand, variables: VariableSet | None = None) -> str:
    """Render command as a single shell-ready curl invocation."""
    args = build_args(command, variables)
    logger.debug("rendering %s with %d args", command.name or command.url, len(args))
    return format_command(args)
