"""curlcraft CLI - render saved or ad-hoc requests as curl commands."""

import logging
import sys

import click

logger = logging.getLogger("curlcraft")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

TOOL_HELP = """\
curlcraft — Turn request descriptions into copy-pasteable curl commands.

Prints a single, shell-safe curl command line. Nothing is executed.

\b
MODES
─────
  Direct:     curlcraft [METHOD] URL [options]
  Request:    curlcraft -r REQUEST [options]

\b
DIRECT MODE
───────────
  curlcraft https://api.example.com/users
  curlcraft POST https://api.example.com/users -d '{"name":"test"}'
  curlcraft GET "{{api_url}}/search" -q q="test query" -e dev

\b
REQUEST FILES (requests/*.yaml)
───────────────────────────────
  \b
  name: create-user                 # optional, defaults to filename
  description: Create a user
  method: POST
  url: "{{api_url}}/users"
  options:
    - flag: --max-time
      value: "{{timeout:30}}"
    - {flag: -k, enabled: false}
  headers:
    Content-Type: application/json
  query:
    - {key: verbose, value: "1"}
  body:                             # one of raw / form / binary
    raw: '{"name": "{{name}}"}'

  Flags given on the command line (-H, -q, --curl-opt) are appended to
  the ones in the file; -d, -F and --data-binary replace its body.

\b
ENVIRONMENTS (environments/*.yaml)
──────────────────────────────────
  \b
  name: dev
  variables:
    api_url: https://dev.example.com
    api_key:
      value: ${API_KEY}             # from .env / process environment
      secret: true

\b
PLACEHOLDERS
────────────
  \b
  {{name}}           Variable value; left as-is when undefined
  {{name:default}}   Variable value, or default when undefined

  Precedence: -v key=value > environment file > .env file.

\b
CONFIG FILE FORMAT (.curlcraft.yaml)
────────────────────────────────────
  Config resolution order:
    1. -c/--config flag (explicit path)
    2. .curlcraft.yaml / .curlcraft.yml / curlcraft.yaml / curlcraft.yml in CWD
    3. ~/.curlcraft/config.yaml (global)

  \b
  defaults:
    requests_dir: requests          # relative to the config file
    environments_dir: environments
    environment: dev                # used when -e is not given
    env_file: .env
"""


@click.command(
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("method", required=False)
@click.argument("url", required=False)
@click.option(
    "-r",
    "--request",
    "request_name",
    default=None,
    help="Request name or path. Use --list-requests to see available.",
)
@click.option(
    "-e",
    "--env",
    "env_name",
    default=None,
    help="Environment name or path. Default: 'environment' from config.",
)
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .curlcraft.yaml in CWD, then ~/.curlcraft/config.yaml.",
)
@click.option(
    "--requests-dir",
    "requests_dir_override",
    default=None,
    help="Override requests directory.",
)
@click.option(
    "--environments-dir",
    "environments_dir_override",
    default=None,
    help="Override environments directory.",
)
@click.option(
    "-v",
    "--var",
    multiple=True,
    help="Variable as key=value. Overrides environment values. Repeatable.",
)
@click.option(
    "-H",
    "--header",
    multiple=True,
    help="Header as 'Name: Value'. Repeatable.",
)
@click.option(
    "-q",
    "--query",
    multiple=True,
    help="Query parameter as key=value. Repeatable.",
)
@click.option("-d", "--data", default=None, help="Raw request body.")
@click.option(
    "-F",
    "--form",
    "form_fields",
    multiple=True,
    help="Form field as key=value. Repeatable.",
)
@click.option(
    "--data-binary",
    "data_binary",
    default=None,
    metavar="PATH",
    help="Send a file as the request body.",
)
@click.option(
    "--curl-opt",
    "curl_opts",
    multiple=True,
    metavar="FLAG[=VALUE]",
    help="Extra curl option, e.g. --curl-opt=-k or --curl-opt=--max-time=10. Repeatable.",
)
@click.option(
    "--list-requests",
    "show_list_requests",
    is_flag=True,
    default=False,
    help="List all request files.",
)
@click.option(
    "--list-envs",
    "show_list_envs",
    is_flag=True,
    default=False,
    help="List all environments. Secret values are masked.",
)
@click.option("--debug", is_flag=True, default=False, help="Log debug output to stderr.")
def main(
    method,
    url,
    request_name,
    env_name,
    config_file,
    requests_dir_override,
    environments_dir_override,
    var,
    header,
    query,
    data,
    form_fields,
    data_binary,
    curl_opts,
    show_list_requests,
    show_list_envs,
    debug,
):
    """Render a request as a curl command."""
    from curlcraft.errors import DescriptorError
    from curlcraft.loader import load_config, load_env, resolve_config_path

    _setup_logging(debug)

    config_path = resolve_config_path(config_file)
    config = load_config(config_path)
    defaults = config.get("defaults", {})
    env = load_env(defaults.get("env_file"))

    try:
        variables = dict(_parse_pairs(var, "-v"))
        queries = _parse_pairs(query, "-q")
        form = _parse_pairs(form_fields, "-F")
    except click.BadParameter as e:
        click.echo(f"ERROR: {e.message}", err=True)
        sys.exit(1)

    if sum(bool(b) for b in (data is not None, form_fields, data_binary)) > 1:
        click.echo(
            "ERROR: --data, --form and --data-binary are mutually exclusive.",
            err=True,
        )
        sys.exit(1)

    try:
        if show_list_requests:
            _cmd_list_requests(config, requests_dir_override)
            return

        if show_list_envs:
            _cmd_list_envs(config, env, environments_dir_override)
            return

        if request_name:
            command = _load_request_or_exit(request_name, config, requests_dir_override)
        elif method:
            command = _direct_command(method, url)
        else:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            ctx.exit(1)

        command = _apply_overrides(
            command,
            headers=_parse_headers(header),
            queries=queries,
            options=[_parse_curl_opt(o) for o in curl_opts],
            data=data,
            form=form,
            data_binary=data_binary,
        )

        environment = _load_environment_or_exit(
            env_name or defaults.get("environment"),
            config,
            env,
            environments_dir_override,
        )
    except DescriptorError as e:
        click.echo(f"ERROR: {e}", err=True)
        sys.exit(1)

    _cmd_render(command, env, environment, variables)


# ── Subcommand implementations ──────────────────────────────────────────


def _cmd_render(command, env, environment, cli_vars):
    from curlcraft.core import build_command, unresolved_placeholders

    variables = dict(env)
    if environment is not None:
        variables.update(environment.as_mapping())
    variables.update(cli_vars)

    for name in unresolved_placeholders(command, variables):
        logger.warning("no value for {{%s}}; left as-is", name)

    click.echo(build_command(command, variables))


def _cmd_list_requests(config, requests_dir_override=None):
    from curlcraft.loader import list_requests

    rdir, requests = list_requests(config, requests_dir_override)
    if not requests:
        if rdir:
            click.echo(f"No requests found in: {rdir}")
        else:
            click.echo("No requests directory found.")
            click.echo("Searched: ./requests/, ~/.curlcraft/requests/")
        return

    click.echo(f"Requests from: {rdir}")
    click.echo(f"{len(requests)} available:\n")
    for req in requests:
        label = f"  {req.name} — {req.description}" if req.description else f"  {req.name}"
        click.echo(label)
        method = req.method.value if req.method else "GET"
        click.echo(f"    {method} {req.url}")
        click.echo()


def _cmd_list_envs(config, env, environments_dir_override=None):
    from curlcraft.loader import list_environments

    edir, environments = list_environments(config, env, environments_dir_override)
    if not environments:
        if edir:
            click.echo(f"No environments found in: {edir}")
        else:
            click.echo("No environments directory found.")
            click.echo("Searched: ./environments/, ~/.curlcraft/environments/")
        return

    click.echo(f"Environments from: {edir}\n")
    for environment in environments:
        click.echo(f"  {environment.name}")
        for v in environment.variables:
            value = "****" if v.secret else v.value
            click.echo(f"    {v.key} = {value}")
        click.echo()


# ── Helpers ──────────────────────────────────────────────────────────────


def _setup_logging(debug):
    """Send curlcraft log records to stderr; DEBUG with --debug, else WARNING."""
    logger.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    logger.propagate = False


def _load_request_or_exit(request_name, config, requests_dir_override):
    from curlcraft.loader import load_request, search_paths

    command = load_request(request_name, config, requests_dir_override)
    if command is None:
        searched = search_paths("requests", request_name, config, requests_dir_override)
        click.echo(
            f"ERROR: Request '{request_name}' not found.\n"
            f"Searched:\n" + "\n".join(f"  - {p}" for p in searched),
            err=True,
        )
        sys.exit(1)
    return command


def _load_environment_or_exit(env_name, config, env, environments_dir_override):
    from curlcraft.loader import load_environment, search_paths

    if not env_name:
        return None
    environment = load_environment(env_name, config, env, environments_dir_override)
    if environment is None:
        searched = search_paths("environments", env_name, config, environments_dir_override)
        click.echo(
            f"ERROR: Environment '{env_name}' not found.\n"
            f"Searched:\n" + "\n".join(f"  - {p}" for p in searched),
            err=True,
        )
        sys.exit(1)
    return environment


def _direct_command(method, url):
    """Build a CurlCommand from positional METHOD URL (or just URL)."""
    from curlcraft.loader import parse_method
    from curlcraft.models import CurlCommand

    if url is None:
        return CurlCommand(url=method)
    return CurlCommand(url=url, method=parse_method(method, "METHOD"))


def _apply_overrides(command, headers, queries, options, data, form, data_binary):
    """Merge command-line flags into a loaded or direct command."""
    from dataclasses import replace

    from curlcraft.models import (
        BinaryBody,
        FormBody,
        FormField,
        Header,
        QueryParam,
        RawBody,
    )

    body = command.body
    if data is not None:
        body = RawBody(content=data)
    elif form:
        body = FormBody(fields=tuple(FormField(key=k, value=v) for k, v in form))
    elif data_binary:
        body = BinaryBody(path=data_binary)

    return replace(
        command,
        options=command.options + tuple(options),
        headers=command.headers + tuple(Header(key=k, value=v) for k, v in headers),
        query_params=command.query_params
        + tuple(QueryParam(key=k, value=v) for k, v in queries),
        body=body,
    )


def _parse_pairs(specs, flag):
    """Parse key=value strings into (key, value) pairs, keeping repeats in order."""
    pairs = []
    for spec in specs:
        if "=" not in spec:
            raise click.BadParameter(f"{flag} expects key=value, got '{spec}'.")
        k, v = spec.split("=", 1)
        pairs.append((k.strip(), v))
    return pairs


def _parse_headers(header_tuples):
    """Parse -H 'Name: Value' strings into (name, value) pairs."""
    headers = []
    for h in header_tuples:
        if ":" in h:
            k, v = h.split(":", 1)
            headers.append((k.strip(), v.strip()))
    return headers


def _parse_curl_opt(spec):
    """'--max-time=10' -> CurlOption('--max-time', '10'); '-k' -> CurlOption('-k')."""
    from curlcraft.models import CurlOption

    if "=" in spec:
        flag, value = spec.split("=", 1)
        return CurlOption(flag=flag, value=value)
    return CurlOption(flag=spec)
