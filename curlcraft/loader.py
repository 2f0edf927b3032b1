"""curlcraft loader - config resolution, .env loading, request/environment files."""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from curlcraft.errors import DescriptorError
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

logger = logging.getLogger(__name__)

GLOBAL_DIR = Path.home() / ".curlcraft"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".curlcraft.yaml",
    ".curlcraft.yml",
    "curlcraft.yaml",
    "curlcraft.yml",
]

YAML_SUFFIXES = (".yaml", ".yml")


def resolve_path(candidates: list[Path]) -> Path | None:
    """Return the first existing path from candidates."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return None


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (hard, no fallthrough if missing)
      2. .curlcraft.yaml (variants) in CWD
      3. ~/.curlcraft/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load the YAML config file.

    Always returns a dict with a 'defaults' section. '_config_dir' holds the
    directory of the file so relative paths in it can be resolved.
    """
    if config_path is None:
        return {"defaults": {}, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": {}, "_config_dir": None}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    logger.debug("loaded config from %s", path)
    return {
        "defaults": data.get("defaults") or {},
        "_config_dir": path.resolve().parent,
    }


def load_env(env_file: str | None, base_dir: str = ".") -> dict[str, str]:
    """Load variables from a .env file. Missing files yield an empty dict."""
    if not env_file:
        return {}
    dotenv_path = Path(base_dir) / env_file
    if not dotenv_path.exists():
        logger.warning("env file %s not found", dotenv_path)
        return {}
    values = dotenv_values(str(dotenv_path))
    return {k: v for k, v in values.items() if v is not None}


def resolve_value(value: str | None, env: dict[str, str]) -> str | None:
    """Resolve $VAR and ${VAR} references against env, then os.environ.

    Unknown references are left as written.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value

    def _replace(m: re.Match) -> str:
        var_name = m.group(1) or m.group(2)
        return env.get(var_name, os.environ.get(var_name, m.group(0)))

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", _replace, value)


# ── Resource directories ────────────────────────────────────────────────


def _resource_candidates(
    resource_name: str,
    cli_override: str | None,
    config: dict,
) -> list[Path]:
    """Build the ordered candidate list for a named resource directory."""
    if cli_override:
        p = Path(cli_override)
        if not p.is_absolute():
            p = Path.cwd() / p
        return [p]  # hard override

    candidates: list[Path] = []

    defaults = config.get("defaults", {})
    config_value = defaults.get(f"{resource_name}_dir")
    config_dir = config.get("_config_dir")
    if config_value:
        p = Path(config_value)
        if not p.is_absolute() and config_dir:
            p = Path(config_dir) / p
        candidates.append(p)

    candidates.append(Path(resource_name))
    candidates.append(GLOBAL_DIR / resource_name)
    return candidates


def resolve_resource_dir(
    resource_name: str,
    cli_override: str | None,
    config: dict,
) -> Path | None:
    """Find a resource directory ('requests' or 'environments').

    Resolution order:
      1. cli_override (absolute or relative to CWD; hard)
      2. {resource_name}_dir from config defaults (relative to config file)
      3. ./{resource_name}/ in CWD
      4. ~/.curlcraft/{resource_name}/
    """
    return resolve_path(_resource_candidates(resource_name, cli_override, config))


def search_paths(
    resource_name: str,
    name: str,
    config: dict,
    cli_override: str | None = None,
) -> list[str]:
    """Human-readable list of paths checked for a named resource file."""
    paths = [name, f"{name}.yaml"]
    for c in _resource_candidates(resource_name, cli_override, config):
        paths.append(str(c / f"{name}.yaml"))
    return paths


def _find_document(
    resource_name: str,
    name_or_path: str,
    config: dict,
    cli_override: str | None,
) -> tuple[Path, dict] | None:
    """Locate and read a YAML document by path or by name."""
    p = Path(name_or_path)
    if p.is_file():
        return _read_document(p)
    for ext in YAML_SUFFIXES:
        candidate = Path(name_or_path + ext)
        if candidate.is_file():
            return _read_document(candidate)

    directory = resolve_resource_dir(resource_name, cli_override, config)
    if directory and directory.is_dir():
        for ext in YAML_SUFFIXES:
            candidate = directory / (name_or_path + ext)
            if candidate.is_file():
                return _read_document(candidate)
    return None


def _read_document(path: Path) -> tuple[Path, dict] | None:
    """Read a YAML file; unreadable or non-mapping files count as missing."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("skipping %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("skipping %s: top level is not a mapping", path)
        return None
    return path, data


def _list_documents(
    resource_name: str,
    config: dict,
    cli_override: str | None,
) -> tuple[Path | None, list[tuple[Path, dict]]]:
    directory = resolve_resource_dir(resource_name, cli_override, config)
    if not directory or not directory.is_dir():
        return (directory, [])
    docs = []
    for f in sorted(directory.iterdir()):
        if f.suffix in YAML_SUFFIXES and f.is_file():
            doc = _read_document(f)
            if doc:
                docs.append(doc)
    return (directory, docs)


# ── Requests ────────────────────────────────────────────────────────────


def load_request(
    name_or_path: str,
    config: dict,
    requests_dir_override: str | None = None,
) -> CurlCommand | None:
    """Load a request file by path, or by name from the requests directory."""
    found = _find_document("requests", name_or_path, config, requests_dir_override)
    if found is None:
        return None
    path, data = found
    return parse_request(data, source=str(path), default_name=path.stem)


def list_requests(
    config: dict,
    requests_dir_override: str | None = None,
) -> tuple[Path | None, list[CurlCommand]]:
    """Return (resolved_dir, requests) for the requests directory.

    Files that fail to parse are logged and skipped.
    """
    directory, docs = _list_documents("requests", config, requests_dir_override)
    requests = []
    for p, data in docs:
        try:
            requests.append(parse_request(data, source=str(p), default_name=p.stem))
        except DescriptorError as e:
            logger.warning("skipping %s", e)
    return (directory, requests)


def parse_request(
    data: dict,
    source: str | None = None,
    default_name: str = "",
) -> CurlCommand:
    """Build a CurlCommand from a request document.

    Raises DescriptorError when the document has the wrong shape.
    """
    if not isinstance(data, dict):
        raise DescriptorError("request must be a mapping", source)
    url = _text(data.get("url")).strip()
    if not url:
        raise DescriptorError("request needs a 'url'", source)

    return CurlCommand(
        url=url,
        method=parse_method(data.get("method"), source),
        options=tuple(_parse_options(data.get("options"), source)),
        headers=tuple(_parse_pairs(data.get("headers"), Header, "headers", source)),
        query_params=tuple(_parse_pairs(data.get("query"), QueryParam, "query", source)),
        body=_parse_body(data.get("body"), source),
        name=str(data.get("name") or default_name),
        description=str(data.get("description") or ""),
    )


def parse_method(raw: Any, source: str | None = None) -> HttpMethod | None:
    if raw is None or raw == "":
        return None
    try:
        return HttpMethod(str(raw).upper())
    except ValueError:
        raise DescriptorError(f"unknown method {raw!r}", source) from None


def _parse_options(raw: Any, source: str | None) -> list[CurlOption]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise DescriptorError("'options' must be a list", source)

    options = []
    for item in raw:
        if isinstance(item, str):
            options.append(CurlOption(flag=item))
            continue
        if not isinstance(item, dict) or not item.get("flag"):
            raise DescriptorError("each option needs a 'flag'", source)
        value = item.get("value")
        options.append(
            CurlOption(
                flag=str(item["flag"]),
                value=None if value is None else str(value),
                enabled=_parse_enabled(item, source),
            ),
        )
    return options


def _parse_pairs(raw: Any, cls: type, section: str, source: str | None) -> list:
    """Parse key/value items given either as a mapping or a list of dicts."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [cls(key=str(k), value=_text(v)) for k, v in raw.items()]
    if not isinstance(raw, list):
        raise DescriptorError(f"'{section}' must be a mapping or a list", source)

    items = []
    for item in raw:
        if not isinstance(item, dict) or "key" not in item:
            raise DescriptorError(f"each entry in '{section}' needs a 'key'", source)
        items.append(
            cls(
                key=str(item["key"]),
                value=_text(item.get("value")),
                enabled=_parse_enabled(item, source),
            ),
        )
    return items


def _parse_body(raw: Any, source: str | None):
    if raw is None:
        return None
    if isinstance(raw, str):
        return RawBody(content=raw)
    if not isinstance(raw, dict):
        raise DescriptorError("'body' must be a string or a mapping", source)

    kinds = [k for k in ("raw", "form", "binary") if raw.get(k) is not None]
    if len(kinds) > 1:
        raise DescriptorError(f"body has more than one kind: {', '.join(kinds)}", source)
    if not kinds:
        return NoBody()

    kind = kinds[0]
    if kind == "raw":
        return RawBody(content=_text(raw["raw"]))
    if kind == "form":
        return FormBody(fields=tuple(_parse_pairs(raw["form"], FormField, "form", source)))
    path = _text(raw["binary"])
    if not path.strip():
        raise DescriptorError("'binary' needs a path", source)
    return BinaryBody(path=path)


def _parse_enabled(item: dict, source: str | None) -> bool:
    enabled = item.get("enabled", True)
    if not isinstance(enabled, bool):
        raise DescriptorError(f"'enabled' must be true or false, got {enabled!r}", source)
    return enabled


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# ── Environments ────────────────────────────────────────────────────────


def load_environment(
    name_or_path: str,
    config: dict,
    env: dict[str, str] | None = None,
    environments_dir_override: str | None = None,
) -> Environment | None:
    """Load an environment file by path, or by name from the environments directory.

    ${VAR} references in values are resolved against env, then os.environ.
    """
    found = _find_document("environments", name_or_path, config, environments_dir_override)
    if found is None:
        return None
    path, data = found
    return parse_environment(data, env or {}, source=str(path), default_name=path.stem)


def list_environments(
    config: dict,
    env: dict[str, str] | None = None,
    environments_dir_override: str | None = None,
) -> tuple[Path | None, list[Environment]]:
    directory, docs = _list_documents("environments", config, environments_dir_override)
    environments = []
    for p, data in docs:
        try:
            environments.append(
                parse_environment(data, env or {}, source=str(p), default_name=p.stem),
            )
        except DescriptorError as e:
            logger.warning("skipping %s", e)
    return (directory, environments)


def parse_environment(
    data: dict,
    env: dict[str, str],
    source: str | None = None,
    default_name: str = "",
) -> Environment:
    """Build an Environment from an environment document.

    Variables are given as a mapping, where each value is either a scalar
    or {value, secret}.
    """
    if not isinstance(data, dict):
        raise DescriptorError("environment must be a mapping", source)
    raw_vars = data.get("variables") or {}
    if not isinstance(raw_vars, dict):
        raise DescriptorError("'variables' must be a mapping", source)

    variables = []
    for key, spec in raw_vars.items():
        secret = False
        if isinstance(spec, dict):
            secret = bool(spec.get("secret", False))
            spec = spec.get("value")
        value = resolve_value(_text(spec), env) or ""
        variables.append(Variable(key=str(key), value=value, secret=secret))

    return Environment(
        name=str(data.get("name") or default_name),
        variables=tuple(variables),
    )
