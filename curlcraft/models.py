"""curlcraft models - immutable request descriptor and environment types."""

from dataclasses import dataclass
from enum import Enum


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CurlOption:
    """A raw curl flag such as ``-v`` or ``--max-time 10``."""

    flag: str
    value: str | None = None
    enabled: bool = True


@dataclass(frozen=True)
class Header:
    key: str
    value: str
    enabled: bool = True


@dataclass(frozen=True)
class QueryParam:
    key: str
    value: str
    enabled: bool = True


@dataclass(frozen=True)
class FormField:
    key: str
    value: str
    enabled: bool = True


@dataclass(frozen=True)
class RawBody:
    content: str


@dataclass(frozen=True)
class FormBody:
    fields: tuple[FormField, ...] = ()


@dataclass(frozen=True)
class BinaryBody:
    """A file sent with --data-binary; the path is emitted exactly as written."""

    path: str


@dataclass(frozen=True)
class NoBody:
    pass


RequestBody = RawBody | FormBody | BinaryBody | NoBody


@dataclass(frozen=True)
class CurlCommand:
    """Everything needed to render one curl invocation.

    List-like fields are tuples and keep insertion order; that order is
    the order items are emitted in. ``method=None`` means implicit GET.
    """

    url: str
    method: HttpMethod | None = None
    options: tuple[CurlOption, ...] = ()
    headers: tuple[Header, ...] = ()
    query_params: tuple[QueryParam, ...] = ()
    body: RequestBody | None = None
    name: str = ""
    description: str = ""


@dataclass(frozen=True)
class Variable:
    key: str
    value: str
    secret: bool = False


@dataclass(frozen=True)
class Environment:
    """A named set of variables used to fill ``{{...}}`` placeholders."""

    name: str
    variables: tuple[Variable, ...] = ()

    def as_mapping(self) -> dict[str, str]:
        """Return the variable set; the first occurrence of a key wins."""
        mapping: dict[str, str] = {}
        for var in self.variables:
            mapping.setdefault(var.key, var.value)
        return mapping
