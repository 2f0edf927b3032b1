"""curlcraft - render HTTP request descriptions as shell-safe curl commands."""

from curlcraft.core import build_command, build_url, substitute

__version__ = "0.1.0"

__all__ = ["build_command", "build_url", "substitute"]
