"""HTTP transport for the tool executor."""

from .main import create_app, run_web_server

__all__ = ["create_app", "run_web_server"]
