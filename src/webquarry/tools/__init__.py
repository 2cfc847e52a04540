"""Named tools exposed to callers."""

from .executor import ToolExecutor, sanitize_params_for_log

__all__ = ["ToolExecutor", "sanitize_params_for_log"]
