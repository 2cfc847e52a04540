"""
webquarry - rate-limited web content acquisition for language-model tools.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .config import Config
from .container import ServiceContainer

__all__ = ["__version__", "Config", "ServiceContainer"]
