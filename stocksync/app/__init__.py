"""Application orchestration layer.

Coordinates configuration, interfaces and services.
"""

from . import config

__all__ = ["config"]
