"""
Utility package for oauthstore.
"""

from .config import get_config_value

__all__ = [
    "get_config_value",
]
