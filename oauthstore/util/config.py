"""
Configuration utilities for oauthstore.
Provides environment-driven configuration lookup.
"""

import os
from typing import Any, Optional


def get_config_value(key: str, default: Any = None, 
                    cast_type: Optional[type] = None,
                    env_prefix: str = "OAUTHSTORE_") -> Any:
    """
    Get configuration value from environment or return default.
    Optionally cast to specified type.
    """
    env_key = f"{env_prefix}{key.upper()}"
    value = os.environ.get(env_key, default)
    
    if value is None or cast_type is None:
        return value
    
    try:
        if cast_type == bool:
            if isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')
            return bool(value)
        else:
            return cast_type(value)
    except (ValueError, TypeError):
        return default
