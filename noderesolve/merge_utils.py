"""Merge utilities for loader configuration and settings.

Object-valued keys merge recursively, everything else is replaced by the overlay.
This is the contract of a host loader's configure().
"""

from typing import Any


def deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dicts, overlay wins for non-dict values."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result
