"""Shared type aliases for openload."""

from __future__ import annotations

# HTTP headers dictionary.
Headers = dict[str, str]
