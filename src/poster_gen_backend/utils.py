"""
Utility functions shared by the poster pipeline and the catalog services.

This module provides helper functions for:
- Sanitizing user-provided strings for safe filesystem usage
- Ensuring directory creation
- Decoding JSON columns that may have been stored double-encoded
- Coercing JSON-decoded scalars to their display string
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Pattern to match characters that are not safe for filesystem paths
# Allows: alphanumeric characters, dots, underscores, and hyphens
SANITIZE_PATTERN = re.compile(r"[^a-zA-Z0-9._-]+")


def sanitize_label(label: str, fallback: str) -> str:
    """
    Generate a filesystem-safe label from user input.

    Spaces become underscores so business names stay readable in artifact
    file names; any other unsafe run of characters collapses to a hyphen.

    Args:
        label: The original label string to sanitize
        fallback: Default value to return if sanitization results in an empty string

    Returns:
        A filesystem-safe label or the fallback value

    Example:
        >>> sanitize_label("Mama Mboga Shop!", "poster")
        "Mama_Mboga_Shop"
        >>> sanitize_label("@#$", "poster")
        "poster"
    """
    cleaned = re.sub(r"\s+", "_", label.strip())
    cleaned = SANITIZE_PATTERN.sub("-", cleaned)
    # Remove leading/trailing separators
    cleaned = cleaned.strip("-_.")
    return cleaned or fallback


def ensure_directory(path: Path) -> Path:
    """
    Create a directory if it doesn't exist, including parent directories.

    Args:
        path: The directory path to create

    Returns:
        The same path object for chaining

    Raises:
        OSError: If directory creation fails due to permissions or other I/O errors
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_json_column(raw: Any, column: str) -> Any:
    """
    Decode a JSON text column, unwrapping one level of string encoding.

    Older rows hold customization data as a JSON string literal whose
    content is itself a JSON document. Those are decoded a second time and
    reported so the row can be rewritten single-encoded.

    Args:
        raw: The stored column value (text, bytes, an already-decoded value or None)
        column: Column name, used in log messages

    Returns:
        The decoded value, or None for empty/NULL columns

    Raises:
        ValueError: If the text (or the unwrapped inner text) is not valid JSON
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if not isinstance(raw, str):
        return raw
    if not raw.strip():
        return None

    value = json.loads(raw)
    if isinstance(value, str):
        if not value.strip():
            return None
        logger.warning(f"Column '{column}' holds double-encoded JSON; unwrapping one level")
        value = json.loads(value)
    return value


def coerce_to_string(value: Any) -> str:
    """Render a JSON-decoded value the way it would be typed into a form."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)
