"""
Validation of user-submitted poster data against a template's field schema.

The schema is a floor, not a whitelist: keys in the submitted data that no
FieldSpec names are left alone.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, Mapping

from .errors import ConfigurationError
from .models import FieldSpec
from .utils import coerce_to_string

GENERIC_FORMAT_MESSAGE = "Invalid format."


def _compile(spec: FieldSpec) -> "re.Pattern[str]":
    try:
        return re.compile(spec.pattern or "")
    except re.error as exc:
        raise ConfigurationError(f"template configuration error: invalid pattern for field '{spec.name}'") from exc


def validate_fields(schema: Iterable[FieldSpec], data: Mapping[str, Any]) -> Dict[str, str]:
    """
    Check submitted values against every FieldSpec, in schema order.

    Lengths are counted in characters, so multi-byte text is measured the way
    a user typed it. Patterns are searched, not implicitly anchored; schemas
    that need whole-value matches carry their own ``^...$``.

    Args:
        schema: Field specifications of the template
        data: Raw JSON-decoded values keyed by field name

    Returns:
        Mapping of field name to error message; empty when the data is valid

    Raises:
        ConfigurationError: If a FieldSpec carries a pattern that does not compile
    """
    errors: Dict[str, str] = {}
    for spec in schema:
        label = spec.display_label
        raw = data.get(spec.name)
        value = coerce_to_string(raw)

        if raw is None or value == "":
            errors[spec.name] = f"{label} is required."
            continue

        if spec.max_length and spec.max_length > 0 and len(value) > spec.max_length:
            errors[spec.name] = f"{label} cannot exceed {spec.max_length} characters."

        if spec.pattern:
            if _compile(spec).search(value) is None:
                # A format failure replaces a length message for the same field.
                errors[spec.name] = f"{label}: {spec.pattern_title or GENERIC_FORMAT_MESSAGE}"

    return errors
