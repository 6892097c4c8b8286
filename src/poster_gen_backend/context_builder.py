"""
Rendering context construction for poster templates.

The context is one flat mapping assembled in layers, each overriding the
previous on key collisions:

1. the template's default customization
2. the caller's customization overrides
3. markup (and default colour) of assets referenced through ``*_asset_id`` keys
4. the caller's form data
5. digit splits for ``*_number`` fields
6. ``business_name``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from markupsafe import Markup

from .database import MAX_ROW_ID
from .models import PosterInput
from .repositories import AssetRecord, TemplateRecord

logger = logging.getLogger(__name__)

ASSET_ID_SUFFIX = "_asset_id"
NUMBER_SUFFIX = "_number"
SPLIT_SUFFIX = "Split"

_ASCII_DIGITS = re.compile(r"[0-9]{1,19}")

AssetLookup = Callable[[int], Optional[AssetRecord]]


@dataclass(frozen=True)
class AssetSlot:
    """
    A named place in a layout that renders an asset's markup.

    Attributes:
        name: Slot name; ``<name>_asset_id`` selects the asset, ``<name>_svg`` receives it
        asset_type: Required asset type, or None to accept any
        color_key: Context key filled with the asset's default colour
    """

    name: str
    asset_type: Optional[str] = None
    color_key: Optional[str] = None

    @property
    def id_key(self) -> str:
        return f"{self.name}{ASSET_ID_SUFFIX}"

    @property
    def markup_key(self) -> str:
        return f"{self.name}_svg"

    @property
    def resolved_color_key(self) -> str:
        return self.color_key or f"{self.name}_color"


DEFAULT_ASSET_SLOTS: Sequence[AssetSlot] = (
    AssetSlot(name="header_logo", asset_type="logo", color_key="primary_color"),
)


def parse_asset_id(value: Any) -> Optional[int]:
    """Accept positive ints, integral floats and ASCII-digit strings within SQLite's INTEGER range."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = int(value) if value.is_integer() else None
    elif isinstance(value, str):
        value = value.strip()
        value = int(value) if _ASCII_DIGITS.fullmatch(value) else None
    if isinstance(value, int) and 0 < value <= MAX_ROW_ID:
        return value
    return None


def split_digits(value: Any) -> List[str]:
    if isinstance(value, str) and value:
        return list(value)
    return []


class RenderingContextBuilder:
    """Merges template defaults, assets and user input into one rendering context."""

    def __init__(self, asset_lookup: AssetLookup, slots: Sequence[AssetSlot] = DEFAULT_ASSET_SLOTS) -> None:
        self.asset_lookup = asset_lookup
        self.slots = {slot.name: slot for slot in slots}

    def build(self, template: TemplateRecord, poster_input: PosterInput) -> Dict[str, Any]:
        """
        Build the rendering context for one generation.

        Args:
            template: The template whose defaults seed the context
            poster_input: Caller-supplied business name, data and customization

        Returns:
            Flat context mapping; asset markup values are ``markupsafe.Markup``

        Raises:
            ConfigurationError: If the template's default customization is not a JSON object
        """
        context: Dict[str, Any] = dict(template.parse_default_customization())
        context.update(poster_input.customization_data)

        self._inject_assets(context, poster_input.customization_data, template.id)

        for key, value in poster_input.data.items():
            context[key] = value
        for key, value in poster_input.data.items():
            if key.endswith(NUMBER_SUFFIX):
                context[f"{key}{SPLIT_SUFFIX}"] = split_digits(value)

        context["business_name"] = poster_input.business_name
        return context

    def _slots_for(self, context: Dict[str, Any]) -> List[AssetSlot]:
        slots = list(self.slots.values())
        for key in context:
            if key.endswith(ASSET_ID_SUFFIX):
                name = key[: -len(ASSET_ID_SUFFIX)]
                if name and name not in self.slots:
                    slots.append(AssetSlot(name=name))
        return slots

    def _inject_assets(self, context: Dict[str, Any], user_customization: Dict[str, Any], template_id: int) -> None:
        for slot in self._slots_for(context):
            context[slot.markup_key] = Markup("")
            if slot.id_key not in context:
                continue

            asset_id = parse_asset_id(context[slot.id_key])
            if asset_id is None:
                logger.warning(
                    f"Template {template_id}: ignoring invalid {slot.id_key}={context[slot.id_key]!r}"
                )
                continue

            asset = self.asset_lookup(asset_id)
            if asset is None:
                logger.warning(f"Template {template_id}: asset {asset_id} for slot '{slot.name}' not found")
                continue
            if slot.asset_type and asset.type != slot.asset_type:
                logger.warning(
                    f"Template {template_id}: asset {asset_id} is of type '{asset.type}', "
                    f"slot '{slot.name}' expects '{slot.asset_type}'"
                )
                continue

            context[slot.markup_key] = Markup(asset.data)
            color_key = slot.resolved_color_key
            if asset.default_color and color_key not in user_customization:
                context[color_key] = asset.default_color
