"""
Seed the demo catalog: one layout, one logo asset and the "Standard Till" template.

Usage:
    python -m poster_gen_backend.seed [--database data/poster_gen.db]

Running it twice is harmless; an existing demo layout means the catalog is
already seeded.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from .catalog import PosterCatalog
from .configuration import configure_logging, load_settings
from .database import Database
from .models import AssetCreate, FieldSpec, LayoutCreate, TemplateCreate, TemplateView

logger = logging.getLogger(__name__)

DEMO_LAYOUT_NAME = "standard"
DEMO_LAYOUT_FILE = "standard.html"

DEMO_LOGO_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 120 40" width="240" height="80">'
    '<rect width="120" height="40" rx="6" fill="currentColor"/>'
    '<text x="60" y="26" font-family="Arial, sans-serif" font-size="16" '
    'font-weight="bold" fill="#ffffff" text-anchor="middle">M-PESA</text>'
    "</svg>"
)


def seed_demo_catalog(catalog: PosterCatalog) -> Optional[TemplateView]:
    """
    Create the demo layout, logo and template.

    Returns:
        The created template, or None if the demo layout already exists
    """
    if catalog.layouts.repository.get_by_name(DEMO_LAYOUT_NAME) is not None:
        logger.info("Demo catalog already seeded, skipping")
        return None

    layout = catalog.layouts.create_layout(LayoutCreate(name=DEMO_LAYOUT_NAME, file_path=DEMO_LAYOUT_FILE))
    logo = catalog.assets.create_asset(
        AssetCreate(name="M-Pesa Green", type="logo", data=DEMO_LOGO_SVG, default_color="#4CAF50")
    )

    default_customization: Dict[str, Any] = {
        "header_logo_asset_id": logo.id,
        "primary_color": "#4CAF50",
        "text_color": "#1B1B1B",
        "background_color": "#FFFFFF",
        "headline": "LIPA NA M-PESA",
        "footer_text": "Thank you for your business",
    }
    template = catalog.templates.create_template(
        TemplateCreate(
            name="Standard Till",
            type="till",
            layout_id=layout.id,
            price=0,
            thumbnail_url=None,
            is_active=True,
            required_fields=[
                FieldSpec(
                    name="till_number",
                    label="Till Number",
                    pattern=r"^[0-9]{5,7}$",
                    max_length=7,
                    pattern_title="Till Number must be 5 to 7 digits.",
                ),
                FieldSpec(
                    name="phone",
                    label="Phone",
                    pattern=r"^[0-9]{10}$",
                    pattern_title="Phone must be 10 digits.",
                ),
            ],
            default_customization=default_customization,
        )
    )
    logger.info(f"Seeded layout {layout.id}, logo {logo.id} and template {template.id}")
    return template


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Seed the poster generator demo catalog.")
    parser.add_argument("--database", help="SQLite database path (defaults to the configured one)")
    args = parser.parse_args(argv)

    overrides = {"database": {"path": args.database}} if args.database else None
    settings = load_settings(overrides)
    configure_logging(settings.app.log_level)

    seed_demo_catalog(PosterCatalog(Database(settings.database.path)))


if __name__ == "__main__":
    main()
