"""
Tests for the demo catalog seed.
"""

import asyncio

from poster_gen_backend.models import PosterInput
from poster_gen_backend.poster_service import PosterService
from poster_gen_backend.renderer import TemplateRenderer
from poster_gen_backend.repositories import PosterRepository
from poster_gen_backend.seed import main, seed_demo_catalog


def test_seed_is_idempotent(catalog):
    template = seed_demo_catalog(catalog)
    assert template is not None
    assert template.name == "Standard Till"
    assert seed_demo_catalog(catalog) is None
    assert len(catalog.layouts.list_layouts()) == 1


def test_seeded_template_generates(catalog, database, tmp_path, make_rasterizer, test_dirs):
    template = seed_demo_catalog(catalog)
    rasterizer = make_rasterizer(output_dir=tmp_path / "outputs")
    service = PosterService(
        template_repository=catalog.template_repository,
        asset_repository=catalog.asset_repository,
        poster_repository=PosterRepository(database),
        renderer=TemplateRenderer(test_dirs["templates"]),
        rasterizer=rasterizer,
    )

    poster = asyncio.run(
        service.generate_poster(
            template.id,
            PosterInput(business_name="Mama Mboga", data={"till_number": "123456", "phone": "0712345678"}),
        )
    )

    html = rasterizer.captured[0]["html"]
    assert poster.status.value == "completed"
    assert html.count('class="digit"') == 6
    assert "<svg" in html
    assert "Mama Mboga" in html


def test_main_uses_database_argument(tmp_path):
    db_path = tmp_path / "seeded.db"
    main(["--database", str(db_path)])
    assert db_path.exists()
