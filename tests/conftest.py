"""
Pytest configuration and fixtures for Poster Generator Backend tests.
"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

REPO_ROOT = Path(__file__).resolve().parents[1]

# Set test environment variables before importing the app
_TEST_ROOT = tempfile.mkdtemp(prefix="poster_gen_test_")
os.environ["DATABASE_PATH"] = os.path.join(_TEST_ROOT, "poster_gen.db")
os.environ["OUTPUT_DIR"] = os.path.join(_TEST_ROOT, "outputs")
os.environ["TEMPLATES_DIR"] = str(REPO_ROOT / "templates")
os.environ["JWT_SECRET"] = "test-jwt-secret-0123456789abcdef0123456789"
os.environ["RENDER_SETTLE_DELAY_MS"] = "0"
os.environ["LOG_LEVEL"] = "WARNING"

from poster_gen_backend.catalog import PosterCatalog  # noqa: E402
from poster_gen_backend.database import Database  # noqa: E402
from poster_gen_backend.main import app, poster_service  # noqa: E402
from poster_gen_backend.main import catalog as app_catalog  # noqa: E402
from poster_gen_backend.models import AssetCreate, FieldSpec, LayoutCreate, TemplateCreate  # noqa: E402
from poster_gen_backend.rasterizer import BrowserRasterizer  # noqa: E402

FAKE_PDF = b"%PDF-1.4\n% fake artifact\n%%EOF"

LOGO_SVG = '<svg xmlns="http://www.w3.org/2000/svg"><circle r="4"/></svg>'


class FakeRasterizer(BrowserRasterizer):
    """Skips the browser: returns a fixed payload and records what it was given."""

    def __init__(self, *args, payload=FAKE_PDF, delay=0.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.payload = payload
        self.delay = delay
        self.captured = []

    async def _capture(self, html, mode, setup):
        self.captured.append({"html": html, "mode": mode, "setup": setup})
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.payload


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Expose and cleanup the test directories."""
    yield {
        "root": _TEST_ROOT,
        "output": os.environ["OUTPUT_DIR"],
        "templates": os.environ["TEMPLATES_DIR"],
    }

    # Cleanup after all tests
    shutil.rmtree(_TEST_ROOT, ignore_errors=True)


@pytest.fixture
def fake_rasterizer(monkeypatch):
    """Swap the app's rasterizer for one that never launches a browser."""
    rasterizer = FakeRasterizer(output_dir=poster_service.rasterizer.output_dir, timeout_seconds=5)
    monkeypatch.setattr(poster_service, "rasterizer", rasterizer)
    return rasterizer


@pytest.fixture
def client(fake_rasterizer):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    """Register a fresh user and return its bearer header."""
    email = f"user-{uuid4().hex[:8]}@example.com"
    response = client.post("/auth/register", json={"email": email, "password": "s3cret-pass"})
    assert response.status_code == 201
    response = client.post("/auth/login", json={"email": email, "password": "s3cret-pass"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def database(tmp_path):
    """An isolated database for unit tests."""
    return Database(tmp_path / "unit.db")


@pytest.fixture
def catalog(database):
    return PosterCatalog(database)


def _create_template(catalog, required_fields=None, default_customization=None, layout_file="standard.html"):
    """Create a layout and an active template pointing at it."""
    suffix = uuid4().hex[:8]
    layout = catalog.layouts.create_layout(LayoutCreate(name=f"layout-{suffix}", file_path=layout_file))
    return catalog.templates.create_template(
        TemplateCreate(
            name=f"template-{suffix}",
            type="till",
            layout_id=layout.id,
            required_fields=[FieldSpec(**spec) for spec in (required_fields or [])],
            default_customization=default_customization or {},
        )
    )


def _create_logo(catalog, default_color="#FF0000", asset_type="logo"):
    return catalog.assets.create_asset(
        AssetCreate(name=f"logo-{uuid4().hex[:8]}", type=asset_type, data=LOGO_SVG, default_color=default_color)
    )


@pytest.fixture
def make_template(catalog):
    """Factory for templates in the unit-test database."""
    return lambda **kwargs: _create_template(catalog, **kwargs)


@pytest.fixture
def make_logo(catalog):
    return lambda **kwargs: _create_logo(catalog, **kwargs)


@pytest.fixture
def make_app_template():
    """Factory for templates in the running app's database."""
    return lambda **kwargs: _create_template(app_catalog, **kwargs)


@pytest.fixture
def make_app_logo():
    return lambda **kwargs: _create_logo(app_catalog, **kwargs)


@pytest.fixture
def make_rasterizer():
    """Factory for browserless rasterizers."""
    return FakeRasterizer
