"""
Tests for Jinja2 layout rendering.
"""

import pytest
from markupsafe import Markup

from poster_gen_backend.errors import ConfigurationError, RenderError
from poster_gen_backend.renderer import TemplateRenderer, safe_html


@pytest.fixture
def templates_dir(tmp_path):
    root = tmp_path / "templates"
    root.mkdir()
    (root / "simple.html").write_text(
        "<h1>{{ business_name }}</h1><div>{{ logo_svg }}</div><p>{{ note | safe_html }}</p>",
        encoding="utf-8",
    )
    (root / "broken.html").write_text("{% if business_name %}<h1>", encoding="utf-8")
    (root / "nested").mkdir()
    (root / "nested" / "inner.html").write_text("{{ business_name }}", encoding="utf-8")
    return root


@pytest.fixture
def renderer(templates_dir):
    return TemplateRenderer(templates_dir)


class TestRender:
    def test_user_strings_are_escaped(self, renderer):
        html = renderer.render(
            {"business_name": "<script>alert(1)</script>", "logo_svg": "", "note": ""},
            "simple.html",
        )
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_markup_values_are_not_escaped(self, renderer):
        html = renderer.render(
            {"business_name": "Acme", "logo_svg": Markup("<svg></svg>"), "note": ""},
            "simple.html",
        )
        assert "<div><svg></svg></div>" in html

    def test_safe_html_filter(self, renderer):
        html = renderer.render({"business_name": "Acme", "logo_svg": "", "note": "<b>hi</b>"}, "simple.html")
        assert "<p><b>hi</b></p>" in html

    def test_nested_layout_reference(self, renderer):
        assert renderer.render({"business_name": "Acme"}, "nested/inner.html") == "Acme"

    def test_missing_variable_is_render_error(self, renderer):
        with pytest.raises(RenderError):
            renderer.render({"business_name": "Acme"}, "simple.html")

    def test_syntax_error_is_render_error(self, renderer):
        with pytest.raises(RenderError):
            renderer.render({"business_name": "Acme"}, "broken.html")


class TestLayoutResolution:
    def test_missing_file_is_configuration_error(self, renderer):
        with pytest.raises(ConfigurationError):
            renderer.render({}, "missing.html")

    def test_empty_reference_is_configuration_error(self, renderer):
        with pytest.raises(ConfigurationError):
            renderer.render({}, "  ")

    def test_path_outside_root_is_rejected(self, renderer, tmp_path):
        (tmp_path / "secret.html").write_text("secret", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            renderer.render({}, "../secret.html")

    def test_directory_is_not_a_layout(self, renderer):
        with pytest.raises(ConfigurationError):
            renderer.render({}, "nested")


class TestShippedLayout:
    """The bundled standard layout renders with only the guaranteed keys."""

    def test_standard_layout_minimal_context(self, test_dirs):
        renderer = TemplateRenderer(test_dirs["templates"])
        html = renderer.render({"business_name": "Acme", "header_logo_svg": Markup("")}, "standard.html")
        assert "Acme" in html

    def test_standard_layout_renders_digit_boxes(self, test_dirs):
        renderer = TemplateRenderer(test_dirs["templates"])
        html = renderer.render(
            {
                "business_name": "Acme",
                "header_logo_svg": Markup("<svg></svg>"),
                "till_numberSplit": ["1", "2", "3"],
                "primary_color": "#00FF00",
            },
            "standard.html",
        )
        assert html.count('class="digit"') == 3
        assert "#00FF00" in html


def test_safe_html_handles_none():
    assert safe_html(None) == Markup("")
