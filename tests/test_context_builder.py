"""
Tests for rendering context assembly.
"""

import json

import pytest
from markupsafe import Markup

from poster_gen_backend.context_builder import (
    AssetSlot,
    RenderingContextBuilder,
    parse_asset_id,
    split_digits,
)
from poster_gen_backend.database import MAX_ROW_ID
from poster_gen_backend.errors import ConfigurationError
from poster_gen_backend.models import PosterInput
from poster_gen_backend.repositories import TemplateRecord
from poster_gen_backend.utils import utcnow


def make_record(default_customization):
    now = utcnow()
    raw = default_customization if isinstance(default_customization, str) else json.dumps(default_customization)
    return TemplateRecord(
        id=7,
        name="Standard Till",
        type="till",
        layout_id=1,
        price=0,
        thumbnail_url=None,
        is_active=True,
        required_fields="[]",
        default_customization=raw,
        layout_file_path="standard.html",
        created_at=now,
        updated_at=now,
    )


@pytest.fixture
def builder(catalog):
    return RenderingContextBuilder(catalog.asset_repository.get_by_id)


class TestMergePrecedence:
    """Later layers win on key collisions."""

    def test_customization_overrides_default(self, builder):
        context = builder.build(
            make_record({"color": "blue"}),
            PosterInput(business_name="Acme", customization_data={"color": "red"}),
        )
        assert context["color"] == "red"

    def test_data_overrides_customization(self, builder):
        context = builder.build(
            make_record({"color": "blue"}),
            PosterInput(business_name="Acme", data={"color": "green"}, customization_data={"color": "red"}),
        )
        assert context["color"] == "green"

    def test_business_name_always_wins(self, builder):
        context = builder.build(
            make_record({"business_name": "Default"}),
            PosterInput(business_name="Acme", data={"business_name": "Other"}),
        )
        assert context["business_name"] == "Acme"

    def test_double_encoded_defaults_are_unwrapped(self, builder):
        context = builder.build(make_record(json.dumps(json.dumps({"color": "blue"}))), PosterInput(business_name="A"))
        assert context["color"] == "blue"

    def test_non_object_defaults_are_configuration_error(self, builder):
        with pytest.raises(ConfigurationError):
            builder.build(make_record("[1, 2]"), PosterInput(business_name="A"))

    def test_build_is_deterministic(self, builder):
        record = make_record({"color": "blue"})
        poster_input = PosterInput(business_name="Acme", data={"till_number": "123"})
        assert builder.build(record, poster_input) == builder.build(record, poster_input)


class TestDigitSplit:
    """``*_number`` fields gain a ``*_numberSplit`` list."""

    def test_digits_are_split(self, builder):
        context = builder.build(make_record({}), PosterInput(business_name="A", data={"till_number": "12345"}))
        assert context["till_numberSplit"] == ["1", "2", "3", "4", "5"]

    def test_empty_value_gives_empty_list(self, builder):
        context = builder.build(make_record({}), PosterInput(business_name="A", data={"till_number": ""}))
        assert context["till_numberSplit"] == []

    def test_non_string_value_gives_empty_list(self, builder):
        context = builder.build(make_record({}), PosterInput(business_name="A", data={"till_number": 12345}))
        assert context["till_numberSplit"] == []

    def test_split_digits_helper(self):
        assert split_digits("07") == ["0", "7"]
        assert split_digits(None) == []


class TestAssetInjection:
    """Asset references resolve to trusted markup."""

    def test_logo_injected_with_default_color(self, builder, make_logo):
        logo = make_logo(default_color="#123456")
        context = builder.build(
            make_record({"header_logo_asset_id": logo.id}),
            PosterInput(business_name="A"),
        )
        assert context["header_logo_svg"] == logo.data
        assert isinstance(context["header_logo_svg"], Markup)
        assert context["primary_color"] == "#123456"

    def test_user_color_not_overridden_by_asset(self, builder, make_logo):
        logo = make_logo(default_color="#123456")
        context = builder.build(
            make_record({"header_logo_asset_id": logo.id}),
            PosterInput(business_name="A", customization_data={"primary_color": "#000000"}),
        )
        assert context["primary_color"] == "#000000"

    def test_template_default_color_replaced_by_asset_color(self, builder, make_logo):
        logo = make_logo(default_color="#123456")
        context = builder.build(
            make_record({"header_logo_asset_id": logo.id, "primary_color": "#FFFFFF"}),
            PosterInput(business_name="A"),
        )
        assert context["primary_color"] == "#123456"

    def test_missing_asset_is_not_fatal(self, builder, caplog):
        context = builder.build(make_record({"header_logo_asset_id": 99999}), PosterInput(business_name="A"))
        assert context["header_logo_svg"] == ""
        assert "not found" in caplog.text

    def test_wrong_asset_type_is_ignored(self, builder, make_logo):
        icon = make_logo(asset_type="icon")
        context = builder.build(make_record({"header_logo_asset_id": icon.id}), PosterInput(business_name="A"))
        assert context["header_logo_svg"] == ""

    def test_ad_hoc_slot_accepts_any_type(self, builder, make_logo):
        icon = make_logo(asset_type="icon", default_color="#ABCDEF")
        context = builder.build(
            make_record({}),
            PosterInput(business_name="A", customization_data={"badge_asset_id": str(icon.id)}),
        )
        assert context["badge_svg"] == icon.data
        assert context["badge_color"] == "#ABCDEF"

    def test_markup_key_always_present(self, builder):
        context = builder.build(make_record({}), PosterInput(business_name="A"))
        assert context["header_logo_svg"] == ""

    def test_custom_slots(self, catalog, make_logo):
        logo = make_logo()
        builder = RenderingContextBuilder(
            catalog.asset_repository.get_by_id,
            slots=[AssetSlot(name="footer_logo", asset_type="logo", color_key="accent")],
        )
        context = builder.build(make_record({"footer_logo_asset_id": logo.id}), PosterInput(business_name="A"))
        assert context["footer_logo_svg"] == logo.data
        assert context["accent"] == "#FF0000"


class TestParseAssetId:
    @pytest.mark.parametrize(
        "value, expected",
        [(3, 3), (3.0, 3), ("4", 4), (" 5 ", 5), (MAX_ROW_ID, MAX_ROW_ID), (str(MAX_ROW_ID), MAX_ROW_ID)],
    )
    def test_accepts_numeric_forms(self, value, expected):
        assert parse_asset_id(value) == expected

    @pytest.mark.parametrize("value", [0, -1, True, "abc", 2.5, None, ""])
    def test_rejects_everything_else(self, value):
        assert parse_asset_id(value) is None

    @pytest.mark.parametrize("value", ["²", "٣", "７", "1_000"])
    def test_rejects_non_ascii_digits(self, value):
        assert parse_asset_id(value) is None

    @pytest.mark.parametrize(
        "value",
        [MAX_ROW_ID + 1, 10**20, "99999999999999999999", 1e20, float("inf"), float("nan"), "9" * 5000],
    )
    def test_rejects_ids_sqlite_cannot_store(self, value):
        assert parse_asset_id(value) is None

    @pytest.mark.parametrize("value", ["²", 10**20])
    def test_unusable_reference_leaves_slot_empty(self, builder, value):
        context = builder.build(
            make_record({}),
            PosterInput(business_name="A", customization_data={"header_logo_asset_id": value}),
        )
        assert context["header_logo_svg"] == ""
