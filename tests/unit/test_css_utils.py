import pytest

from md2gslides.css_utils import (
    StyleSheet,
    camel_case,
    parse_color,
    parse_font_size,
    parse_inline_style,
    resolve_style,
)
from md2gslides.models import StyleDefinition


@pytest.mark.parametrize(
    "name,expected",
    [("font-weight", "fontWeight"), ("color", "color"), ("backgroundColor", "backgroundColor")],
)
def test_camel_case(name, expected):
    assert camel_case(name) == expected


def test_parse_color_forms():
    red = {"opaqueColor": {"rgbColor": {"red": 1.0, "green": 0.0, "blue": 0.0}}}

    assert parse_color("red") == red
    assert parse_color("#ff0000") == red
    assert parse_color("rgb(255, 0, 0)") == red
    assert parse_color("not-a-color") is None


@pytest.mark.parametrize("value,expected", [("12", 12.0), ("14pt", 14.0), ("16px", 12.0), ("2em", None)])
def test_parse_font_size(value, expected):
    assert parse_font_size(value) == expected


def test_resolve_style_accepts_both_key_forms():
    assert resolve_style({"font-weight": "bold"}) == resolve_style({"fontWeight": "bold"})


@pytest.mark.parametrize(
    "declarations,expected",
    [
        ({"font-weight": "700"}, StyleDefinition(bold=True)),
        ({"font-weight": "400"}, StyleDefinition(bold=False)),
        ({"font-style": "italic"}, StyleDefinition(italic=True)),
        ({"text-decoration": "underline line-through"}, StyleDefinition(underline=True, strikethrough=True)),
        ({"font-family": "'Fira Code', monospace"}, StyleDefinition(font_family="Fira Code")),
        ({"font-variant": "small-caps"}, StyleDefinition(small_caps=True)),
        ({"font-size": "18pt"}, StyleDefinition(font_size=18.0)),
        ({"margin": "4px"}, StyleDefinition()),
    ],
)
def test_resolve_style(declarations, expected):
    assert resolve_style(declarations) == expected


def test_parse_inline_style():
    style = parse_inline_style("color: #00ff00; font-weight: bold; bogus")

    assert style.bold is True
    assert style.foreground_color["opaqueColor"]["rgbColor"]["green"] == 1.0


def test_stylesheet_selectors_and_overrides():
    sheet = StyleSheet("h1, h2 { color: red; font-weight: bold }\nh2 { color: blue }")

    assert sheet.style_for("h1").bold is True
    assert sheet.style_for("h2").foreground_color["opaqueColor"]["rgbColor"]["blue"] == 1.0
    assert sheet.style_for("h2").bold is True
    assert sheet.style_for("h3") is None


def test_stylesheet_classes_later_wins():
    sheet = StyleSheet(".a { color: red }\n.b { color: blue }")

    style = sheet.style_for_classes(["a", "b"])
    assert style.foreground_color["opaqueColor"]["rgbColor"] == {"red": 0.0, "green": 0.0, "blue": 1.0}


def test_stylesheet_skips_at_rules_and_invalid_css():
    sheet = StyleSheet("@media print { p { color: red } }\n.ok { font-style: italic }\n")

    assert list(sheet.rules) == [".ok"]


def test_copy_is_independent():
    sheet = StyleSheet(".a { color: red }")
    copy = sheet.copy()
    copy.merge(".a { font-weight: bold }")

    assert "font-weight" not in sheet.rules[".a"]
    assert copy.style_for(".a").bold is True


def test_theme_stylesheet():
    sheet = StyleSheet.for_theme("default")

    assert sheet.style_for("code").font_family == "Courier New"
    assert sheet.style_for("th").bold is True
