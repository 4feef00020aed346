from pathlib import Path

from md2gslides import config
from md2gslides.config import DeckOptions


def test_defaults():
    options = DeckOptions()

    assert (options.slide_separator, options.style, options.title) == ("heading", "default", None)


def test_front_matter_overlays_defaults():
    defaults = DeckOptions(style="dark", title="Base")
    options = DeckOptions.from_front_matter("slide-separator: hr\ntitle: Deck\n", defaults)

    assert options == DeckOptions(slide_separator="hr", style="dark", title="Deck")
    assert defaults.title == "Base"


def test_invalid_separator_is_ignored(caplog):
    options = DeckOptions.from_front_matter("slide_separator: page\n")

    assert options.slide_separator == "heading"
    assert "Unknown slide_separator" in caplog.text


def test_invalid_yaml_keeps_defaults(caplog):
    options = DeckOptions.from_front_matter("title: [unclosed\n")

    assert options == DeckOptions()
    assert "invalid front matter" in caplog.text


def test_non_mapping_front_matter_is_ignored():
    assert DeckOptions.from_front_matter("- a\n- b\n") == DeckOptions()


def test_unknown_keys_are_ignored():
    assert DeckOptions.from_front_matter("theme_color: red\n") == DeckOptions()


def test_override_skips_none():
    options = DeckOptions(style="dark").override(style=None, title="New")

    assert options == DeckOptions(style="dark", title="New")


def test_paths_follow_home_env(monkeypatch, tmp_path):
    monkeypatch.setenv("MD2GSLIDES_HOME", str(tmp_path))

    assert config.home_dir() == tmp_path
    assert config.client_id_path() == tmp_path / "client_id.json"
    assert config.token_store_path() == tmp_path / "credentials.json"


def test_default_home(monkeypatch):
    monkeypatch.delenv("MD2GSLIDES_HOME", raising=False)

    assert config.home_dir() == Path("~/.md2googleslides").expanduser()


def test_service_account_path(monkeypatch):
    monkeypatch.delenv("GOOGLE_SLIDES_CREDENTIALS", raising=False)
    assert config.service_account_path() is None

    monkeypatch.setenv("GOOGLE_SLIDES_CREDENTIALS", "/tmp/sa.json")
    assert config.service_account_path() == "/tmp/sa.json"
