from base64 import b64decode

from pictoboard.pictos.placeholder import DEFAULT_COLOR, TYPE_COLORS, color_for, placeholder_for, placeholder_svg


def decode(uri: str) -> str:
    return b64decode(uri.split(",", 1)[1]).decode("utf-8")


def test_placeholder_is_deterministic():
    assert placeholder_for("körte", "noun") == placeholder_for("körte", "noun")
    assert placeholder_for("körte", "noun") != placeholder_for("körte", "verb")


def test_colour_follows_grammatical_type():
    assert color_for("verb") == TYPE_COLORS["verb"]
    assert color_for(" Ige ") == TYPE_COLORS["verb"]
    assert color_for(None) == DEFAULT_COLOR
    assert color_for("unknown") == DEFAULT_COLOR


def test_label_is_escaped_and_kept():
    svg = decode(placeholder_for("<alma & körte>", "noun"))
    assert "&lt;alma &amp; körte&gt;" in svg
    assert TYPE_COLORS["noun"] in svg


def test_long_labels_get_smaller_font():
    assert 'font-size="48"' in placeholder_svg("alma")
    assert 'font-size="48"' not in placeholder_svg("szamárfülű elefántcsont")
