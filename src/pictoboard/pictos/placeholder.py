from base64 import b64encode
from typing import Optional
from xml.sax.saxutils import escape

# Background colours per grammatical type, in the usual AAC colour coding
TYPE_COLORS = {
    "noun": "#f5a623",       # orange
    "verb": "#7ed321",       # green
    "adjective": "#4a90e2",  # blue
    "adverb": "#9b59b6",     # purple
    "pronoun": "#f8e71c",    # yellow
    "social": "#ff7eb9",     # pink
}
DEFAULT_COLOR = "#d0d0d0"

# loader aliases
TYPE_ALIASES = {
    "főnév": "noun",
    "ige": "verb",
    "melléknév": "adjective",
    "határozószó": "adverb",
    "névmás": "pronoun",
    "noun_phrase": "noun",
    "adj": "adjective",
    "adv": "adverb",
    "pron": "pronoun",
}

SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="300" height="300" viewBox="0 0 300 300">'
    '<rect width="300" height="300" rx="24" fill="{color}"/>'
    '<text x="150" y="150" font-family="sans-serif" font-size="{font_size}" '
    'text-anchor="middle" dominant-baseline="central" fill="#222">{label}</text>'
    "</svg>"
)


def color_for(grammatical_type: Optional[str]) -> str:
    kind = (grammatical_type or "").strip().lower()
    kind = TYPE_ALIASES.get(kind, kind)
    return TYPE_COLORS.get(kind, DEFAULT_COLOR)


def placeholder_svg(label: str, grammatical_type: Optional[str] = None) -> str:
    label = " ".join(label.split()) or "?"
    # shrink long labels so they stay inside the tile
    font_size = 48 if len(label) <= 8 else max(18, int(48 * 8 / len(label)))
    return SVG_TEMPLATE.format(
        color=color_for(grammatical_type),
        font_size=font_size,
        label=escape(label),
    )


def placeholder_for(label: str, grammatical_type: Optional[str] = None) -> str:
    """
    Deterministic coloured tile with the label text, as a data: URI.
    Same label and type always give the same URI.
    """
    svg = placeholder_svg(label, grammatical_type)
    return "data:image/svg+xml;base64," + b64encode(svg.encode("utf-8")).decode("ascii")
