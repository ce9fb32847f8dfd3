from __future__ import annotations

from collections.abc import Mapping

from jinja2 import Environment
from markupsafe import escape

_ENV = Environment(autoescape=True)
_LINK_TEMPLATE = _ENV.from_string('<a href="{{ href }}" target="_blank">{{ text }}</a>')

LINK_SCHEMES = ("http://", "https://")


def render_config_value(value: str) -> str:
    if value.startswith(LINK_SCHEMES):
        return _LINK_TEMPLATE.render(href=value, text=value.split("//", 1)[1])
    return str(escape(value))


def render_config_pairs(config_pairs: Mapping[str, str] | None) -> str:
    """Sanitized ``name=value`` HTML for a record's config map.

    Names and values are escaped; http(s) values become links that show the
    value without its scheme.
    """
    if not config_pairs:
        return ""
    rendered = [
        f"{escape(name)}={render_config_value(str(value))}"
        for name, value in config_pairs.items()
    ]
    return ", ".join(rendered)
