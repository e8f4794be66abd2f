# app/web/ui/slot_html.py
from __future__ import annotations

import pathlib
import re
from typing import Any, List, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.services.slot_renderer import RenderedSlot

TEMPLATES_DIR = pathlib.Path(__file__).resolve().parents[2] / "templates"

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def css_style(styles: Mapping[str, Any]) -> str:
    """{"fontSize": "14px"} -> "font-size: 14px" (orden de inserción, sin valores vacíos)."""
    parts: List[str] = []
    for prop, value in (styles or {}).items():
        if value is None or value == "":
            continue
        name = prop if prop.startswith("--") else _CAMEL_RE.sub("-", prop).lower()
        parts.append(f"{name}: {value}")
    return "; ".join(parts)


def _build_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["css_style"] = css_style
    return env


_env = _build_env()


def render_layout_html(
    slots: List[RenderedSlot],
    *,
    page_type: Optional[str] = None,
    view_mode: Optional[str] = None,
) -> str:
    """Materializa el árbol resuelto a HTML. Mismas entradas -> mismo HTML byte a byte."""
    template = _env.get_template("slots/layout.html")
    return template.render(slots=slots, page_type=page_type, view_mode=view_mode)
