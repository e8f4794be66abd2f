from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from markupsafe import Markup

# Un widget recibe el slot (ya con content/metadata resueltos) y el contexto de runtime.
# Devuelve markup confiable; es responsable de escapar lo que venga del contexto.
WidgetRenderer = Callable[[Mapping[str, Any], Mapping[str, Any]], str]


@dataclass
class WidgetMeta:
    key: str
    label: str
    renderer: WidgetRenderer
    # Hints para el editor (qué datos del contexto consume, etc.)
    ui: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "ui": self.ui or {},
        }


class WidgetRegistry:
    """
    Registro cerrado de widgets para slots de tipo "component".
    Un nombre desconocido devuelve None y el renderer cae al content del slot.
    """

    def __init__(self, widgets: Optional[List[WidgetMeta]] = None) -> None:
        self._widgets: Dict[str, WidgetMeta] = {}
        for w in widgets or []:
            self._widgets[w.key] = w

    def register(self, name: str, renderer: WidgetRenderer, *, label: Optional[str] = None, **ui: Any) -> None:
        self._widgets[name] = WidgetMeta(key=name, label=label or name, renderer=renderer, ui=ui)

    def lookup(self, name: Optional[str]) -> Optional[WidgetRenderer]:
        if not name:
            return None
        meta = self._widgets.get(name)
        return meta.renderer if meta else None

    def names(self) -> List[str]:
        return sorted(self._widgets)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {k: self._widgets[k].to_dict() for k in self.names()}


# ===================== Built-ins =====================

def _get(d: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(d, Mapping):
            return None
        d = d.get(key)
    return d


def render_store_logo(slot: Mapping[str, Any], context: Mapping[str, Any]) -> str:
    name = _get(context, "store", "name") or ""
    logo = _get(context, "settings", "store_logo") or _get(context, "store", "logo_url")
    if isinstance(logo, str) and logo:
        return str(Markup('<a href="/" class="store-logo"><img src="{}" alt="{}"></a>').format(logo, name))
    return str(Markup('<a href="/" class="store-logo"><span>{}</span></a>').format(name))


def render_cart_item_count(slot: Mapping[str, Any], context: Mapping[str, Any]) -> str:
    cart = _get(context, "cart")
    count = _get(cart, "items_count")
    if not isinstance(count, int) or isinstance(count, bool):
        items = _get(cart, "items")
        count = len(items) if isinstance(items, list) else 0
    return str(Markup('<span class="cart-item-count">{}</span>').format(count))


def render_breadcrumbs(slot: Mapping[str, Any], context: Mapping[str, Any]) -> str:
    crumbs = _get(context, "breadcrumbs")
    if not isinstance(crumbs, list) or not crumbs:
        return ""
    parts = []
    last = len(crumbs) - 1
    for i, c in enumerate(crumbs):
        if not isinstance(c, Mapping):
            continue
        name, url = c.get("name") or "", c.get("url")
        if url and i != last:
            parts.append(Markup('<li><a href="{}">{}</a></li>').format(url, name))
        else:
            parts.append(Markup('<li aria-current="page">{}</li>').format(name) if i == last
                         else Markup("<li>{}</li>").format(name))
    return str(Markup('<nav class="breadcrumbs"><ol>{}</ol></nav>').format(Markup("").join(parts)))


def build_default_registry() -> WidgetRegistry:
    return WidgetRegistry([
        WidgetMeta(key="store_logo", label="Store logo", renderer=render_store_logo,
                   ui={"context": ["store.name", "settings.store_logo"]}),
        WidgetMeta(key="cart_item_count", label="Cart item count", renderer=render_cart_item_count,
                   ui={"context": ["cart.items_count", "cart.items"]}),
        WidgetMeta(key="breadcrumbs", label="Breadcrumbs", renderer=render_breadcrumbs,
                   ui={"context": ["breadcrumbs"]}),
    ])


default_registry = build_default_registry()
