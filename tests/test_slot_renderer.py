# tests/test_slot_renderer.py
from __future__ import annotations

import copy

from app.seeds.slot_defaults_loader import load_page_defaults
from app.services.slot_renderer import render_slots
from app.web.ui.slot_html import css_style, render_layout_html
from app.widget_registry import WidgetRegistry, build_default_registry


def _cart_slots():
    return {
        "main": {"id": "main", "type": "grid", "className": "cart-main"},
        "empty_msg": {
            "id": "empty_msg", "type": "text", "parentId": "main",
            "content": "Tu carrito está vacío", "viewMode": ["emptyCart"],
        },
        "items": {
            "id": "items", "type": "container", "parentId": "main",
            "viewMode": ["withProducts"], "colSpan": {"withProducts": "col-span-12 lg:col-span-8"},
            "position": {"row": 1, "col": 0},
        },
        "summary": {
            "id": "summary", "type": "text", "parentId": "main",
            "viewMode": ["withProducts"], "colSpan": 4,
            "content": "Total: {{cart.total}}",
            "position": {"row": 0, "col": 0},
        },
        "line": {
            "id": "line", "type": "text", "parentId": "items",
            "content": "{{#each cart.items}}<p>{{name}}</p>{{/each}}",
        },
    }


CTX = {"cart": {"total": "30.00", "items": [{"name": "Mug"}, {"name": "Tee"}]}, "store": {"name": "Acme"}}


def test_view_mode_and_grid_order():
    tree = render_slots(_cart_slots(), CTX, "withProducts")
    assert [s.slot_id for s in tree] == ["main"]
    main = tree[0]
    assert [c.slot_id for c in main.children] == ["summary", "items"]
    summary, items = main.children
    assert summary.resolved_content == "Total: 30.00"
    assert summary.col_span_class == "col-span-4"
    assert items.col_span_class == "col-span-12 lg:col-span-8"
    assert items.span == 8
    assert items.children[0].resolved_content == "<p>Mug</p><p>Tee</p>"


def test_empty_cart_mode():
    tree = render_slots(_cart_slots(), {"cart": {"items": []}}, "emptyCart")
    assert [c.slot_id for c in tree[0].children] == ["empty_msg"]


def test_render_is_pure_and_repeatable():
    slots = _cart_slots()
    before = copy.deepcopy(slots)
    first = [t.to_dict() for t in render_slots(slots, CTX, "withProducts")]
    second = [t.to_dict() for t in render_slots(slots, CTX, "withProducts")]
    assert first == second
    assert slots == before


def test_orphans_and_unknown_types_are_skipped():
    warnings = []
    slots = {
        "a": {"id": "a", "type": "text", "content": "ok"},
        "orphan": {"id": "orphan", "type": "text", "parentId": "nope"},
        "weird": {"id": "weird", "type": "marquee"},
    }
    tree = render_slots(slots, {}, warnings=warnings)
    assert [t.slot_id for t in tree] == ["a"]
    assert any("marquee" in str(w) for w in warnings)


def test_duplicate_id_on_path_is_not_rendered_twice():
    warnings = []
    slots = [
        {"id": "box", "type": "container"},
        {"id": "box", "type": "container", "parentId": "box"},
    ]
    tree = render_slots(slots, {}, warnings=warnings)
    assert len(tree) == 1
    assert tree[0].children == []
    assert any("render path" in str(w) for w in warnings)


def test_secondary_attributes_from_metadata():
    slots = {
        "img": {
            "id": "img", "type": "image", "content": "{{product.image}}",
            "metadata": {"alt": "{{product.name}}"},
        },
        "btn": {"id": "btn", "type": "button", "content": "x", "metadata": {"label": "Comprar"}},
    }
    tree = render_slots(slots, {"product": {"image": "/m.png", "name": "Mug"}})
    img, btn = tree
    assert img.resolved_content == "/m.png"
    assert img.attributes == {"alt": "Mug"}
    assert btn.attributes == {"label": "Comprar"}


def test_component_uses_registry_and_falls_back_to_content():
    slots = {
        "logo": {"id": "logo", "type": "component", "component": "store_logo"},
        "search": {"id": "search", "type": "component", "component": "search_bar", "content": "<input>"},
    }
    logo, search = render_slots(slots, {"store": {"name": "A&B"}})
    assert logo.component == "store_logo"
    assert "A&amp;B" in logo.resolved_content
    assert search.resolved_content == "<input>"


def test_custom_registry():
    registry = WidgetRegistry()
    registry.register("hello", lambda slot, ctx: f"hi {ctx.get('who')}")
    tree = render_slots({"c": {"id": "c", "type": "component", "component": "hello"}}, {"who": "bob"}, registry=registry)
    assert tree[0].resolved_content == "hi bob"
    assert "store_logo" in build_default_registry().names()


def test_style_config_is_exposed_to_level_and_descendants():
    slots = {
        "theme": {"id": "theme", "type": "style_config", "styles": {"titleColor": "{{brand.color}}"}},
        "box": {"id": "box", "type": "container"},
        "title": {
            "id": "title", "type": "text", "parentId": "box",
            "styles": {"color": "{{style_config.theme.titleColor}}"},
        },
    }
    tree = render_slots(slots, {"brand": {"color": "#123456"}})
    assert [t.slot_id for t in tree] == ["box"]
    assert tree[0].children[0].resolved_styles == {"color": "#123456"}


def test_render_condition_in_tree():
    slots = {
        "nav": {"id": "nav", "type": "text", "metadata": {"renderCondition": "hideOnMobileMenu"}},
        "menu": {"id": "menu", "type": "text", "metadata": {"renderCondition": "showOnMobileMenu"}},
    }
    assert [t.slot_id for t in render_slots(slots, {}, ui_state={"mobileMenuOpen": True})] == ["menu"]


# ---------------- HTML ----------------

def test_html_escapes_non_trusted_values():
    slots = {
        "g": {"id": "g", "type": "grid"},
        "t": {"id": "t", "type": "text", "parentId": "g", "content": "<b>{{name}}</b>", "colSpan": 6},
        "l": {
            "id": "l", "type": "link", "parentId": "g",
            "content": "/p?a=1&b=2", "metadata": {"label": "<script>x</script>"},
        },
    }
    html = render_layout_html(render_slots(slots, {"name": "Mug"}), page_type="product")
    assert 'data-page-type="product"' in html
    assert "<b>Mug</b>" in html
    assert "&lt;script&gt;" in html
    assert 'href="/p?a=1&amp;b=2"' in html
    assert "grid grid-cols-12" in html
    assert "col-span-6" in html


def test_col_span_class_only_inside_grid():
    slots = {"t": {"id": "t", "type": "text", "content": "x", "colSpan": 6}}
    html = render_layout_html(render_slots(slots, {}))
    assert "col-span-6" not in html


def test_html_is_deterministic():
    tree = render_slots(_cart_slots(), CTX, "withProducts")
    assert render_layout_html(tree, view_mode="withProducts") == render_layout_html(tree, view_mode="withProducts")


def test_css_style():
    assert css_style({"fontSize": "14px", "color": "", "--brand": "red"}) == "font-size: 14px; --brand: red"


def test_packaged_defaults_render():
    config = load_page_defaults("cart")
    assert config is not None
    tree = render_slots(config["slots"], CTX, "withProducts")
    assert tree
    html = render_layout_html(tree, page_type="cart", view_mode="withProducts")
    assert "{{" not in html
