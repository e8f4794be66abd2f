# tests/test_slot_filters.py
from __future__ import annotations

from app.services.slot_filters import (
    evaluate_render_condition,
    filter_by_render_condition,
    filter_slots_by_view_mode,
    is_visible_in_view_mode,
)

SLOTS = [
    {"id": "always", "type": "text"},
    {"id": "empty", "type": "text", "viewMode": ["emptyCart"]},
    {"id": "full", "type": "text", "viewMode": ["withProducts"]},
    {"id": "both", "type": "text", "viewMode": ["emptyCart", "withProducts"]},
    {"id": "wild", "type": "text", "viewMode": ["default"]},
    {"id": "single", "type": "text", "viewMode": "withProducts"},
]


def _ids(slots):
    return [s["id"] for s in slots]


def test_view_mode_filter():
    assert _ids(filter_slots_by_view_mode(SLOTS, "emptyCart")) == ["always", "empty", "both", "wild"]
    assert _ids(filter_slots_by_view_mode(SLOTS, "withProducts")) == ["always", "full", "both", "wild", "single"]


def test_no_view_mode_disables_filter():
    assert _ids(filter_slots_by_view_mode(SLOTS, None)) == _ids(SLOTS)


def test_empty_view_mode_list_is_always_visible():
    assert is_visible_in_view_mode({"id": "x", "viewMode": []}, "anything")


def test_render_conditions_follow_ui_state():
    assert evaluate_render_condition("hideOnMobileMenu", {"mobileMenuOpen": False})
    assert not evaluate_render_condition("hideOnMobileMenu", {"mobileMenuOpen": True})
    assert evaluate_render_condition("showOnMobileSearch", {"mobileSearchOpen": True})
    assert not evaluate_render_condition("showOnMobileSearch", {})
    assert evaluate_render_condition(None, {})


def test_unknown_render_condition_renders_and_warns():
    warnings = []
    assert evaluate_render_condition("onFullMoon", {}, warnings)
    assert len(warnings) == 1
    assert "onFullMoon" in str(warnings[0])


def test_filter_by_render_condition():
    slots = [
        {"id": "nav", "metadata": {"renderCondition": "hideOnMobileMenu"}},
        {"id": "menu", "metadata": {"renderCondition": "showOnMobileMenu"}},
        {"id": "logo"},
    ]
    assert _ids(filter_by_render_condition(slots, {"mobileMenuOpen": True})) == ["menu", "logo"]
    assert _ids(filter_by_render_condition(slots, {})) == ["nav", "logo"]
