# tests/test_slot_tree.py
from __future__ import annotations

import pytest

from app.seeds.slot_defaults_loader import list_default_page_types, load_page_defaults
from app.services.slot_tree import (
    FULL_WIDTH,
    build_parent_index,
    find_cycle,
    find_orphans,
    get_child_slots,
    parent_chain_terminates,
    parent_of,
    resolve_col_span,
    sort_slots_by_grid_coordinates,
)


def _slots():
    return {
        "main": {"id": "main", "type": "grid"},
        "title": {"id": "title", "type": "text", "parentId": "main"},
        "items": {"id": "items", "type": "container", "parentId": "main"},
        "row": {"id": "row", "type": "text", "parentId": "items"},
        "ghost": {"id": "ghost", "type": "text", "parentId": "missing"},
        "footer": {"id": "footer", "type": "text", "parentId": ""},
    }


# ---------------- índice / hijos ----------------

def test_children_keep_input_order():
    slots = _slots()
    children = get_child_slots(slots, "main")
    assert [c["id"] for c in children] == ["title", "items"]


def test_empty_parent_id_is_root():
    roots = get_child_slots(_slots(), None)
    assert [r["id"] for r in roots] == ["main", "footer"]


def test_orphans_are_excluded_from_every_level():
    index = build_parent_index(_slots())
    all_children = [s["id"] for kids in index.values() for s in kids]
    assert "ghost" not in all_children
    assert find_orphans(_slots()) == ["ghost"]


def test_get_child_slots_reuses_prebuilt_index():
    slots = _slots()
    index = build_parent_index(slots)
    assert get_child_slots(slots, "items", index) == [slots["row"]]
    assert get_child_slots(slots, "title", index) == []


# ---------------- ciclos ----------------

def test_find_cycle_reports_chain():
    slots = {
        "a": {"id": "a", "type": "container", "parentId": "b"},
        "b": {"id": "b", "type": "container", "parentId": "a"},
        "c": {"id": "c", "type": "text"},
    }
    cycle = find_cycle(slots)
    assert cycle is not None
    assert cycle[0] == cycle[-1]
    assert set(cycle) == {"a", "b"}


def test_find_cycle_none_for_tree():
    assert find_cycle(_slots()) is None


def test_parent_chain_terminates_on_tree_and_not_on_cycle():
    slots = _slots()
    assert all(parent_chain_terminates(slots, sid) for sid in ("main", "title", "items", "row", "footer"))
    # huérfano: la cadena se corta antes de llegar a una raíz
    assert parent_chain_terminates(slots, "ghost") is False
    assert parent_chain_terminates(slots, "nope") is False

    cyclic = {
        "a": {"id": "a", "type": "container", "parentId": "b"},
        "b": {"id": "b", "type": "container", "parentId": "a"},
        "c": {"id": "c", "type": "text", "parentId": "a"},
        "d": {"id": "d", "type": "text"},
    }
    assert find_cycle(cyclic) is not None
    assert [sid for sid in cyclic if not parent_chain_terminates(cyclic, sid)] == ["a", "b", "c"]
    assert parent_chain_terminates(cyclic, "d")


def test_deep_chain_terminates_within_slot_count():
    # cadena lineal s0 <- s1 <- ... <- s19: el más profundo necesita exactamente 20 saltos
    slots = {f"s{i}": {"id": f"s{i}", "type": "container", "parentId": f"s{i - 1}" if i else None} for i in range(20)}
    assert parent_chain_terminates(slots, "s19")
    assert find_cycle(slots) is None


@pytest.mark.parametrize("page_type", list_default_page_types())
def test_packaged_defaults_chains_reach_a_root(page_type):
    slots = load_page_defaults(page_type)["slots"]
    assert find_cycle(slots) is None
    for sid, slot in slots.items():
        assert parent_chain_terminates(slots, sid), sid
        hops, node = 0, slot
        while parent_of(node) is not None:
            node = slots[parent_of(node)]
            hops += 1
            assert hops <= len(slots)


# ---------------- orden de grilla ----------------

def test_grid_sort_by_row_then_col():
    slots = [
        {"id": "c", "position": {"row": 2, "col": 1}},
        {"id": "a", "position": {"row": 1, "col": 2}},
        {"id": "b", "position": {"row": 1, "col": 0}},
    ]
    assert [s["id"] for s in sort_slots_by_grid_coordinates(slots)] == ["b", "a", "c"]


def test_grid_sort_needs_row_and_col():
    slots = [
        {"id": "c", "position": {"row": 2, "col": 1}},
        {"id": "a", "position": {"row": 1, "col": 2}},
        {"id": "row_only", "position": {"row": 0}},
        {"id": "col_only", "position": {"col": 0}},
    ]
    out = [s["id"] for s in sort_slots_by_grid_coordinates(slots)]
    assert out == ["a", "c", "row_only", "col_only"]


def test_grid_sort_keeps_unpositioned_in_place():
    slots = [
        {"id": "x"},
        {"id": "late", "position": {"row": 3, "col": 0}},
        {"id": "y", "position": None},
        {"id": "early", "position": {"row": 0, "col": 0}},
    ]
    assert [s["id"] for s in sort_slots_by_grid_coordinates(slots)] == ["x", "early", "y", "late"]


def test_grid_sort_is_stable_on_ties():
    slots = [
        {"id": "first", "position": {"row": 1, "col": 1}},
        {"id": "second", "position": {"row": 1, "col": 1}},
    ]
    assert [s["id"] for s in sort_slots_by_grid_coordinates(slots)] == ["first", "second"]


# ---------------- colSpan ----------------

@pytest.mark.parametrize(
    "value, expected_class, expected_span",
    [
        (6, "col-span-6", 6),
        (None, "col-span-12", 12),
        (0, "col-span-12", 12),
        (13, "col-span-12", 12),
        ("garbage", "col-span-12", 12),
        ("col-span-12 lg:col-span-8", "col-span-12 lg:col-span-8", 8),
    ],
)
def test_col_span_scalars(value, expected_class, expected_span):
    col = resolve_col_span(value)
    assert col.class_name == expected_class
    assert col.span == expected_span


def test_col_span_view_mode_map():
    value = {"emptyCart": 12, "withProducts": "col-span-12 lg:col-span-8"}
    assert resolve_col_span(value, "emptyCart").span == 12
    with_products = resolve_col_span(value, "withProducts")
    assert with_products.class_name == "col-span-12 lg:col-span-8"
    assert with_products.span == 8
    # sin clave del modo ni "default": primer valor
    assert resolve_col_span(value, "other").span == 12


def test_col_span_view_mode_map_default_key():
    value = {"withProducts": 4, "default": 6}
    assert resolve_col_span(value, "emptyCart").span == 6


def test_col_span_legacy_breakpoints():
    legacy = {"mobile": 12, "tablet": 6, "desktop": 4}
    desktop = resolve_col_span(legacy)
    assert desktop.class_name == "col-span-12 md:col-span-6 lg:col-span-4"
    assert desktop.span == 4
    assert resolve_col_span(legacy, viewport="tablet").span == 6
    assert resolve_col_span(legacy, viewport="mobile").span == 12


def test_col_span_class_by_viewport():
    assert resolve_col_span("col-span-12 lg:col-span-8", viewport="mobile").span == 12
    only_large = resolve_col_span("lg:col-span-3", viewport="mobile")
    assert only_large.class_name == "lg:col-span-3"
    assert only_large.span == 12


def test_col_span_empty_map_is_full_width():
    assert resolve_col_span({}) == FULL_WIDTH
