# app/services/slot_tree.py
# Árbol de slots: índice por parentId, orden por coordenadas de grilla, ciclos y colSpan.
# Todo es puro (sin DB / sin I/O); el render pass construye el índice una sola vez.
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

Slot = Dict[str, Any]
SlotSet = Union[Mapping[str, Slot], Iterable[Slot]]
ParentIndex = Dict[Optional[str], List[Slot]]

GRID_COLUMNS = 12

# "col-span-6", "md:col-span-4", "lg:col-span-full"
COL_SPAN_TOKEN_RE = re.compile(r"(?:^|\s)(?:(sm|md|lg|xl|2xl):)?col-span-(\d+|full)(?=\s|$)")

# breakpoint preferido por viewport ("" = clase base sin prefijo)
_BREAKPOINTS_BY_VIEWPORT = {
    "desktop": ("2xl", "xl", "lg", "md", "sm", ""),
    "tablet": ("md", "sm", ""),
    "mobile": ("",),
}

LEGACY_COL_SPAN_KEYS = frozenset({"mobile", "tablet", "desktop"})


def _slot_items(slots: SlotSet) -> List[Tuple[Optional[str], Slot]]:
    if isinstance(slots, Mapping):
        return [(s.get("id") or k, s) for k, s in slots.items() if isinstance(s, Mapping)]
    return [(s.get("id"), s) for s in slots if isinstance(s, Mapping)]


def parent_of(slot: Mapping[str, Any]) -> Optional[str]:
    # "" y None son raíz
    return slot.get("parentId") or None


# ===================== Índice padre -> hijos =====================

def build_parent_index(slots: SlotSet) -> ParentIndex:
    """
    Agrupa los slots por parentId en una sola pasada, conservando el orden de entrada.
    Los huérfanos (parentId que no existe en el set) no entran en ninguna lista.
    """
    items = _slot_items(slots)
    ids = {sid for sid, _ in items if sid is not None}
    index: ParentIndex = {}
    for _, slot in items:
        pid = parent_of(slot)
        if pid is not None and pid not in ids:
            continue
        index.setdefault(pid, []).append(slot)
    return index


def get_child_slots(
    all_slots: SlotSet,
    parent_id: Optional[str],
    index: Optional[ParentIndex] = None,
) -> List[Slot]:
    if index is None:
        index = build_parent_index(all_slots)
    return list(index.get(parent_id or None, []))


def find_orphans(slots: SlotSet) -> List[str]:
    items = _slot_items(slots)
    ids = {sid for sid, _ in items}
    return [sid for sid, s in items if parent_of(s) is not None and parent_of(s) not in ids]


def find_cycle(slots: SlotSet) -> Optional[List[str]]:
    """Devuelve el primer ciclo de parentId encontrado (p.ej. ["a", "b", "a"]) o None."""
    parents = {sid: parent_of(s) for sid, s in _slot_items(slots) if sid is not None}
    done: set = set()
    for start in parents:
        path: List[str] = []
        on_path: set = set()
        node: Optional[str] = start
        while node is not None and node in parents and node not in done:
            if node in on_path:
                return path[path.index(node):] + [node]
            on_path.add(node)
            path.append(node)
            node = parents[node]
        done.update(path)
    return None


def parent_chain_terminates(slots: SlotSet, slot_id: str) -> bool:
    """
    True si la cadena de parentId desde `slot_id` llega a una raíz en a lo sumo
    len(slots) saltos. Ciclos, huérfanos e ids inexistentes devuelven False.
    """
    parents = {sid: parent_of(s) for sid, s in _slot_items(slots) if sid is not None}
    node: Optional[str] = slot_id
    for _ in range(len(parents)):
        if node not in parents:
            return False
        node = parents[node]
        if node is None:
            return True
    return False


# ===================== Orden por grilla =====================

def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _grid_key(slot: Mapping[str, Any]) -> Optional[Tuple[float, float]]:
    # sólo cuenta como posicionado con row y col numéricos
    pos = slot.get("position")
    if not isinstance(pos, Mapping):
        return None
    row, col = pos.get("row"), pos.get("col")
    if not (_is_number(row) and _is_number(col)):
        return None
    return (row, col)


def sort_slots_by_grid_coordinates(slots: Iterable[Slot]) -> List[Slot]:
    """
    Ordena por (row, col) los slots que traen position; los que no traen
    coordenadas conservan su índice original. Orden estable.
    """
    items = list(slots)
    positioned = [i for i, s in enumerate(items) if _grid_key(s) is not None]
    if not positioned:
        return items
    ordered = sorted((items[i] for i in positioned), key=_grid_key)
    out = list(items)
    for i, slot in zip(positioned, ordered):
        out[i] = slot
    return out


# ===================== colSpan =====================

@dataclass(frozen=True)
class ColSpan:
    class_name: str
    span: int


FULL_WIDTH = ColSpan(class_name=f"col-span-{GRID_COLUMNS}", span=GRID_COLUMNS)


def _span_from_class(class_name: str, viewport: str) -> Optional[int]:
    by_bp: Dict[str, int] = {}
    for m in COL_SPAN_TOKEN_RE.finditer(class_name):
        raw = m.group(2)
        by_bp[m.group(1) or ""] = GRID_COLUMNS if raw == "full" else int(raw)
    if not by_bp:
        return None
    for bp in _BREAKPOINTS_BY_VIEWPORT.get(viewport, _BREAKPOINTS_BY_VIEWPORT["desktop"]):
        if bp in by_bp:
            return by_bp[bp]
    # hay clases pero solo para breakpoints mayores: en este viewport ocupa todo el ancho
    return GRID_COLUMNS


def is_valid_span(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and 1 <= v <= GRID_COLUMNS


def is_legacy_col_span(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and set(value) <= LEGACY_COL_SPAN_KEYS


def _resolve_legacy(value: Mapping[str, Any], viewport: str) -> ColSpan:
    m, t, d = value.get("mobile"), value.get("tablet"), value.get("desktop")
    classes = []
    if is_valid_span(m):
        classes.append(f"col-span-{m}")
    if is_valid_span(t):
        classes.append(f"md:col-span-{t}")
    if is_valid_span(d):
        classes.append(f"lg:col-span-{d}")
    if not classes:
        return FULL_WIDTH

    if viewport == "mobile":
        candidates = (m,)
    elif viewport == "tablet":
        candidates = (t, m)
    else:
        candidates = (d, t, m)
    span = next((c for c in candidates if is_valid_span(c)), GRID_COLUMNS)
    return ColSpan(class_name=" ".join(classes), span=span)


def _resolve_scalar(value: Any, viewport: str) -> ColSpan:
    if is_valid_span(value):
        return ColSpan(class_name=f"col-span-{value}", span=value)
    if isinstance(value, str) and value.strip():
        span = _span_from_class(value, viewport)
        if span is not None:
            return ColSpan(class_name=value.strip(), span=span)
    if is_legacy_col_span(value):
        return _resolve_legacy(value, viewport)
    return FULL_WIDTH


def resolve_col_span(
    col_span: Any,
    view_mode: Optional[str] = None,
    viewport: str = "desktop",
) -> ColSpan:
    """
    Normaliza las tres formas históricas de colSpan a (clase CSS, span numérico):
      - número 1..12
      - mapa por viewMode {"emptyCart": 12, "withProducts": "col-span-12 lg:col-span-8"}
        (clave del viewMode, si no "default", si no el primer valor)
      - objeto legacy {"mobile": 12, "tablet": 6, "desktop": 4}
    Cualquier cosa irresoluble -> ancho completo.
    """
    if col_span is None or col_span == "":
        return FULL_WIDTH
    if not isinstance(col_span, Mapping) or is_legacy_col_span(col_span):
        return _resolve_scalar(col_span, viewport)
    if not col_span:
        return FULL_WIDTH

    if view_mode is not None and view_mode in col_span:
        value = col_span[view_mode]
    elif "default" in col_span:
        value = col_span["default"]
    else:
        value = next(iter(col_span.values()))
    return _resolve_scalar(value, viewport)
