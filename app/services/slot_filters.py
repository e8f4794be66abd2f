# app/services/slot_filters.py
# Filtros previos al render: viewMode del layout y renderCondition por estado de UI.
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from app.services.errors import TemplateResolutionWarning

logger = logging.getLogger(__name__)

Slot = Dict[str, Any]

# viewMode comodín: el slot se muestra en cualquier modo
WILDCARD_VIEW_MODE = "default"


def _view_modes(slot: Mapping[str, Any]) -> List[str]:
    vm = slot.get("viewMode")
    if isinstance(vm, str):
        return [vm] if vm else []
    if isinstance(vm, (list, tuple)):
        return [v for v in vm if isinstance(v, str)]
    return []


def is_visible_in_view_mode(slot: Mapping[str, Any], view_mode: Optional[str]) -> bool:
    if view_mode is None:
        return True
    modes = _view_modes(slot)
    return not modes or view_mode in modes or WILDCARD_VIEW_MODE in modes


def filter_slots_by_view_mode(slots: Iterable[Slot], view_mode: Optional[str]) -> List[Slot]:
    """
    Conserva los slots sin viewMode (se muestran siempre) y los que nombran el modo
    pedido (o el comodín "default"). view_mode=None desactiva el filtro.
    """
    return [s for s in slots if is_visible_in_view_mode(s, view_mode)]


# ===================== renderCondition =====================

Predicate = Callable[[Mapping[str, Any]], bool]

RENDER_CONDITIONS: Dict[str, Predicate] = {
    "hideOnMobileMenu": lambda ui: not ui.get("mobileMenuOpen", False),
    "showOnMobileMenu": lambda ui: bool(ui.get("mobileMenuOpen", False)),
    "hideOnMobileSearch": lambda ui: not ui.get("mobileSearchOpen", False),
    "showOnMobileSearch": lambda ui: bool(ui.get("mobileSearchOpen", False)),
}


def evaluate_render_condition(
    condition: Optional[str],
    ui_state: Optional[Mapping[str, Any]] = None,
    warnings: Optional[List[TemplateResolutionWarning]] = None,
) -> bool:
    """Sin condición -> se renderiza. Condición desconocida -> se renderiza y se avisa."""
    if not condition:
        return True
    predicate = RENDER_CONDITIONS.get(condition)
    if predicate is None:
        msg = f"unknown renderCondition '{condition}'"
        logger.warning("TemplateResolutionWarning: %s", msg)
        if warnings is not None:
            warnings.append(TemplateResolutionWarning(msg))
        return True
    return predicate(ui_state or {})


def slot_render_condition(slot: Mapping[str, Any]) -> Optional[str]:
    meta = slot.get("metadata")
    if isinstance(meta, Mapping):
        cond = meta.get("renderCondition")
        return cond if isinstance(cond, str) else None
    return None


def filter_by_render_condition(
    slots: Iterable[Slot],
    ui_state: Optional[Mapping[str, Any]] = None,
    warnings: Optional[List[TemplateResolutionWarning]] = None,
) -> List[Slot]:
    return [
        s for s in slots
        if evaluate_render_condition(slot_render_condition(s), ui_state, warnings)
    ]
