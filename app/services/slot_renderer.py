# app/services/slot_renderer.py
# Render jerárquico de slots: ViewMode -> renderCondition -> orden de grilla -> sustitución.
#
# Frontera de inyección: el content de los slots "text" y el markup de los "component"
# se tratan como markup confiable y se emiten SIN escapar (la sanitización es
# responsabilidad de quien guarda el layout). Todo lo demás se escapa al materializar.
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional

from app.services.errors import TemplateResolutionWarning
from app.services.slot_filters import filter_by_render_condition, filter_slots_by_view_mode
from app.services.slot_tree import ParentIndex, SlotSet, build_parent_index, resolve_col_span, sort_slots_by_grid_coordinates
from app.services.template_engine import process_styles, process_variables
from app.widget_registry import WidgetRegistry, default_registry

logger = logging.getLogger(__name__)

CONTAINER_TYPES = frozenset({"container", "grid", "flex"})
LEAF_TYPES = frozenset({"text", "image", "button", "link", "component"})
SLOT_TYPES = CONTAINER_TYPES | LEAF_TYPES | {"style_config"}

# atributos secundarios que se resuelven desde metadata
_SECONDARY_ATTRS = ("alt", "label", "title", "target")


# ===================== Resultado =====================

@dataclass
class RenderedSlot:
    slot_id: str
    type: str
    resolved_content: str
    resolved_styles: Dict[str, Any]
    class_name: str
    col_span_class: str
    span: int
    component: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    container_styles: Dict[str, Any] = field(default_factory=dict)
    children: List["RenderedSlot"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot_id": self.slot_id,
            "type": self.type,
            "resolved_content": self.resolved_content,
            "resolved_styles": dict(self.resolved_styles),
            "class_name": self.class_name,
            "col_span_class": self.col_span_class,
            "span": self.span,
            "component": self.component,
            "attributes": dict(self.attributes),
            "container_styles": dict(self.container_styles),
            "children": [c.to_dict() for c in self.children],
        }


@dataclass
class _RenderState:
    index: ParentIndex
    view_mode: Optional[str]
    viewport: str
    ui_state: Mapping[str, Any]
    registry: WidgetRegistry
    warnings: Optional[List[TemplateResolutionWarning]]


def _warn(state: _RenderState, message: str) -> None:
    logger.warning("TemplateResolutionWarning: %s", message)
    if state.warnings is not None:
        state.warnings.append(TemplateResolutionWarning(message))


def _text(value: Any, ctx: Mapping[str, Any], state: _RenderState) -> str:
    if value is None:
        return ""
    resolved = process_variables(value, ctx, state.warnings)
    return resolved if isinstance(resolved, str) else str(resolved)


# ===================== style_config =====================

def _with_style_configs(slots: List[Dict[str, Any]], ctx: Mapping[str, Any], state: _RenderState) -> Mapping[str, Any]:
    """Expone los estilos de los style_config del nivel como style_config.<slot_id>.<prop>."""
    configs = [s for s in slots if s.get("type") == "style_config"]
    if not configs:
        return ctx
    exposed = dict(ctx.get("style_config") or {}) if isinstance(ctx.get("style_config"), Mapping) else {}
    for s in configs:
        exposed[s.get("id")] = process_styles(s.get("styles"), ctx, state.warnings)
    return {**ctx, "style_config": exposed}


# ===================== Dispatch por tipo =====================

Handler = Callable[[Dict[str, Any], RenderedSlot, Mapping[str, Any], _RenderState, FrozenSet[str]], None]


def _render_container(slot, rendered, ctx, state, path) -> None:
    rendered.container_styles = process_styles(slot.get("containerStyles"), ctx, state.warnings)
    rendered.children = _render_level(slot.get("id"), ctx, state, path)


def _render_text(slot, rendered, ctx, state, path) -> None:
    # markup confiable, se emite tal cual
    pass


def _render_media(slot, rendered, ctx, state, path) -> None:
    meta = slot.get("metadata") if isinstance(slot.get("metadata"), Mapping) else {}
    for attr in _SECONDARY_ATTRS:
        if meta.get(attr) is not None:
            rendered.attributes[attr] = _text(meta[attr], ctx, state)


def _render_component(slot, rendered, ctx, state, path) -> None:
    meta = slot.get("metadata") if isinstance(slot.get("metadata"), Mapping) else {}
    name = slot.get("component") or meta.get("component")
    rendered.component = name if isinstance(name, str) else None
    widget = state.registry.lookup(rendered.component)
    if widget is None:
        if rendered.component:
            logger.info("component %r not registered; falling back to slot content", rendered.component)
        return
    resolved_slot = {**slot, "content": rendered.resolved_content, "className": rendered.class_name}
    rendered.resolved_content = widget(resolved_slot, ctx) or ""


_DISPATCH: Dict[str, Handler] = {
    "container": _render_container,
    "grid": _render_container,
    "flex": _render_container,
    "text": _render_text,
    "image": _render_media,
    "button": _render_media,
    "link": _render_media,
    "component": _render_component,
}


def _render_slot(slot: Dict[str, Any], ctx: Mapping[str, Any], state: _RenderState, path: FrozenSet[str]) -> Optional[RenderedSlot]:
    sid = slot.get("id")
    stype = slot.get("type")
    if sid in path:
        _warn(state, f"slot '{sid}' already on the render path; skipped")
        return None
    handler = _DISPATCH.get(stype)
    if handler is None:
        _warn(state, f"slot '{sid}' has unsupported type '{stype}'; skipped")
        return None

    col = resolve_col_span(slot.get("colSpan"), state.view_mode, state.viewport)
    rendered = RenderedSlot(
        slot_id=sid,
        type=stype,
        resolved_content=_text(slot.get("content"), ctx, state),
        resolved_styles=process_styles(slot.get("styles"), ctx, state.warnings),
        class_name=_text(slot.get("className"), ctx, state),
        col_span_class=col.class_name,
        span=col.span,
    )
    handler(slot, rendered, ctx, state, path | {sid})
    return rendered


def _render_level(parent_id: Optional[str], ctx: Mapping[str, Any], state: _RenderState, path: FrozenSet[str]) -> List[RenderedSlot]:
    slots = state.index.get(parent_id, [])
    slots = filter_slots_by_view_mode(slots, state.view_mode)
    slots = filter_by_render_condition(slots, state.ui_state, state.warnings)
    slots = sort_slots_by_grid_coordinates(slots)

    level_ctx = _with_style_configs(slots, ctx, state)
    out: List[RenderedSlot] = []
    for slot in slots:
        if slot.get("type") == "style_config":
            continue
        rendered = _render_slot(slot, level_ctx, state, path)
        if rendered is not None:
            out.append(rendered)
    return out


# ===================== API pública =====================

def render_slots(
    slots: SlotSet,
    context: Optional[Mapping[str, Any]] = None,
    view_mode: Optional[str] = None,
    *,
    viewport: str = "desktop",
    ui_state: Optional[Mapping[str, Any]] = None,
    registry: Optional[WidgetRegistry] = None,
    warnings: Optional[List[TemplateResolutionWarning]] = None,
) -> List[RenderedSlot]:
    """
    Renderiza el árbol completo a partir de las raíces (parentId nulo).
    Puro y sin I/O: mismas entradas -> misma salida. El índice padre->hijos se arma una vez.
    """
    state = _RenderState(
        index=build_parent_index(slots or {}),
        view_mode=view_mode,
        viewport=viewport,
        ui_state=ui_state or {},
        registry=registry or default_registry,
        warnings=warnings,
    )
    ctx = context if isinstance(context, Mapping) else {}
    return _render_level(None, ctx, state, frozenset())
