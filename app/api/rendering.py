# app/api/rendering.py
# Render compartido por el preview (admin) y delivery: árbol resuelto + HTML opcional.
from __future__ import annotations

from typing import Any, Dict, List

from app.schemas.slots import RenderOut, RenderRequest
from app.services.errors import TemplateResolutionWarning
from app.services.slot_renderer import render_slots
from app.web.ui.slot_html import render_layout_html


def render_response(store_id: str, page_type: str, slots: Dict[str, Any], req: RenderRequest) -> RenderOut:
    warnings: List[TemplateResolutionWarning] = []
    tree = render_slots(
        slots,
        req.context,
        req.view_mode,
        viewport=req.viewport,
        ui_state=req.ui_state,
        warnings=warnings,
    )
    html = render_layout_html(tree, page_type=page_type, view_mode=req.view_mode) if req.include_html else None
    return RenderOut(
        store_id=store_id,
        page_type=page_type,
        view_mode=req.view_mode,
        slots=[t.to_dict() for t in tree],
        html=html,
        warnings=[str(w) for w in warnings],
    )
