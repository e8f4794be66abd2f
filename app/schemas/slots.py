# app/schemas/slots.py
# Pydantic: requests/responses para layouts de slots (admin + delivery)
from __future__ import annotations
from datetime import datetime
from typing import Optional, Literal, Dict, Any, List

from pydantic import BaseModel, Field, ConfigDict

ConfigurationStatus = Literal["draft", "acceptance", "published"]
Viewport = Literal["mobile", "tablet", "desktop"]


# ---------- Configuración ----------
class SlotConfigurationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
    id: int
    store_id: str
    page_type: str
    status: ConfigurationStatus
    slots: Dict[str, Any]
    # el atributo ORM se llama config_metadata ('metadata' está reservado en SQLAlchemy)
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="config_metadata")
    lock_version: int
    version_id: Optional[int] = None
    reverted_from_version_id: Optional[int] = None
    has_unpublished_changes: bool = False
    can_undo_revert: bool = False
    created_by: Optional[str] = None
    published_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DraftCreate(BaseModel):
    # fallback estático opcional del cliente (si no hay published)
    static_configuration: Optional[Dict[str, Any]] = None


class DraftUpdate(BaseModel):
    slots: Dict[str, Any]
    metadata: Optional[Dict[str, Any]] = None
    # token optimista; también se acepta en el header If-Match
    expected_version: Optional[int] = Field(None, ge=1)
    is_reset: bool = False

    model_config = ConfigDict(extra="ignore")


# ---------- Historial ----------
class SlotVersionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
    id: int
    store_id: str
    page_type: str
    version_idx: int
    configuration_id: Optional[int] = None
    source: Literal["manual", "revert"]
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class SlotVersionDetailOut(SlotVersionOut):
    slots: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="config_metadata")


class SlotVersionListOut(BaseModel):
    total: int
    items: List[SlotVersionOut]


# ---------- Estado / operaciones ----------
class UnpublishedStatusOut(BaseModel):
    store_id: str
    has_unpublished_changes: bool
    page_types: Dict[str, bool]


class PublishAllOut(BaseModel):
    store_id: str
    published: List[SlotConfigurationOut]


class DestroyOut(BaseModel):
    store_id: str
    page_type: str
    deleted: int


# ---------- Defaults empaquetados ----------
class DefaultsOut(BaseModel):
    page_type: str
    slots: Dict[str, Any]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MergeDefaultsIn(BaseModel):
    # opcional: sin token se usa el lock_version actual del draft
    expected_version: Optional[int] = Field(None, ge=1)


class MergeDefaultsOut(BaseModel):
    draft: SlotConfigurationOut
    added_slots: List[str]


# ---------- Render ----------
class RenderRequest(BaseModel):
    context: Dict[str, Any] = Field(default_factory=dict)
    view_mode: Optional[str] = None
    viewport: Viewport = "desktop"
    ui_state: Dict[str, Any] = Field(default_factory=dict)
    include_html: bool = True


class PreviewRenderRequest(RenderRequest):
    store_id: str
    page_type: str
    stage: ConfigurationStatus = "draft"
    # permite previsualizar slots sin persistir
    slots: Optional[Dict[str, Any]] = None


class RenderedSlotOut(BaseModel):
    slot_id: str
    type: str
    resolved_content: str
    resolved_styles: Dict[str, Any]
    class_name: str
    col_span_class: str
    span: int
    component: Optional[str] = None
    attributes: Dict[str, str] = Field(default_factory=dict)
    container_styles: Dict[str, Any] = Field(default_factory=dict)
    children: List["RenderedSlotOut"] = Field(default_factory=list)


class RenderOut(BaseModel):
    store_id: str
    page_type: str
    view_mode: Optional[str] = None
    slots: List[RenderedSlotOut]
    html: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)


class DeliveryLayoutOut(BaseModel):
    store_id: str
    page_type: str
    status: str = Field(description="En delivery siempre será 'published'")
    version_id: Optional[int] = None
    slots: Dict[str, Any]
    metadata: Dict[str, Any]
    updated_at: Optional[datetime] = None


class SlotPatch(BaseModel):
    styles: Optional[Dict[str, Any]] = None
    className: Optional[str] = None
    content: Optional[str] = None
    expected_version: Optional[int] = Field(None, ge=1)
