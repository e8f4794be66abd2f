# app/models/slots.py
# Modelos de layout: SlotConfiguration (draft / acceptance / published) e historial inmutable
from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON, String, Integer, Boolean, ForeignKey, DateTime, Enum, UniqueConstraint, Index, func
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

# JSONB en PostgreSQL, JSON plano en SQLite (tests / local)
JSONType = JSON().with_variant(JSONB(), "postgresql")

ConfigurationStatus = Enum(
    "draft", "acceptance", "published",
    name="slot_configuration_status",
    create_constraint=True,
    validate_strings=True,
    native_enum=False,
)

VersionSource = Enum(
    "manual", "revert",
    name="slot_version_source",
    create_constraint=True,
    validate_strings=True,
    native_enum=False,
)


class SlotConfiguration(Base):
    """
    Una copia completa del slot set para (store_id, page_type) en una etapa.
    Hay como máximo un registro por etapa; las promociones insertan registros
    nuevos en lugar de cambiar el status de uno existente.
    """
    __tablename__ = "slot_configurations"

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[str] = mapped_column(String(64), index=True)
    page_type: Mapped[str] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(ConfigurationStatus, default="draft")

    slots: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    config_metadata: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)

    # token optimista: cada escritura del draft lo incrementa
    lock_version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # published -> entrada de historial que lo respalda
    version_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("slot_configuration_versions.id", ondelete="SET NULL"), nullable=True
    )
    # draft/acceptance sembrados desde un revert
    reverted_from_version_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # buffer de undo de un solo nivel (estado del draft antes del último revert)
    revert_buffer: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    has_unpublished_changes: Mapped[bool] = mapped_column(Boolean, default=False)

    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    published_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("store_id", "page_type", "status", name="uq_slot_configuration_stage"),
        Index("ix_slot_configurations_scope", "store_id", "page_type"),
    )

    @property
    def can_undo_revert(self) -> bool:
        return self.revert_buffer is not None

    def as_configuration(self) -> Dict[str, Any]:
        return {
            "slots": self.slots or {},
            "metadata": self.config_metadata or {},
            "status": self.status,
        }


class SlotConfigurationVersion(Base):
    """Snapshot inmutable de cada publicación a producción (append-only)."""
    __tablename__ = "slot_configuration_versions"

    id: Mapped[int] = mapped_column(primary_key=True)
    store_id: Mapped[str] = mapped_column(String(64), index=True)
    page_type: Mapped[str] = mapped_column(String(64))

    version_idx: Mapped[int] = mapped_column(Integer)
    configuration_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    slots: Mapped[Dict[str, Any]] = mapped_column(JSONType)
    config_metadata: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    source: Mapped[str] = mapped_column(VersionSource, default="manual")

    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("store_id", "page_type", "version_idx", name="uq_slot_version_per_scope"),
        Index("ix_slot_configuration_versions_scope_idx", "store_id", "page_type", "version_idx"),
    )
