"""slot configurations + version history

Revision ID: 5b1d0c2e7a41
Revises:
Create Date: 2026-10-17 10:12:03.118274

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5b1d0c2e7a41'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# JSONB en PostgreSQL, JSON plano en SQLite
JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    configuration_status = sa.Enum(
        "draft", "acceptance", "published",
        name="slot_configuration_status", native_enum=False, create_constraint=True,
    )
    version_source = sa.Enum(
        "manual", "revert",
        name="slot_version_source", native_enum=False, create_constraint=True,
    )

    op.create_table(
        "slot_configuration_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("page_type", sa.String(length=64), nullable=False),
        sa.Column("version_idx", sa.Integer(), nullable=False),
        sa.Column("configuration_id", sa.Integer(), nullable=True),
        sa.Column("slots", JSONType, nullable=False),
        sa.Column("config_metadata", JSONType, nullable=False),
        sa.Column("source", version_source, nullable=False, server_default="manual"),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("store_id", "page_type", "version_idx", name="uq_slot_version_per_scope"),
    )
    op.create_index(
        "ix_slot_configuration_versions_store_id", "slot_configuration_versions", ["store_id"]
    )
    op.create_index(
        "ix_slot_configuration_versions_scope_idx",
        "slot_configuration_versions",
        ["store_id", "page_type", "version_idx"],
    )

    op.create_table(
        "slot_configurations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.String(length=64), nullable=False),
        sa.Column("page_type", sa.String(length=64), nullable=False),
        sa.Column("status", configuration_status, nullable=False, server_default="draft"),
        sa.Column("slots", JSONType, nullable=False),
        sa.Column("config_metadata", JSONType, nullable=False),
        sa.Column("lock_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "version_id",
            sa.Integer(),
            sa.ForeignKey("slot_configuration_versions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("reverted_from_version_id", sa.Integer(), nullable=True),
        sa.Column("revert_buffer", JSONType, nullable=True),
        sa.Column("has_unpublished_changes", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        sa.Column("published_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("store_id", "page_type", "status", name="uq_slot_configuration_stage"),
    )
    op.create_index("ix_slot_configurations_store_id", "slot_configurations", ["store_id"])
    op.create_index("ix_slot_configurations_scope", "slot_configurations", ["store_id", "page_type"])


def downgrade():
    op.drop_index("ix_slot_configurations_scope", table_name="slot_configurations")
    op.drop_index("ix_slot_configurations_store_id", table_name="slot_configurations")
    op.drop_table("slot_configurations")
    op.drop_index("ix_slot_configuration_versions_scope_idx", table_name="slot_configuration_versions")
    op.drop_index("ix_slot_configuration_versions_store_id", table_name="slot_configuration_versions")
    op.drop_table("slot_configuration_versions")
