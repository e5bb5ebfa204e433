"""agreements + webhook event ledger

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-18
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    lifecycle_create = postgresql.ENUM(
        "created",
        "pending_activation",
        "active",
        "rejected",
        "expired",
        "cancelled",
        name="lifecycle_status",
    )
    lifecycle_create.create(op.get_bind(), checkfirst=True)

    lifecycle_status = postgresql.ENUM(
        "created",
        "pending_activation",
        "active",
        "rejected",
        "expired",
        "cancelled",
        name="lifecycle_status",
        create_type=False,
    )

    op.create_table(
        "agreements",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("external_reference", sa.String(length=64), nullable=True),
        sa.Column("signature_request_id", sa.String(length=64), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("lifecycle_status", lifecycle_status, nullable=False, server_default="created"),
        sa.Column("signature_status", sa.String(length=255), nullable=True),
        sa.Column("signatories", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("signed_document_url", sa.Text(), nullable=True),
        sa.Column("pdf_url", sa.Text(), nullable=True),
        sa.Column("signature_url", sa.Text(), nullable=True),
        sa.Column("signature_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signature_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("signed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_agreements_external_reference", "agreements", ["external_reference"])
    op.create_index("ix_agreements_signature_request_id", "agreements", ["signature_request_id"])
    # lookups compare lowercased text
    op.create_index(
        "ix_agreements_external_reference_lower",
        "agreements",
        [sa.text("lower(external_reference)")],
    )

    op.create_table(
        "webhook_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("external_reference", sa.String(length=64), nullable=False),
        sa.Column("original_reference", sa.String(length=255), nullable=True),
        sa.Column("reference_substituted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("event_code", sa.Integer(), nullable=True),
        sa.Column("event_type", sa.String(length=255), nullable=True),
        sa.Column("signer_name", sa.String(length=255), nullable=True),
        sa.Column("signer_email", sa.String(length=320), nullable=True),
        sa.Column("subject", sa.Text(), nullable=True),
        sa.Column("event_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("idempotency_key", sa.String(length=64), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processing_error", sa.Text(), nullable=True),
        sa.Column("document_url", sa.Text(), nullable=True),
        sa.Column("document_path", sa.Text(), nullable=True),
        sa.Column("raw_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
    )
    op.create_index("ix_webhook_events_external_reference", "webhook_events", ["external_reference"])
    op.create_index("ix_webhook_events_idempotency_key", "webhook_events", ["idempotency_key"])

def downgrade() -> None:
    op.drop_index("ix_webhook_events_idempotency_key", table_name="webhook_events")
    op.drop_index("ix_webhook_events_external_reference", table_name="webhook_events")
    op.drop_table("webhook_events")
    op.drop_index("ix_agreements_external_reference_lower", table_name="agreements")
    op.drop_index("ix_agreements_signature_request_id", table_name="agreements")
    op.drop_index("ix_agreements_external_reference", table_name="agreements")
    op.drop_table("agreements")
    postgresql.ENUM(name="lifecycle_status").drop(op.get_bind(), checkfirst=True)
