from datetime import datetime
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from signsync.db import Base

class Agreement(Base):
    __tablename__ = "agreements"

    id: Mapped[UUID] = mapped_column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid4)

    # join key for webhook events; text so malformed legacy values still compare
    external_reference: Mapped[str | None] = mapped_column(sa.String(64), nullable=True, index=True)
    signature_request_id: Mapped[str | None] = mapped_column(sa.String(64), nullable=True, index=True)

    title: Mapped[str | None] = mapped_column(sa.String(200), nullable=True)

    lifecycle_status: Mapped[str] = mapped_column(
        sa.Enum(
            "created",
            "pending_activation",
            "active",
            "rejected",
            "expired",
            "cancelled",
            name="lifecycle_status",
        ),
        nullable=False,
        server_default="created",
        default="created",
    )
    signature_status: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    signatories: Mapped[list | None] = mapped_column(JSONB, nullable=True)

    signed_document_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    pdf_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    signature_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    signature_sent_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    signature_completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    signed_date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
