from datetime import datetime
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from signsync.db import Base

class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[UUID] = mapped_column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid4)

    external_reference: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    original_reference: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    reference_substituted: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False)

    event_code: Mapped[int | None] = mapped_column(sa.Integer(), nullable=True)
    event_type: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)

    signer_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    signer_email: Mapped[str | None] = mapped_column(sa.String(320), nullable=True)
    subject: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    event_time: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)

    idempotency_key: Mapped[str | None] = mapped_column(sa.String(64), nullable=True, index=True)

    received_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )

    # written once per processing attempt
    processed: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    processing_error: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    # signed artifact linkage
    document_url: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    document_path: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)

    raw_payload: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
