from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

def _lenient_text(v: Any) -> str | None:
    # numbers become their text; blanks and nested values are dropped
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        return str(v)
    if not isinstance(v, str) or not v.strip():
        return None
    return v

class DocumentIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str | bytes | None = Field(
        default=None, validation_alias=AliasChoices("DocumentContent", "content")
    )
    name: str | None = Field(default=None, validation_alias=AliasChoices("DocumentName", "name"))

    @field_validator("content", mode="before")
    @classmethod
    def _content_or_none(cls, v: Any) -> Any:
        return v if isinstance(v, (str, bytes)) else None

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, v: Any) -> str | None:
        return _lenient_text(v)

class SignatureEventIn(BaseModel):
    """Parsed provider notification.

    Accepts the provider's PascalCase fields as well as camelCase names. Fields
    that fail to parse are dropped to None rather than rejecting the event; the
    raw body is kept separately by the event store.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    external_reference: str | None = Field(
        default=None, validation_alias=AliasChoices("RequestId", "externalReference")
    )
    event_code: int | None = Field(
        default=None, validation_alias=AliasChoices("EventId", "eventType")
    )
    event_description: str | None = Field(
        default=None, validation_alias=AliasChoices("EventDescription", "eventDescription")
    )
    event_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("EventTime", "eventTime")
    )
    signer_name: str | None = Field(
        default=None, validation_alias=AliasChoices("UserName", "signerName")
    )
    signer_email: str | None = Field(
        default=None, validation_alias=AliasChoices("Email", "signerEmail")
    )
    subject: str | None = Field(default=None, validation_alias=AliasChoices("Subject", "subject"))
    reject_reason: str | None = Field(
        default=None, validation_alias=AliasChoices("RejectReason", "rejectReason")
    )
    documents: list[DocumentIn] = Field(
        default_factory=list, validation_alias=AliasChoices("Documents", "documents")
    )

    @field_validator("external_reference", mode="before")
    @classmethod
    def _reference_as_text(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v)

    @field_validator("event_code", mode="before")
    @classmethod
    def _lenient_code(cls, v: Any) -> int | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            return int(str(v).strip())
        except ValueError:
            return None

    @field_validator("event_time", mode="before")
    @classmethod
    def _lenient_time(cls, v: Any) -> Any:
        if v in (None, ""):
            return None
        if isinstance(v, datetime):
            return v
        try:
            return datetime.fromisoformat(str(v).replace("Z", "+00:00"))
        except ValueError:
            return None

    @field_validator(
        "signer_name", "signer_email", "subject", "event_description", "reject_reason", mode="before"
    )
    @classmethod
    def _text_fields(cls, v: Any) -> str | None:
        return _lenient_text(v)

    @field_validator("documents", mode="before")
    @classmethod
    def _documents_list(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return [v]
        if not isinstance(v, list):
            return []
        return [d for d in v if isinstance(d, dict)]
