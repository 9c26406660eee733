"""Request models for the HTTP API."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from courier.scheduler.models import Attachment


class AttachmentIn(BaseModel):
    """A pre-rendered attachment, base64-encoded."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(min_length=1, description="File name shown to the recipient")
    content: str = Field(description="Base64-encoded file content")
    mime_type: str = Field(
        default="application/octet-stream",
        alias="mimeType",
        description="MIME type, e.g. 'application/pdf'",
    )

    @field_validator("content")
    @classmethod
    def _check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            msg = "content must be valid base64"
            raise ValueError(msg) from exc
        return value

    def to_attachment(self) -> Attachment:
        return Attachment(
            filename=self.filename,
            content=base64.b64decode(self.content),
            mime_type=self.mime_type,
        )


class SendEmailRequest(BaseModel):
    """Body of ``POST /send-email``."""

    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(description="Recipient address")
    subject: str = Field(default="")
    body: str = Field(default="")
    attachment: AttachmentIn | None = None

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        """Shape check only: a non-empty local part and domain around "@".

        Deliverability is left to the SMTP relay.
        """
        value = value.strip()
        local, _, domain = value.partition("@")
        if not local or not domain:
            msg = "email must be an address like user@example.com"
            raise ValueError(msg)
        return value

    def get_attachment(self) -> Attachment | None:
        return self.attachment.to_attachment() if self.attachment else None


class ScheduleEmailRequest(SendEmailRequest):
    """Body of ``POST /schedule-email``."""

    send_at: datetime = Field(
        alias="sendAt",
        description="ISO 8601 send time; naive values use the scheduler timezone",
    )
