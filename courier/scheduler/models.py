"""TaskRecord data model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo


@dataclass(frozen=True)
class Attachment:
    """A pre-rendered binary attachment (e.g. a PDF) sent with the email."""

    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass(frozen=True)
class TaskRecord:
    """A single email to be sent once at ``fire_at``.

    Attributes:
        id: Unique identifier (UUID hex). Shared key between the timer
            registry and the task store.
        recipient: Destination address, passed verbatim to the notifier.
        subject: Message subject.
        body: Plain text message body.
        fire_at: Timezone-aware absolute send time.
        attachment: Optional binary attachment.
        created_at: ISO 8601 timestamp.
    """

    id: str
    recipient: str
    subject: str
    body: str
    fire_at: datetime
    attachment: Attachment | None = None
    created_at: str = ""

    def __post_init__(self) -> None:
        if self.fire_at.tzinfo is None:
            msg = f"fire_at must be timezone-aware (task {self.id})"
            raise ValueError(msg)
        if not self.created_at:
            object.__setattr__(self, "created_at", datetime.now(UTC).isoformat())

    def is_overdue(self, now: datetime) -> bool:
        return self.fire_at <= now

    # -- Serialization ---------------------------------------------------------

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``scheduled_emails`` column order."""
        att = self.attachment
        return (
            self.id,
            self.recipient,
            self.subject,
            self.body,
            self.fire_at.astimezone(UTC).isoformat(),
            att.filename if att else None,
            att.mime_type if att else None,
            att.content if att else None,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> TaskRecord:
        """Deserialize from a SQLite row tuple.

        Raises ValueError when the stored send time cannot be parsed.
        """
        attachment = None
        if row[7] is not None:
            attachment = Attachment(
                filename=row[5] or "attachment",
                content=bytes(row[7]),
                mime_type=row[6] or "application/octet-stream",
            )
        return cls(
            id=row[0],
            recipient=row[1],
            subject=row[2],
            body=row[3],
            fire_at=parse_fire_at(row[4]),
            attachment=attachment,
            created_at=row[8] or "",
        )


def parse_fire_at(value: str | datetime, tz: tzinfo = UTC) -> datetime:
    """Parse an ISO 8601 send time, attaching *tz* when it is naive."""
    if isinstance(value, datetime):
        dt = value
    else:
        if not isinstance(value, str) or not value:
            msg = f"Invalid send time: {value!r}"
            raise ValueError(msg)
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def make_task_id() -> str:
    """Generate a new task ID."""
    return uuid.uuid4().hex
